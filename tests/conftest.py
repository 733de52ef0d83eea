"""
Shared fixtures.

Every test starts with the ``KLYM_*`` variables cleared so the developer's
shell or ``.env`` can't leak into assertions about configuration.
"""

import os

import pytest
from fastapi.testclient import TestClient

from upload_relay.config.settings import Settings
from upload_relay.infrastructure.storage.client import MockStorageClient
from upload_relay.main import create_app


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.upper().startswith("KLYM_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("PORT", raising=False)


@pytest.fixture
def upload_dir(tmp_path) -> str:
    return str(tmp_path / "uploads")


@pytest.fixture
def settings(tmp_path, upload_dir) -> Settings:
    """Fully configured settings pointing at temp directories."""
    return Settings(
        _env_file=None,
        aws_access_key="test-access-key",
        aws_secret_key="test-secret-key",
        s3_bucket="test-bucket",
        upload_dir=upload_dir,
        static_dir=str(tmp_path / "public"),
    )


@pytest.fixture
def storage(settings) -> MockStorageClient:
    return MockStorageClient(bucket_name=settings.bucket_name)


@pytest.fixture
def client(settings, storage):
    app = create_app(settings=settings, storage=storage)
    with TestClient(app) as test_client:
        yield test_client
