"""
HTTP-level tests for the relay.

The app is built by ``create_app`` with explicit settings and the in-memory
storage client, then driven through FastAPI's TestClient.
"""

import asyncio
import os
import re
import time
from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from upload_relay.config.settings import Settings
from upload_relay.core.publishing.errors import StoreRejected, StoreUnavailable
from upload_relay.infrastructure.storage.client import MockStorageClient
from upload_relay.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00"

STALL_SECONDS = 1.0


class FailingStorage(MockStorageClient):
    def __init__(self, error: Exception, **kwargs) -> None:
        super().__init__(**kwargs)
        self._error = error

    async def put_object(self, key, body, content_type):
        raise self._error


class SlowStorage(MockStorageClient):
    """Blocks a worker thread for keys ending in ``-slow.png``, like a stuck SDK call."""

    async def put_object(self, key, body, content_type):
        if key.endswith("-slow.png"):
            await asyncio.to_thread(time.sleep, STALL_SECONDS)
        return await super().put_object(key, body, content_type)


def leftover_uploads(upload_dir: str) -> list[str]:
    if not os.path.isdir(upload_dir):
        return []
    return os.listdir(upload_dir)


# ---------------------------------------------------------------------------
# POST /upload
# ---------------------------------------------------------------------------

class TestUpload:
    """Tests for the upload-and-publish endpoint."""

    def test_successful_upload(self, client, storage):
        """Should store the file and return url, signedUrl, key, etag and bucket."""
        before = int(time.time() * 1000)
        response = client.post(
            "/upload",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
        )
        after = int(time.time() * 1000)

        assert response.status_code == 200
        data = response.json()

        match = re.fullmatch(r"images/(\d+)-photo\.png", data["key"])
        assert match is not None
        assert before - 1 <= int(match.group(1)) <= after + 1

        assert data["message"] == "Upload successful"
        assert data["bucket"] == "test-bucket"
        assert data["key"] in data["url"]
        assert data["key"] in data["signedUrl"]
        assert "X-Amz-Expires=86400" in data["signedUrl"]
        assert data["etag"].startswith('"')
        assert storage.objects[data["key"]] == (PNG_BYTES, "image/png")

    def test_temp_file_removed_after_success(self, client, upload_dir):
        """Should leave nothing behind in the upload directory."""
        response = client.post(
            "/upload",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 200
        assert leftover_uploads(upload_dir) == []

    def test_no_body_is_400(self, client):
        """Should answer a bodiless POST with the missing-file error."""
        response = client.post("/upload")

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_other_field_name_is_400(self, client):
        """Should only accept the file under the ``file`` field."""
        response = client.post(
            "/upload",
            files={"image": ("photo.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_plain_text_field_is_400(self, client):
        """Should reject a text value posing as the file."""
        response = client.post("/upload", data={"file": "not a file"})

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_declared_content_type_is_stored(self, client, storage):
        """Should pass the client's content type through to the store."""
        response = client.post(
            "/upload",
            files={"file": ("report.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 200
        _, content_type = storage.objects[response.json()["key"]]
        assert content_type == "application/pdf"

    def test_path_in_filename_is_flattened(self, client):
        """Should keep only the last path segment of the client filename."""
        response = client.post(
            "/upload",
            files={"file": ("../../etc/passwd", b"x", "text/plain")},
        )

        assert response.status_code == 200
        assert re.fullmatch(r"images/\d+-passwd", response.json()["key"])

    @pytest.mark.parametrize(
        "error",
        [
            StoreRejected("An error occurred (AccessDenied) when calling the PutObject operation: Access Denied"),
            StoreUnavailable("Could not connect to the endpoint URL"),
        ],
    )
    def test_storage_failure_is_500_with_details(self, settings, upload_dir, error):
        """Should report store failures as 500 and still clean up."""
        app = create_app(settings=settings, storage=FailingStorage(error))

        with TestClient(app) as client:
            response = client.post(
                "/upload",
                files={"file": ("photo.png", PNG_BYTES, "image/png")},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Upload failed", "details": str(error)}
        assert leftover_uploads(upload_dir) == []


class TestConcurrentUploads:
    """Tests that a stalled store call holds up only its own request."""

    @pytest.mark.asyncio
    async def test_slow_upload_does_not_block_others(self, settings):
        """A second upload should finish while the first is stuck in the store."""
        app = create_app(settings=settings, storage=SlowStorage(bucket_name="test-bucket"))
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://relay") as http:

            async def upload(name: str):
                started = time.monotonic()
                response = await http.post(
                    "/upload",
                    files={"file": (name, PNG_BYTES, "image/png")},
                )
                return response, time.monotonic() - started

            slow_task = asyncio.create_task(upload("slow.png"))
            await asyncio.sleep(0.1)

            fast_response, fast_elapsed = await upload("fast.png")
            assert not slow_task.done()

            slow_response, slow_elapsed = await slow_task

        assert fast_response.status_code == 200
        assert slow_response.status_code == 200
        assert fast_elapsed < STALL_SECONDS / 2
        assert slow_elapsed >= STALL_SECONDS


# ---------------------------------------------------------------------------
# GET /test
# ---------------------------------------------------------------------------

class TestLiveness:

    def test_reports_running(self, client):
        """Should answer with the running message, bucket and region."""
        response = client.get("/test")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Server is running!"
        assert data["bucket"] == "test-bucket"
        assert data["region"] == "ap-south-1"

    def test_timestamp_is_iso_8601(self, client):
        timestamp = client.get("/test").json()["timestamp"]

        assert timestamp.endswith("Z")
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        assert parsed.tzinfo is not None

    def test_works_without_configuration(self, tmp_path):
        """Should stay up and show the default bucket when nothing is set."""
        settings = Settings(_env_file=None, static_dir=str(tmp_path / "public"))

        with TestClient(create_app(settings=settings, storage=MockStorageClient())) as client:
            response = client.get("/test")

        assert response.status_code == 200
        assert response.json()["bucket"] == "klym-products-bucket"


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class TestHealth:
    """Tests for the configuration health check."""

    def test_ok_when_configured(self, client):
        """Should report ok with bucket and region once all variables are set."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "message": "All environment variables configured",
            "bucket": "test-bucket",
            "region": "ap-south-1",
        }

    def test_lists_all_missing_variables(self, tmp_path):
        """Should return 500 naming every missing variable in fixed order."""
        settings = Settings(_env_file=None, static_dir=str(tmp_path / "public"))

        with TestClient(create_app(settings=settings, storage=MockStorageClient())) as client:
            response = client.get("/health")

        assert response.status_code == 500
        assert response.json() == {
            "status": "error",
            "message": "Missing required environment variables",
            "missing": ["KLYM_AWS_ACCESS_KEY", "KLYM_AWS_SECRET_KEY", "KLYM_S3_BUCKET"],
        }

    def test_lists_only_what_is_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KLYM_AWS_ACCESS_KEY", "key")
        monkeypatch.setenv("KLYM_AWS_SECRET_KEY", "secret")
        settings = Settings(_env_file=None, static_dir=str(tmp_path / "public"))

        with TestClient(create_app(settings=settings, storage=MockStorageClient())) as client:
            response = client.get("/health")

        assert response.status_code == 500
        assert response.json()["missing"] == ["KLYM_S3_BUCKET"]

    def test_reads_configuration_from_environment(self, tmp_path, monkeypatch):
        """Should report the bucket and region taken from KLYM_* variables."""
        monkeypatch.setenv("KLYM_AWS_ACCESS_KEY", "key")
        monkeypatch.setenv("KLYM_AWS_SECRET_KEY", "secret")
        monkeypatch.setenv("KLYM_S3_BUCKET", "env-bucket")
        monkeypatch.setenv("KLYM_AWS_REGION", "eu-west-1")
        settings = Settings(_env_file=None, static_dir=str(tmp_path / "public"))

        with TestClient(create_app(settings=settings, storage=MockStorageClient())) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["bucket"] == "env-bucket"
        assert response.json()["region"] == "eu-west-1"


# ---------------------------------------------------------------------------
# Static assets
# ---------------------------------------------------------------------------

class TestStaticAssets:

    @pytest.fixture
    def static_client(self, settings, storage):
        os.makedirs(settings.static_dir, exist_ok=True)
        with open(os.path.join(settings.static_dir, "index.html"), "w") as fh:
            fh.write("<h1>Upload relay</h1>")

        with TestClient(create_app(settings=settings, storage=storage)) as client:
            yield client

    def test_serves_index(self, static_client):
        """Should serve index.html for the root path."""
        response = static_client.get("/")

        assert response.status_code == 200
        assert "Upload relay" in response.text

    def test_unknown_asset_is_404(self, static_client):
        """Should 404 for files that don't exist."""
        assert static_client.get("/missing.js").status_code == 404

    def test_routes_take_precedence(self, static_client):
        """Should route /test to the handler, not the static mount."""
        assert static_client.get("/test").status_code == 200

    def test_no_static_directory_is_404(self, client):
        assert client.get("/index.html").status_code == 404
