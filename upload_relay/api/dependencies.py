"""
FastAPI dependency injection.

Settings, the storage client and the publisher are built once by
``create_app`` and stored on ``app.state``. These dependencies hand them to
route handlers, so routes never construct clients or read the environment,
and tests can swap in a mock store by passing it to ``create_app``.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.publishing.publisher import ObjectStore, UploadPublisher
from ..infrastructure.storage.client import StorageConfig, create_storage_client

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Builders (called once at startup)
# ---------------------------------------------------------------------------

def build_storage_client(settings: Settings) -> ObjectStore:
    """
    Build the storage client described by ``settings``.

    Missing credentials are not an error here; the first upload will fail
    and ``/health`` reports them.
    """
    config = StorageConfig(
        access_key_id=settings.aws_access_key,
        secret_access_key=settings.aws_secret_key,
        bucket_name=settings.bucket_name,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
        allow_overwrite=settings.allow_overwrite,
    )
    return create_storage_client(config=config, mock_mode=settings.storage_mock_mode)


def build_publisher(settings: Settings, storage: ObjectStore) -> UploadPublisher:
    return UploadPublisher(
        store=storage,
        key_prefix=settings.key_prefix,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
        timeout_seconds=settings.upload_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Request Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_publisher(request: Request) -> UploadPublisher:
    return request.app.state.publisher


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
PublisherDep = Annotated[UploadPublisher, Depends(get_publisher)]
