"""
Upload-and-publish pipeline.

Takes a file that has already been buffered on disk and moves it through
``FileExtracted -> Published -> Signed -> Cleaned``. Any failure skips the
remaining stages, still cleans up, and propagates to the caller. Nothing
is retried.

This module knows nothing about HTTP or boto3. It needs something that
satisfies ``ObjectStore``, which the infrastructure layer provides.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Optional, Protocol

from .errors import StoreUnavailable
from .keys import derive_storage_key
from .models import PublishResult, StoredObject, UploadRequest
from .staging import reaped

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    Interface for object storage used by the publisher.

    Implementations raise ``StoreUnavailable`` / ``StoreRejected`` from
    ``put_object`` and ``SignError`` from ``sign_url``.
    """

    @property
    def bucket_name(self) -> str:
        ...

    async def put_object(
        self,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> StoredObject:
        """Store ``body`` under ``key`` and return its location and ETag."""
        ...

    async def sign_url(
        self,
        key: str,
        expiry_seconds: int = 86400,
    ) -> str:
        """Generate a temporary download URL for ``key``."""
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Publisher Service
# ---------------------------------------------------------------------------

class UploadPublisher:
    """
    Publishes buffered uploads to object storage.

    Built once at startup and shared by all requests. It holds no
    per-request state, so concurrent ``publish`` calls are independent.
    """

    def __init__(
        self,
        store: ObjectStore,
        key_prefix: str = "images",
        signed_url_ttl_seconds: int = 86400,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._key_prefix = key_prefix
        self._signed_url_ttl_seconds = signed_url_ttl_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    @property
    def bucket_name(self) -> str:
        return self._store.bucket_name

    async def publish(self, upload: UploadRequest) -> PublishResult:
        """
        Upload the buffered file, sign a URL for it, and delete the temp copy.

        The temp file is removed whether or not the upload succeeds.

        Raises:
            StoreUnavailable: store unreachable, credentials bad, or deadline hit
            StoreRejected: store refused the object
            SignError: signed URL generation failed
        """
        with reaped(upload.temp_path):
            key = derive_storage_key(self._key_prefix, self._clock(), upload.original_name)

            logger.info(
                "Uploading to object storage",
                extra={
                    "storage_key": key,
                    "bucket": self.bucket_name,
                    "content_type": upload.declared_mime_type,
                    "size_bytes": upload.size_bytes,
                }
            )

            with open(upload.temp_path, "rb") as body:
                stored = await self._put_with_deadline(key, body, upload.declared_mime_type)

            signed_url = await self._store.sign_url(
                key,
                expiry_seconds=self._signed_url_ttl_seconds,
            )

        logger.info(
            "Upload successful",
            extra={"storage_key": key, "location": stored.location_url}
        )

        return PublishResult(
            location_url=stored.location_url,
            signed_url=signed_url,
            storage_key=key,
            etag=stored.etag,
            bucket=self.bucket_name,
        )

    async def _put_with_deadline(
        self,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> StoredObject:
        if self._timeout_seconds is None:
            return await self._store.put_object(key, body, content_type)

        try:
            return await asyncio.wait_for(
                self._store.put_object(key, body, content_type),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Upload timed out",
                extra={"storage_key": key, "timeout_seconds": self._timeout_seconds}
            )
            raise StoreUnavailable(
                f"Upload timed out after {self._timeout_seconds:g}s"
            )
