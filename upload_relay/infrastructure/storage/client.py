"""
Object storage client for uploaded files.

Supports AWS S3 and S3-compatible stores (MinIO, R2) through boto3, with a
mock mode for local development. Mock mode keeps objects in memory, enabling
API testing without a bucket or credentials.

boto3 is synchronous. Every SDK call runs in a worker thread so a slow
upload only holds up its own request.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.publishing.errors import (
    SignError,
    StorageError,
    StoreRejected,
    StoreUnavailable,
)
from ...core.publishing.models import StoredObject
from ...core.publishing.publisher import ObjectStore

logger = logging.getLogger(__name__)

# ClientError codes that mean "could not talk to the store properly"
# rather than "the store said no".
UNAVAILABLE_ERROR_CODES = frozenset({
    "ExpiredToken",
    "InternalError",
    "InvalidAccessKeyId",
    "InvalidToken",
    "RequestTimeTooSkewed",
    "RequestTimeout",
    "ServiceUnavailable",
    "SignatureDoesNotMatch",
    "SlowDown",
    "TokenRefreshRequired",
})


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    ``endpoint_url`` stays None for AWS; set it for MinIO, R2 and friends.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "ap-south-1"
    endpoint_url: Optional[str] = None
    allow_overwrite: bool = True
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


def classify_storage_error(exc: Union[ClientError, BotoCoreError]) -> StorageError:
    """
    Map an SDK failure onto the pipeline's error taxonomy.

    Credential and transport problems become ``StoreUnavailable``; anything
    the store deliberately refused (policy, quota, missing bucket,
    precondition) becomes ``StoreRejected``.
    """
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        http_status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0

        if code in UNAVAILABLE_ERROR_CODES or http_status >= 500:
            return StoreUnavailable(str(exc))
        return StoreRejected(str(exc))

    # BotoCoreError covers NoCredentialsError, EndpointConnectionError,
    # ConnectTimeoutError and ReadTimeoutError
    return StoreUnavailable(str(exc))


class S3StorageClient:
    """
    S3 object storage client.

    Uses boto3's S3 API, so any S3-compatible store works by pointing
    ``endpoint_url`` at it.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

        boto_config = Config(
            signature_version="s3v4",
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            # path-style is what most S3-compatible stores expect
            s3={"addressing_style": "path" if config.endpoint_url else "auto"},
        )

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id or None,
            aws_secret_access_key=config.secret_access_key or None,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def put_object(
        self,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> StoredObject:
        """
        Upload an object to the bucket.

        With ``allow_overwrite`` off the put is conditional
        (``If-None-Match: *``), so an existing key is refused instead of
        replaced.

        SDK failures are classified into ``StoreUnavailable`` or
        ``StoreRejected``. Anything else (a body that can't be read, say)
        propagates unchanged.
        """
        params = {
            "Bucket": self._config.bucket_name,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if not self._config.allow_overwrite:
            params["IfNoneMatch"] = "*"

        try:
            response = await asyncio.to_thread(self._s3_client.put_object, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to upload object",
                extra={"storage_key": key, "error": str(e)}
            )
            raise classify_storage_error(e) from e

        etag = response.get("ETag", "")

        logger.debug(
            "Uploaded object",
            extra={"storage_key": key, "etag": etag}
        )

        return StoredObject(location_url=self.object_url(key), etag=etag)

    async def sign_url(
        self,
        key: str,
        expiry_seconds: int = 86400,
    ) -> str:
        """
        Generate a presigned GET URL.

        Signing happens locally from the credentials; it does not check
        that the object exists.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                "get_object",
                Params={
                    "Bucket": self._config.bucket_name,
                    "Key": key,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"storage_key": key, "error": str(e)}
            )
            raise SignError(f"Presigned URL generation failed: {e}") from e

    def object_url(self, key: str) -> str:
        """Plain (unsigned) URL of an object."""
        quoted_key = quote(key, safe="/")
        if self._config.endpoint_url:
            endpoint = self._config.endpoint_url.rstrip("/")
            return f"{endpoint}/{self._config.bucket_name}/{quoted_key}"
        return (
            f"https://{self._config.bucket_name}.s3."
            f"{self._config.region}.amazonaws.com/{quoted_key}"
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are kept in a dictionary and "URLs" are mock URIs. Not suitable
    for production, but enough to exercise the full API flow.
    """

    def __init__(self, bucket_name: str = "mock-bucket", allow_overwrite: bool = True) -> None:
        # {key: (data, content_type)}
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._bucket_name = bucket_name
        self._allow_overwrite = allow_overwrite
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def objects(self) -> dict[str, tuple[bytes, str]]:
        return self._objects

    async def put_object(
        self,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> StoredObject:
        """Store object in memory."""
        if not self._allow_overwrite and key in self._objects:
            raise StoreRejected(f"Object already exists: {key}")

        data = body.read()
        self._objects[key] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"storage_key": key, "size_bytes": len(data)}
        )

        etag = f'"{hashlib.md5(data).hexdigest()}"'
        return StoredObject(
            location_url=f"mock://storage/{self._bucket_name}/{key}",
            etag=etag,
        )

    async def sign_url(
        self,
        key: str,
        expiry_seconds: int = 86400,
    ) -> str:
        """Return a mock URL carrying the expiry like a real presigned URL."""
        if key not in self._objects:
            raise SignError(f"Object not found: {key}")

        return f"mock://storage/{self._bucket_name}/{key}?X-Amz-Expires={expiry_seconds}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        if config is None:
            return MockStorageClient()
        return MockStorageClient(
            bucket_name=config.bucket_name,
            allow_overwrite=config.allow_overwrite,
        )

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
