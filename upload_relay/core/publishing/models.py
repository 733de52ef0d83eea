"""
Domain models for the upload-and-publish pipeline.

Both models live for a single request. Nothing here is persisted.
"""

from dataclasses import dataclass

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UploadRequest:
    """
    A received file buffered on local disk.

    Created by the multipart receiver. The temp file at ``temp_path``
    belongs to the request and is deleted once publishing finishes.
    """
    temp_path: str
    original_name: str
    declared_mime_type: str = DEFAULT_CONTENT_TYPE
    size_bytes: int = 0

    def __post_init__(self) -> None:
        if not self.temp_path:
            raise ValueError("Upload temp path cannot be empty")
        if self.size_bytes < 0:
            raise ValueError("Upload size cannot be negative")


@dataclass(frozen=True)
class StoredObject:
    """What the object store reports after a successful put."""
    location_url: str
    etag: str


@dataclass(frozen=True)
class PublishResult:
    """
    Outcome of a successful upload.

    ``location_url`` is the plain object URL, ``signed_url`` the
    time-limited retrieval URL for the same key.
    """
    location_url: str
    signed_url: str
    storage_key: str
    etag: str
    bucket: str
