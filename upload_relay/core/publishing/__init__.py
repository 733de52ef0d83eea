"""
Upload-and-publish pipeline.

Contains the domain models, key derivation, temp-file reaping and the
publisher service.
"""

from .errors import (
    ConfigMissing,
    MissingFile,
    SignError,
    StorageError,
    StoreRejected,
    StoreUnavailable,
    UploadError,
)
from .keys import derive_storage_key, sanitize_filename
from .models import PublishResult, StoredObject, UploadRequest
from .publisher import ObjectStore, UploadPublisher
from .staging import reap_temp_file, reaped

__all__ = [
    "ConfigMissing",
    "MissingFile",
    "SignError",
    "StorageError",
    "StoreRejected",
    "StoreUnavailable",
    "UploadError",
    "derive_storage_key",
    "sanitize_filename",
    "PublishResult",
    "StoredObject",
    "UploadRequest",
    "ObjectStore",
    "UploadPublisher",
    "reap_temp_file",
    "reaped",
]
