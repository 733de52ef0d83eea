"""
Error taxonomy for the upload pipeline.

``UploadError`` covers request and configuration problems,
``StorageError`` covers everything the object store can do wrong. The HTTP
layer maps ``MissingFile`` to 400 and every other failure to 500.
"""


class UploadError(Exception):
    """Base class for upload pipeline failures."""
    pass


class MissingFile(UploadError):
    """The request carried no file under the expected field."""

    def __init__(self, message: str = "No file provided") -> None:
        super().__init__(message)


class ConfigMissing(UploadError):
    """Required configuration values are absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required environment variables: {', '.join(self.missing)}"
        )


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class StoreUnavailable(StorageError):
    """Network, timeout, credential or server-side failure."""
    pass


class StoreRejected(StorageError):
    """The store refused the request (policy, quota, missing bucket, precondition)."""
    pass


class SignError(StorageError):
    """A signed retrieval URL could not be produced."""
    pass
