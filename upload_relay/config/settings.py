"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (prefix ``KLYM_``) and an
optional ``.env`` file. Settings are built once at startup and handed to the
application factory, so request handlers never read the environment.

Missing credentials do not stop the process from starting. They are reported
by the lifespan hook and by ``/health`` instead.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.publishing.errors import ConfigMissing

DEFAULT_BUCKET = "klym-products-bucket"
DEFAULT_REGION = "ap-south-1"

# (field name, environment variable) in the order /health reports them
REQUIRED_ENV_VARS = (
    ("aws_access_key", "KLYM_AWS_ACCESS_KEY"),
    ("aws_secret_key", "KLYM_AWS_SECRET_KEY"),
    ("s3_bucket", "KLYM_S3_BUCKET"),
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field maps to ``KLYM_<FIELD_NAME>`` except ``port``, which keeps
    the conventional ``PORT`` variable used by hosting platforms.
    """

    # API Configuration
    api_title: str = "Klym Upload Relay"
    api_version: str = "v1"

    # S3 Storage Configuration
    aws_access_key: str = Field(
        default="",
        description="Access key ID for the object store. Required."
    )
    aws_secret_key: str = Field(
        default="",
        description="Secret access key for the object store. Required."
    )
    s3_bucket: str = Field(
        default="",
        description="Target bucket. Required; uploads fall back to the default bucket when unset."
    )
    aws_region: str = Field(
        default=DEFAULT_REGION,
        description="Bucket region"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (MinIO, R2). AWS when unset."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real bucket. Enables local dev without credentials."
    )

    # Upload Pipeline
    key_prefix: str = Field(
        default="images",
        description="Prefix for storage keys: <prefix>/<epoch-millis>-<filename>"
    )
    signed_url_ttl_seconds: int = Field(
        default=86400,
        gt=0,
        description="Lifetime of the signed GET URL returned after upload (24 hours)"
    )
    upload_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Deadline for putting one object into the bucket"
    )
    allow_overwrite: bool = Field(
        default=True,
        description="When false, a put to an existing key is refused by the store"
    )
    upload_dir: str = Field(
        default="uploads",
        description="Directory for transient copies of uploaded files"
    )
    static_dir: str = Field(
        default="public",
        description="Directory served for GET requests that match no route"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(
        default=3000,
        validation_alias="PORT",
        description="Listening port"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_prefix="KLYM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def bucket_name(self) -> str:
        """Bucket uploads go to."""
        return self.s3_bucket or DEFAULT_BUCKET

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Return the environment variable names of missing required settings.

        Presence only: the values are never checked against the store.
        """
        return [
            env_name
            for field_name, env_name in REQUIRED_ENV_VARS
            if not getattr(self, field_name)
        ]

    def require_fields(self) -> None:
        """Raise ``ConfigMissing`` if any required setting is absent."""
        missing = self.validate_required_fields()
        if missing:
            raise ConfigMissing(missing)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    For tests, build a ``Settings`` directly and pass it to ``create_app``,
    or call ``get_settings.cache_clear()``.
    """
    return Settings()
