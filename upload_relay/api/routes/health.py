"""
Health check endpoints.

We provide two endpoints:
- /test: Liveness check (is the process running?). Always 200.
- /health: Configuration check. 200 when every required environment
  variable is set, 500 with the missing names otherwise.

/health checks presence only. It never contacts the bucket, so valid-looking
but wrong credentials still report "ok".
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class LivenessResponse(BaseModel):
    message: str
    timestamp: str
    bucket: str
    region: str


class HealthResponse(BaseModel):
    """Configuration health when everything required is present."""
    status: str
    message: str
    bucket: str
    region: str


class HealthErrorResponse(BaseModel):
    status: str
    message: str
    missing: list[str]


def iso_timestamp(now: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    now = now.astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get(
    "/test",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
    description="Returns 200 if the service is running. Does not check configuration.",
)
async def liveness_check(settings: SettingsDep) -> LivenessResponse:
    return LivenessResponse(
        message="Server is running!",
        timestamp=iso_timestamp(datetime.now(timezone.utc)),
        bucket=settings.bucket_name,
        region=settings.aws_region,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Configuration health check",
    description="Returns 200 if all required environment variables are set.",
    responses={
        500: {
            "description": "Required configuration missing",
            "model": HealthErrorResponse,
        }
    },
)
async def health_check(settings: SettingsDep):
    """
    Report whether the storage credentials and bucket are configured.

    The ``missing`` list names environment variables, in the order
    KLYM_AWS_ACCESS_KEY, KLYM_AWS_SECRET_KEY, KLYM_S3_BUCKET.
    """
    missing = settings.validate_required_fields()

    if missing:
        logger.warning(
            "Health check failed",
            extra={"missing_fields": missing}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=HealthErrorResponse(
                status="error",
                message="Missing required environment variables",
                missing=missing,
            ).model_dump(),
        )

    return HealthResponse(
        status="ok",
        message="All environment variables configured",
        bucket=settings.bucket_name,
        region=settings.aws_region,
    )
