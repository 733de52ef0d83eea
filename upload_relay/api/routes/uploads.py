"""
Upload endpoint.

POST /upload takes one multipart file (field ``file``), publishes it to the
bucket, and answers with the object URL, a signed URL valid for the
configured TTL, the storage key, the ETag and the bucket.

Error bodies are flat JSON, not FastAPI's ``{"detail": ...}``:
- 400 ``{"error": "No file provided"}``
- 500 ``{"error": "Upload failed", "details": "<reason>"}``
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ...core.publishing.errors import MissingFile
from ..dependencies import PublisherDep, SettingsDep
from ..receiver import receive_upload

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after a successful upload."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="Upload successful", description="Status message")
    url: str = Field(description="Object URL in the bucket")
    signed_url: str = Field(
        alias="signedUrl",
        description="Time-limited GET URL for the object"
    )
    key: str = Field(description="Storage key: <prefix>/<epoch-millis>-<filename>")
    etag: str = Field(description="ETag reported by the store")
    bucket: str = Field(description="Bucket the object was stored in")


class UploadErrorResponse(BaseModel):
    error: str
    details: str | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a file to object storage",
    description="Upload one file as multipart/form-data field `file`",
    responses={
        400: {"description": "No file provided", "model": UploadErrorResponse},
        500: {"description": "Upload failed", "model": UploadErrorResponse},
    },
)
async def upload_file(
    request: Request,
    settings: SettingsDep,
    publisher: PublisherDep,
):
    """
    Receive, publish, sign, clean up, respond.

    Every failure is terminal for the request. The buffered temp file is
    removed by the publisher on all paths.
    """
    try:
        upload = await receive_upload(request, upload_dir=settings.upload_dir)
        result = await publisher.publish(upload)
    except MissingFile as e:
        logger.warning("Upload rejected: no file", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e)},
        )
    except Exception as e:
        logger.error(
            "Upload error",
            extra={"error": str(e), "error_type": type(e).__name__},
            exc_info=e,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Upload failed", "details": str(e)},
        )

    return UploadResponse(
        url=result.location_url,
        signed_url=result.signed_url,
        key=result.storage_key,
        etag=result.etag,
        bucket=result.bucket,
    )
