"""
Multipart receiver.

Pulls the ``file`` field out of a ``multipart/form-data`` request and
copies it into a uniquely named file under the upload directory. The copy
is owned by the request; the publisher deletes it when it is done.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from typing import BinaryIO

from fastapi import Request
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from ..core.publishing.errors import MissingFile
from ..core.publishing.models import DEFAULT_CONTENT_TYPE, UploadRequest
from ..core.publishing.keys import FALLBACK_FILENAME
from ..core.publishing.staging import reap_temp_file

logger = logging.getLogger(__name__)

FILE_FIELD = "file"


async def receive_upload(
    request: Request,
    upload_dir: str,
    field_name: str = FILE_FIELD,
) -> UploadRequest:
    """
    Extract the uploaded file from the request and buffer it on disk.

    Raises:
        MissingFile: no body, unparseable body, no file under ``field_name``,
            or an empty file part with no filename (a form submitted with
            nothing chosen)
    """
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.warning("Could not parse multipart body", extra={"error": str(e)})
        raise MissingFile() from e

    try:
        upload = form.get(field_name)
        if not isinstance(upload, UploadFile):
            raise MissingFile()
        if not upload.filename and not upload.size:
            raise MissingFile()

        original_name = upload.filename or FALLBACK_FILENAME
        content_type = upload.content_type or DEFAULT_CONTENT_TYPE

        temp_path, size_bytes = await asyncio.to_thread(_spool_to_disk, upload.file, upload_dir)
    finally:
        await form.close()

    logger.info(
        "File received",
        extra={
            "original_name": original_name,
            "content_type": content_type,
            "size_bytes": size_bytes,
            "temp_path": temp_path,
        }
    )

    return UploadRequest(
        temp_path=temp_path,
        original_name=original_name,
        declared_mime_type=content_type,
        size_bytes=size_bytes,
    )


def _spool_to_disk(source: BinaryIO, upload_dir: str) -> tuple[str, int]:
    """Copy ``source`` into a fresh temp file; returns (path, size)."""
    os.makedirs(upload_dir, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix="upload-", dir=upload_dir)

    try:
        with os.fdopen(fd, "wb") as fh:
            source.seek(0)
            shutil.copyfileobj(source, fh)
            size_bytes = fh.tell()
    except BaseException:
        reap_temp_file(temp_path)
        raise

    return temp_path, size_bytes
