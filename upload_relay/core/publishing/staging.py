"""
Temp-file reaping.

Uploaded files are buffered on local disk before they go to the bucket.
``reaped`` removes the buffered copy on every way out of the publish step,
including timeouts and storage errors. Removal problems are logged and
never replace the original outcome.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


def reap_temp_file(path: str) -> bool:
    """
    Delete a temp file, best effort.

    Returns True if the file is gone afterwards (including when it was
    already missing), False if deletion failed.
    """
    try:
        os.unlink(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(
            "Failed to remove temp file",
            extra={"temp_path": path, "error": str(e)}
        )
        return False

    logger.debug("Removed temp file", extra={"temp_path": path})
    return True


@contextmanager
def reaped(path: str) -> Iterator[str]:
    """Yield ``path`` and delete the file when the block exits."""
    try:
        yield path
    finally:
        reap_temp_file(path)
