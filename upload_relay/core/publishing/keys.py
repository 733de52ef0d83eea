"""
Storage key derivation.

Keys follow ``<prefix>/<epoch-millis>-<filename>``. The filename comes from
the client, so it is reduced to a single safe path segment first: an
ordinary name like ``photo.png`` is kept as-is, while ``../../etc/passwd``
becomes ``passwd``.

Two uploads of the same filename in the same millisecond still map to the
same key. See ``Settings.allow_overwrite`` for how that is handled.
"""

import re
from datetime import datetime, timedelta, timezone

FALLBACK_FILENAME = "upload"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def sanitize_filename(original_name: str) -> str:
    """Strip directory components and control characters from a client filename."""
    # client may send either separator regardless of our platform
    name = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    name = _CONTROL_CHARS.sub("", name).strip()

    if name in ("", ".", ".."):
        return FALLBACK_FILENAME
    return name


def epoch_millis(now: datetime) -> int:
    """Integer milliseconds since the Unix epoch. Naive datetimes are taken as local time."""
    if now.tzinfo is None:
        now = now.astimezone()
    return (now - _EPOCH) // timedelta(milliseconds=1)


def derive_storage_key(prefix: str, now: datetime, original_name: str) -> str:
    """
    Build the storage key for an upload.

    Args:
        prefix: Key prefix without trailing slash (e.g. ``images``)
        now: Time of the upload; must be timezone-aware or local time
        original_name: Filename as sent by the client

    Returns:
        ``<prefix>/<epoch-millis>-<sanitized filename>``
    """
    prefix = prefix.strip("/")
    return f"{prefix}/{epoch_millis(now)}-{sanitize_filename(original_name)}"
