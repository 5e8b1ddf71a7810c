"""Helpers shared by the storage backends."""

import mimetypes
from typing import Optional, Union


DEFAULT_MIMETYPE = "application/octet-stream"


def guess_mimetype(key: str) -> str:
    """Guess a content type from the text after the key's final '.'."""
    if "." not in key:
        return DEFAULT_MIMETYPE
    extension = key.rsplit(".", 1)[-1].lower()
    mimetype, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
    return mimetype or DEFAULT_MIMETYPE


def byte_range_header(start: int = 0, end: Optional[Union[int, float]] = None) -> str:
    """Build an HTTP Range value for bytes ``start`` through ``end`` inclusive.

    ``end`` of None (or infinity) leaves the range open-ended. The range is
    not validated; an unsatisfiable range is left for the remote to reject.
    """
    if end is None or end == float("inf"):
        return f"bytes={start}-"
    return f"bytes={start}-{int(end)}"


def validate_key(key: str) -> str:
    """Reject keys that could escape a flat namespace.

    Raises:
        ValueError: If the key is empty or contains path separators
    """
    if not key or not key.strip():
        raise ValueError("Object key cannot be empty")
    if "/" in key or "\\" in key or key in (".", ".."):
        raise ValueError(f"Object key must be a plain file name, got '{key}'")
    return key
