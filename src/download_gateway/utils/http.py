"""HTTP header helpers."""

from __future__ import annotations

from urllib.parse import quote

FALLBACK_FILENAME = "download"


def ascii_filename(name: str) -> str:
    """Strip everything that cannot appear in a quoted ASCII header value."""
    cleaned = "".join(ch for ch in name if 32 <= ord(ch) < 127 and ch not in '"\\')
    return cleaned.strip() or FALLBACK_FILENAME


def content_disposition(name: str) -> str:
    """Build an attachment header with an RFC 5987 UTF-8 filename."""
    return f"attachment; filename=\"{ascii_filename(name)}\"; filename*=UTF-8''{quote(name, safe='')}"
