"""HMAC and constant-time comparison primitives."""
from __future__ import annotations

import hashlib
import hmac
import re

_LOWER_HEX = re.compile(r"[0-9a-f]+")


def hmac_sha256_hex(secret: bytes, message: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of a UTF-8 message."""
    return hmac.new(secret, message.encode("utf-8"), hashlib.sha256).hexdigest()


def constant_time_equals(presented: str, expected: str) -> bool:
    """Compare two strings without short-circuiting on the first difference.

    Args:
        presented: Value supplied by the client.
        expected: Value recomputed by the server.

    Returns:
        True if both strings encode to identical bytes; False otherwise.
    """
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def constant_time_hex_equals(presented_hex: str, expected_hex: str) -> bool:
    """Compare two digests in their canonical lowercase hex spelling.

    Anything other than lowercase hex digits, including uppercase letters and
    whitespace, is a mismatch.
    """
    if _LOWER_HEX.fullmatch(presented_hex) is None or _LOWER_HEX.fullmatch(expected_hex) is None:
        return False
    return hmac.compare_digest(presented_hex.encode("ascii"), expected_hex.encode("ascii"))
