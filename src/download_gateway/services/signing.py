"""Signed capability URLs for downloads and file management.

A capability is fully described by its query parameters. The signature is an
HMAC over a canonical query string; download capabilities include `fileId`
in that string and management capabilities do not, and every value is
percent-encoded, so neither kind can be replayed as the other.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, quote, urlencode, urlsplit

from download_gateway.core.security import constant_time_equals, hmac_sha256_hex
from download_gateway.db.time import Clock, now_ms

DOWNLOAD_PATH = "/download"
MANAGE_PATH = "/manage"

# Bounded to the width of a signed 64-bit millisecond timestamp.
_EXPIRES_AT_PATTERN = re.compile(r"-?[0-9]{1,19}")


@dataclass(frozen=True)
class CapabilityClaims:
    """Verified contents of a capability URL."""

    identity: str
    resource_id: str | None
    expires_at: int


def canonical_query(identity: str, resource_id: str | None, expires_at: int) -> str:
    """Return the canonical string a capability signature covers."""
    fields = [("userId", identity)]
    if resource_id is not None:
        fields.append(("fileId", resource_id))
    fields.append(("expiresAt", str(expires_at)))
    return urlencode(fields, quote_via=quote)


def parse_expires_at(raw: str) -> int | None:
    """Parse a decimal unix-millisecond timestamp, returning None if malformed."""
    if not _EXPIRES_AT_PATTERN.fullmatch(raw):
        return None
    return int(raw)


def _query_params(url: str) -> dict[str, str]:
    parsed = parse_qs(urlsplit(url).query)
    return {key: values[0] for key, values in parsed.items() if values}


class CapabilitySigner:
    """Issue and verify HMAC-signed, time-boxed capability URLs."""

    def __init__(self, secret: str, clock: Clock = now_ms) -> None:
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._clock = clock

    def download_signature(self, identity: str, resource_id: str, expires_at: int) -> str:
        """Return the signature of a download capability."""
        return hmac_sha256_hex(self._secret, canonical_query(identity, resource_id, expires_at))

    def manage_signature(self, identity: str, expires_at: int) -> str:
        """Return the signature of a management capability."""
        return hmac_sha256_hex(self._secret, canonical_query(identity, None, expires_at))

    def sign_download(self, base_url: str, identity: str, resource_id: str, ttl_ms: int) -> str:
        """Return a download URL valid for `ttl_ms` milliseconds."""
        expires_at = self._clock() + ttl_ms
        signature = self.download_signature(identity, resource_id, expires_at)
        query = urlencode(
            [
                ("userId", identity),
                ("fileId", resource_id),
                ("expiresAt", str(expires_at)),
                ("signature", signature),
            ]
        )
        return f"{base_url.rstrip('/')}{DOWNLOAD_PATH}?{query}"

    def sign_manage(self, base_url: str, identity: str, ttl_ms: int) -> str:
        """Return a management URL valid for `ttl_ms` milliseconds."""
        expires_at = self._clock() + ttl_ms
        signature = self.manage_signature(identity, expires_at)
        query = urlencode(
            [("userId", identity), ("expiresAt", str(expires_at)), ("signature", signature)]
        )
        return f"{base_url.rstrip('/')}{MANAGE_PATH}?{query}"

    def check_download(
        self,
        identity: str,
        resource_id: str,
        expires_at: int,
        signature: str,
        now: int | None = None,
    ) -> bool:
        """Return True if the download capability is unexpired and authentic."""
        current = self._clock() if now is None else now
        expected = self.download_signature(identity, resource_id, expires_at)
        authentic = constant_time_equals(signature, expected)
        return authentic and current <= expires_at

    def check_manage(
        self,
        identity: str,
        expires_at: int,
        signature: str,
        now: int | None = None,
    ) -> bool:
        """Return True if the management capability is unexpired and authentic."""
        current = self._clock() if now is None else now
        expected = self.manage_signature(identity, expires_at)
        authentic = constant_time_equals(signature, expected)
        return authentic and current <= expires_at

    def verify_download(self, url: str) -> CapabilityClaims | None:
        """Return the claims of a valid download URL, or None."""
        params = _query_params(url)
        identity = params.get("userId")
        resource_id = params.get("fileId")
        raw_expires_at = params.get("expiresAt")
        signature = params.get("signature")
        if not identity or not resource_id or not raw_expires_at or not signature:
            return None
        expires_at = parse_expires_at(raw_expires_at)
        if expires_at is None:
            return None
        if not self.check_download(identity, resource_id, expires_at, signature):
            return None
        return CapabilityClaims(identity, resource_id, expires_at)

    def verify_manage(self, url: str) -> CapabilityClaims | None:
        """Return the claims of a valid management URL, or None."""
        params = _query_params(url)
        identity = params.get("userId")
        raw_expires_at = params.get("expiresAt")
        signature = params.get("signature")
        if not identity or not raw_expires_at or not signature:
            return None
        expires_at = parse_expires_at(raw_expires_at)
        if expires_at is None:
            return None
        if not self.check_manage(identity, expires_at, signature):
            return None
        return CapabilityClaims(identity, None, expires_at)
