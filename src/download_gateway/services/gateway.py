"""Download pipeline composing capability, captcha and quota gates.

For a download the gates always run in the same order, stopping at the first
failure:

1. the signed capability (identity, file, expiry),
2. the proof-of-work captcha bound to that identity and file,
3. the identity's download quota.

Quota is therefore never spent on an unauthorized request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from download_gateway.core.errors import (
    ExpiredError,
    FileUnavailableError,
    MalformedInputError,
    NotFoundError,
    QuotaExceededError,
    UnauthenticatedError,
)
from download_gateway.db.time import Clock, now_ms
from download_gateway.schemas.pow import VerifyRequest
from download_gateway.services.catalog import FileCatalog, FileRecord
from download_gateway.services.challenges import ChallengeManager, IssuedChallenge
from download_gateway.services.events import EventSink, GatewayEvent, NullEventSink
from download_gateway.services.quota import QuotaLimiter, QuotaResult
from download_gateway.services.signing import CapabilityClaims, CapabilitySigner, parse_expires_at

MSG_MISSING_AUTH: Final[str] = "Missing authentication parameters"
MSG_MISSING_PARAMS: Final[str] = "Missing required parameters"
MSG_INVALID_EXPIRY: Final[str] = "Invalid expiration timestamp"
MSG_EXPIRED: Final[str] = "Authentication token has expired"
MSG_INVALID_AUTH_SIGNATURE: Final[str] = "Invalid authentication signature"
MSG_INVALID_SIGNATURE: Final[str] = "Invalid signature"
MSG_INVALID_CAPTCHA: Final[str] = "Invalid captcha solution"
MSG_RATE_LIMITED: Final[str] = "Rate limit exceeded. Please try again later."
MSG_FILE_NOT_FOUND: Final[str] = "File not found"
MSG_FILE_UNAVAILABLE: Final[str] = "File temporarily unavailable"


@dataclass(frozen=True)
class DownloadGrant:
    """A download that passed every gate."""

    identity: str
    file: FileRecord
    quota: QuotaResult


class DownloadGateway:
    """Orchestrates the gates in front of file downloads and management."""

    def __init__(
        self,
        signer: CapabilitySigner,
        challenges: ChallengeManager,
        quota: QuotaLimiter,
        catalog: FileCatalog,
        *,
        clock: Clock = now_ms,
        events: EventSink | None = None,
    ) -> None:
        self.signer = signer
        self.challenges = challenges
        self.quota = quota
        self.catalog = catalog
        self._clock = clock
        self._events = events or NullEventSink()

    def authenticate_download(
        self,
        identity: str | None,
        resource_id: str | None,
        raw_expires_at: str | None,
        signature: str | None,
        *,
        missing_message: str = MSG_MISSING_AUTH,
        signature_message: str = MSG_INVALID_AUTH_SIGNATURE,
    ) -> CapabilityClaims:
        """Validate download capability parameters or raise a `GatewayError`."""
        if not identity or not resource_id or not raw_expires_at or not signature:
            self._emit("capability.missing", logging.INFO, identity=identity, resource_id=resource_id)
            raise MalformedInputError(missing_message)
        expires_at, now = self._check_expiry(identity, raw_expires_at)
        if not self.signer.check_download(identity, resource_id, expires_at, signature, now=now):
            self._emit(
                "capability.invalid_signature",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
            )
            raise UnauthenticatedError(signature_message)
        return CapabilityClaims(identity, resource_id, expires_at)

    def authenticate_manage(
        self,
        identity: str | None,
        raw_expires_at: str | None,
        signature: str | None,
        *,
        missing_message: str = MSG_MISSING_AUTH,
        signature_message: str = MSG_INVALID_AUTH_SIGNATURE,
    ) -> CapabilityClaims:
        """Validate management capability parameters or raise a `GatewayError`."""
        if not identity or not raw_expires_at or not signature:
            self._emit("capability.missing", logging.INFO, identity=identity)
            raise MalformedInputError(missing_message)
        expires_at, now = self._check_expiry(identity, raw_expires_at)
        if not self.signer.check_manage(identity, expires_at, signature, now=now):
            self._emit("capability.invalid_signature", logging.WARNING, identity=identity)
            raise UnauthenticatedError(signature_message)
        return CapabilityClaims(identity, None, expires_at)

    def issue_challenge(self, claims: CapabilityClaims) -> IssuedChallenge:
        """Issue a captcha for an authenticated download capability."""
        if claims.resource_id is None:
            raise MalformedInputError(MSG_MISSING_AUTH)
        self.require_file(claims.identity, claims.resource_id)
        return self.challenges.generate_challenge(claims.identity, claims.resource_id)

    def redeem(self, request: VerifyRequest) -> DownloadGrant:
        """Run the full download pipeline for a captcha submission.

        Raises:
            GatewayError: The first gate that failed, mapped to its status.
        """
        identity = request.user_id
        resource_id = request.file_id

        if request.sig is not None or request.expires_at is not None:
            self.authenticate_download(identity, resource_id, request.expires_at, request.sig)

        verification = self.challenges.verify_submission(
            identity,
            resource_id,
            request.token,
            request.challenge,
            request.signature,
            request.solution,
        )
        if not verification.valid:
            self._emit(
                "download.captcha_rejected",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
                reason=verification.reason,
            )
            raise UnauthenticatedError(MSG_INVALID_CAPTCHA)

        quota = self.quota.consume(identity)
        if not quota.allowed:
            self._emit(
                "download.rate_limited",
                logging.INFO,
                identity=identity,
                resource_id=resource_id,
                reset_at=quota.reset_at,
            )
            raise QuotaExceededError(MSG_RATE_LIMITED, quota.reset_at)

        record = self.require_file(identity, resource_id)
        self._emit(
            "download.granted",
            logging.INFO,
            identity=identity,
            resource_id=resource_id,
            filename=record.name,
            remaining=quota.remaining_tokens,
        )
        return DownloadGrant(identity, record, quota)

    def require_file(self, identity: str, resource_id: str) -> FileRecord:
        """Return the catalog entry for `resource_id` if it exists on disk."""
        record = self.catalog.get_by_id(resource_id)
        if record is None:
            self._emit("file.not_found", logging.INFO, identity=identity, resource_id=resource_id)
            raise NotFoundError(MSG_FILE_NOT_FOUND)
        if not record.absolute_path.is_file():
            self._emit(
                "file.missing_on_disk",
                logging.ERROR,
                resource_id=resource_id,
                path=record.absolute_path,
            )
            raise FileUnavailableError(MSG_FILE_UNAVAILABLE)
        return record

    def quota_state(self, identity: str) -> QuotaResult:
        """Return the identity's quota without consuming it."""
        return self.quota.get_state(identity)

    def list_files(self) -> list[FileRecord]:
        return self.catalog.get_all()

    def _check_expiry(self, identity: str, raw_expires_at: str) -> tuple[int, int]:
        expires_at = parse_expires_at(raw_expires_at)
        if expires_at is None:
            self._emit("capability.malformed_expiry", logging.INFO, identity=identity)
            raise MalformedInputError(MSG_INVALID_EXPIRY)
        now = self._clock()
        if now > expires_at:
            self._emit("capability.expired", logging.INFO, identity=identity, expires_at=expires_at)
            raise ExpiredError(MSG_EXPIRED)
        return expires_at, now

    def _emit(self, name: str, level: int, **fields: object) -> None:
        self._events.emit(GatewayEvent(name, level, fields))
