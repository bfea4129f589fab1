"""Proof-of-work captcha challenges bound to an identity and a file.

Outstanding challenges live in process memory. A restart invalidates them;
clients simply request a new one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Final

from pydantic import ValidationError

from download_gateway.core import pow as core_pow
from download_gateway.core.pow import PowChallenge
from download_gateway.core.security import constant_time_hex_equals, hmac_sha256_hex
from download_gateway.db.time import Clock, now_ms
from download_gateway.schemas.pow import ChallengeModel
from download_gateway.services.events import EventSink, GatewayEvent, NullEventSink

DEFAULT_EXPIRES_MS: Final[int] = 600_000

REASON_INVALID_SIGNATURE: Final[str] = "Invalid signature"
REASON_NOT_FOUND: Final[str] = "Challenge not found"
REASON_MISMATCH: Final[str] = "Challenge mismatch"
REASON_INVALID_SOLUTION: Final[str] = "Invalid solution"
REASON_MALFORMED: Final[str] = "Malformed submission"


@dataclass(frozen=True)
class IssuedChallenge:
    """Challenge handed to a client together with its binding signature."""

    challenge: PowChallenge
    token: str
    signature: str
    expires_at: int


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class _Outstanding:
    challenge: PowChallenge
    expires_at: int


class ChallengeManager:
    """Issue and redeem single-use proof-of-work challenges."""

    def __init__(
        self,
        secret: str,
        *,
        challenge_count: int = core_pow.DEFAULT_CHALLENGE_COUNT,
        salt_length: int = core_pow.DEFAULT_SALT_LENGTH,
        difficulty: int = core_pow.DEFAULT_DIFFICULTY,
        expires_ms: int = DEFAULT_EXPIRES_MS,
        clock: Clock = now_ms,
        events: EventSink | None = None,
    ) -> None:
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._challenge_count = challenge_count
        self._salt_length = salt_length
        self._difficulty = difficulty
        self._expires_ms = expires_ms
        self._clock = clock
        self._events = events or NullEventSink()
        self._outstanding: dict[str, _Outstanding] = {}
        self._lock = Lock()

    def generate_challenge(self, identity: str, resource_id: str) -> IssuedChallenge:
        """Create a challenge bound to `(identity, resource_id)`.

        Args:
            identity: User the challenge is issued to.
            resource_id: File the challenge unlocks.

        Returns:
            The descriptor, its token, and the HMAC binding all of them to the
            requesting identity and file.
        """
        challenge, token = core_pow.create_challenge(
            self._challenge_count, self._salt_length, self._difficulty
        )
        now = self._clock()
        expires_at = now + self._expires_ms
        with self._lock:
            self._purge_locked(now)
            self._outstanding[token] = _Outstanding(challenge, expires_at)

        signature = self._sign(identity, resource_id, token, challenge)
        self._emit(
            "captcha.issued",
            logging.DEBUG,
            identity=identity,
            resource_id=resource_id,
        )
        return IssuedChallenge(challenge, token, signature, expires_at)

    def verify_solution(
        self,
        identity: str,
        resource_id: str,
        token: str,
        challenge: PowChallenge,
        signature: str,
        solutions: Sequence[int],
    ) -> VerificationResult:
        """Check the binding signature, then redeem the challenge.

        A successful redemption removes the token, so the same solution can
        never be used twice. A wrong solution leaves the token in place for a
        retry.
        """
        expected = self._sign(identity, resource_id, token, challenge)
        if not constant_time_hex_equals(signature, expected):
            self._emit(
                "captcha.invalid_signature",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
            )
            return VerificationResult(False, REASON_INVALID_SIGNATURE)

        now = self._clock()
        with self._lock:
            entry = self._outstanding.get(token)
            if entry is not None and entry.expires_at < now:
                del self._outstanding[token]
                entry = None

        if entry is None:
            self._emit(
                "captcha.not_found",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
            )
            return VerificationResult(False, REASON_NOT_FOUND)

        if entry.challenge != challenge:
            self._emit(
                "captcha.mismatch",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
            )
            return VerificationResult(False, REASON_MISMATCH)

        # Hashing happens outside the lock; the pop below decides the race.
        if not core_pow.validate_solutions(token, challenge, solutions):
            self._emit(
                "captcha.invalid_solution",
                logging.WARNING,
                identity=identity,
                resource_id=resource_id,
            )
            return VerificationResult(False, REASON_INVALID_SOLUTION)

        with self._lock:
            redeemed = self._outstanding.pop(token, None) is entry
        if not redeemed:
            return VerificationResult(False, REASON_NOT_FOUND)

        self._emit(
            "captcha.verified",
            logging.INFO,
            identity=identity,
            resource_id=resource_id,
        )
        return VerificationResult(True)

    def verify_submission(
        self,
        identity: str,
        resource_id: str,
        token: str,
        challenge_json: str,
        signature: str,
        solution_csv: str,
    ) -> VerificationResult:
        """Verify a submission whose challenge and solutions are still encoded.

        Args:
            challenge_json: JSON-encoded `{"c", "s", "d"}` descriptor.
            solution_csv: Comma-separated list of decimal nonces.
        """
        try:
            challenge = ChallengeModel.model_validate_json(challenge_json).to_challenge()
            solutions = [int(part.strip()) for part in solution_csv.split(",")]
        except (ValidationError, ValueError):
            self._emit(
                "captcha.malformed",
                logging.INFO,
                identity=identity,
                resource_id=resource_id,
            )
            return VerificationResult(False, REASON_MALFORMED)
        return self.verify_solution(identity, resource_id, token, challenge, signature, solutions)

    def purge_expired(self) -> int:
        """Evict expired challenges and return how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    @property
    def outstanding_count(self) -> int:
        """Return the number of challenges awaiting redemption."""
        with self._lock:
            return len(self._outstanding)

    def _purge_locked(self, now: int) -> int:
        expired = [token for token, entry in self._outstanding.items() if entry.expires_at < now]
        for token in expired:
            del self._outstanding[token]
        return len(expired)

    def _sign(self, identity: str, resource_id: str, token: str, challenge: PowChallenge) -> str:
        data = f"{identity}:{resource_id}:{token}:{challenge.canonical_json()}"
        return hmac_sha256_hex(self._secret, data)

    def _emit(self, name: str, level: int, **fields: object) -> None:
        self._events.emit(GatewayEvent(name, level, fields))
