"""Leaky-bucket download quota per identity.

Each identity owns a bucket of at most `max_downloads` tokens that refills
continuously at `max_downloads / window_seconds` tokens per second. Every
download consumes one token. Token counts stay fractional internally and are
floored only when reported.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from threading import Lock
from weakref import WeakValueDictionary

from download_gateway.db.time import MILLISECONDS_PER_SECOND, Clock, now_ms
from download_gateway.services.events import EventSink, GatewayEvent, NullEventSink
from download_gateway.services.quota_store import QuotaRecord, QuotaStore


@dataclass(frozen=True)
class QuotaResult:
    """Outcome of a quota check.

    Attributes:
        allowed: Whether a download may proceed.
        remaining_tokens: Whole tokens left after the check.
        reset_at: Unix milliseconds at which the bucket is full again
            (allowed) or holds one full token (denied).
    """

    allowed: bool
    remaining_tokens: int
    reset_at: int


class QuotaLimiter:
    """Per-identity leaky-bucket limiter with durable state."""

    def __init__(
        self,
        max_downloads: int,
        window_seconds: float,
        store: QuotaStore,
        *,
        clock: Clock = now_ms,
        events: EventSink | None = None,
    ) -> None:
        if max_downloads < 1 or window_seconds <= 0:
            raise ValueError("max_downloads and window_seconds must be positive")
        self._max_tokens = float(max_downloads)
        self._tokens_per_second = max_downloads / window_seconds
        self._store = store
        self._clock = clock
        self._events = events or NullEventSink()
        # Entries vanish once no caller holds the lock, so idle identities cost nothing.
        self._locks: WeakValueDictionary[str, Lock] = WeakValueDictionary()
        self._locks_guard = Lock()

    @property
    def max_tokens(self) -> float:
        return self._max_tokens

    @property
    def tokens_per_second(self) -> float:
        return self._tokens_per_second

    def consume(self, identity: str, at: int | None = None) -> QuotaResult:
        """Take one token from the identity's bucket if one is available.

        The refreshed record is persisted before this method returns, whether
        or not the download is allowed. Storage failures propagate as
        `QuotaStorageError`.
        """
        now = self._clock() if at is None else at
        with self._lock_for(identity):
            record = self._store.load(identity)
            if record is None:
                record = QuotaRecord(identity, self._max_tokens - 1, now)
                self._store.save(record)
                self._emit("quota.initialized", logging.DEBUG, identity=identity, tokens=record.tokens)
                return QuotaResult(True, math.floor(record.tokens), self._full_at(now, record.tokens))

            added = self._elapsed_tokens(record, now)
            record.tokens = min(self._max_tokens, record.tokens + added)
            record.last_refill = max(record.last_refill, now)

            if record.tokens >= 1:
                record.tokens -= 1
                self._store.save(record)
                self._emit(
                    "quota.consumed",
                    logging.DEBUG,
                    identity=identity,
                    tokens=record.tokens,
                    added=added,
                )
                return QuotaResult(True, math.floor(record.tokens), self._full_at(now, record.tokens))

            self._store.save(record)
            self._emit("quota.exceeded", logging.INFO, identity=identity, tokens=record.tokens)
            return QuotaResult(False, 0, self._reset_at(now, 1 - record.tokens))

    def get_state(self, identity: str, at: int | None = None) -> QuotaResult:
        """Project the identity's bucket at `at` without mutating it."""
        now = self._clock() if at is None else at
        record = self._store.load(identity)
        if record is None:
            tokens = self._max_tokens
        else:
            tokens = min(self._max_tokens, record.tokens + self._elapsed_tokens(record, now))
        return QuotaResult(tokens >= 1, math.floor(tokens), self._full_at(now, tokens))

    def clear(self) -> None:
        """Remove every record from durable storage."""
        self._store.clear()
        self._emit("quota.cleared", logging.INFO)

    def export_state(self) -> list[QuotaRecord]:
        """Return a snapshot of every persisted record."""
        return self._store.load_all()

    def import_state(self, records: Iterable[QuotaRecord]) -> int:
        """Persist the given records, clamping tokens into `[0, max_tokens]`."""
        imported = 0
        for record in records:
            tokens = min(self._max_tokens, max(0.0, float(record.tokens)))
            with self._lock_for(record.identity):
                self._store.save(QuotaRecord(record.identity, tokens, int(record.last_refill)))
            imported += 1
        self._emit("quota.imported", logging.INFO, count=imported)
        return imported

    def _lock_for(self, identity: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = self._locks[identity] = Lock()
            return lock

    def _elapsed_tokens(self, record: QuotaRecord, now: int) -> float:
        elapsed_seconds = max(0, now - record.last_refill) / MILLISECONDS_PER_SECOND
        return elapsed_seconds * self._tokens_per_second

    def _full_at(self, now: int, tokens: float) -> int:
        return self._reset_at(now, self._max_tokens - tokens)

    def _reset_at(self, now: int, missing_tokens: float) -> int:
        return now + math.ceil(missing_tokens / self._tokens_per_second * MILLISECONDS_PER_SECOND)

    def _emit(self, name: str, level: int, **fields: object) -> None:
        self._events.emit(GatewayEvent(name, level, fields))
