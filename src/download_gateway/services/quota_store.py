"""Persistence backends for quota records.

Both backends honour the same contract: a missing record loads as None, a
record that cannot be read or written raises `QuotaStorageError`, and `save`
returns only after the write is durable.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from download_gateway.core.errors import QuotaStorageError
from download_gateway.models import QuotaRecordRow
from download_gateway.schemas.quota import QuotaRecordModel

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


@dataclass
class QuotaRecord:
    """Bucket state of one identity."""

    identity: str
    tokens: float
    last_refill: int


class QuotaStore(Protocol):
    """Load/save primitive used by the quota limiter."""

    def load(self, identity: str) -> QuotaRecord | None: ...

    def save(self, record: QuotaRecord) -> None: ...

    def load_all(self) -> list[QuotaRecord]: ...

    def clear(self) -> None: ...


class SqlQuotaStore:
    """Quota records kept in a single SQL table keyed by identity."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def load(self, identity: str) -> QuotaRecord | None:
        try:
            with self._session_factory() as db:
                row = db.get(QuotaRecordRow, identity)
                if row is None:
                    return None
                return QuotaRecord(row.identity, row.tokens, row.last_refill)
        except SQLAlchemyError as err:
            logger.error("Failed to load quota record for %s: %s", identity, err)
            raise QuotaStorageError() from err

    def save(self, record: QuotaRecord) -> None:
        try:
            with self._session_factory() as db:
                db.merge(
                    QuotaRecordRow(
                        identity=record.identity,
                        tokens=record.tokens,
                        last_refill=record.last_refill,
                    )
                )
                db.commit()
        except SQLAlchemyError as err:
            logger.error("Failed to save quota record for %s: %s", record.identity, err)
            raise QuotaStorageError() from err

    def load_all(self) -> list[QuotaRecord]:
        try:
            with self._session_factory() as db:
                rows = db.scalars(select(QuotaRecordRow).order_by(QuotaRecordRow.identity))
                return [QuotaRecord(row.identity, row.tokens, row.last_refill) for row in rows]
        except SQLAlchemyError as err:
            logger.error("Failed to export quota records: %s", err)
            raise QuotaStorageError() from err

    def clear(self) -> None:
        try:
            with self._session_factory() as db:
                db.execute(delete(QuotaRecordRow))
                db.commit()
        except SQLAlchemyError as err:
            logger.error("Failed to clear quota records: %s", err)
            raise QuotaStorageError() from err


class FileQuotaStore:
    """One JSON file per identity inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _path_for(self, identity: str) -> Path:
        return self._directory / f"{quote(identity, safe='')}{RECORD_SUFFIX}"

    @staticmethod
    def _parse(raw: str, source: Path) -> QuotaRecord:
        try:
            model = QuotaRecordModel.model_validate_json(raw)
        except ValidationError as err:
            logger.error("Corrupt quota record in %s", source)
            raise QuotaStorageError() from err
        return QuotaRecord(model.identity, model.tokens, model.last_refill)

    def load(self, identity: str) -> QuotaRecord | None:
        path = self._path_for(identity)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as err:
            logger.error("Failed to read quota record %s: %s", path, err)
            raise QuotaStorageError() from err
        return self._parse(raw, path)

    def save(self, record: QuotaRecord) -> None:
        payload = QuotaRecordModel(
            identity=record.identity,
            tokens=record.tokens,
            last_refill=record.last_refill,
        ).model_dump_json(by_alias=True)
        path = self._path_for(record.identity)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as err:
            logger.error("Failed to save quota record %s: %s", path, err)
            raise QuotaStorageError() from err

    def load_all(self) -> list[QuotaRecord]:
        if not self._directory.exists():
            return []
        records = []
        for path in sorted(self._directory.glob(f"*{RECORD_SUFFIX}")):
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as err:
                logger.error("Failed to read quota record %s: %s", path, err)
                raise QuotaStorageError() from err
            records.append(self._parse(raw, path))
        return records

    def clear(self) -> None:
        if not self._directory.exists():
            return
        try:
            for path in self._directory.glob(f"*{RECORD_SUFFIX}"):
                path.unlink(missing_ok=True)
        except OSError as err:
            logger.error("Failed to clear quota records in %s: %s", self._directory, err)
            raise QuotaStorageError() from err
