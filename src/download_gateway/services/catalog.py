"""File catalog consulted by the gateway.

The gateway only needs id lookups; `DirectoryCatalog` is a small indexer over
a local directory that also offers listing and a ranked name search for the
issuing side.
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
from dataclasses import dataclass
from difflib import SequenceMatcher
from pathlib import Path
from threading import Lock
from typing import Protocol

logger = logging.getLogger(__name__)

FILE_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
FILE_ID_LENGTH = 8
DEFAULT_MATCH_THRESHOLD = 0.4
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class FileRecord:
    """Metadata for an indexed file."""

    id: str
    name: str
    path: str
    absolute_path: Path
    size: int
    mtime: int
    mime_type: str


@dataclass(frozen=True)
class SearchResult:
    file: FileRecord
    score: float


class FileCatalog(Protocol):
    """Lookup interface the gateway depends on."""

    def get_by_id(self, file_id: str) -> FileRecord | None: ...

    def get_all(self) -> list[FileRecord]: ...

    def rescan(self) -> None: ...

    def search(self, query: str, limit: int = 10) -> list[SearchResult]: ...


def generate_file_id(relative_path: str, length: int = FILE_ID_LENGTH) -> str:
    """Derive a short, typeable id (a-z, 0-9) from a relative path."""
    digest = hashlib.sha256(relative_path.encode("utf-8")).digest()
    return "".join(
        FILE_ID_ALPHABET[digest[i % len(digest)] % len(FILE_ID_ALPHABET)] for i in range(length)
    )


class DirectoryCatalog:
    """Index of the files below a directory with allowed extensions."""

    def __init__(
        self,
        directory: str | Path,
        extensions: list[str],
        threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> None:
        self._directory = Path(directory)
        self._extensions = {ext.lower() for ext in extensions}
        self._threshold = threshold
        self._index: dict[str, FileRecord] = {}
        self._lock = Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def rescan(self) -> None:
        """Rebuild the index from disk. Hidden files are skipped."""
        index: dict[str, FileRecord] = {}
        if self._directory.is_dir():
            for path in sorted(self._directory.rglob("*")):
                if not path.is_file() or path.suffix.lower() not in self._extensions:
                    continue
                relative = path.relative_to(self._directory)
                if any(part.startswith(".") for part in relative.parts):
                    continue
                stat = path.stat()
                relative_posix = relative.as_posix()
                file_id = generate_file_id(relative_posix)
                index[file_id] = FileRecord(
                    id=file_id,
                    name=path.name,
                    path=relative_posix,
                    absolute_path=path.resolve(),
                    size=stat.st_size,
                    mtime=int(stat.st_mtime * 1000),
                    mime_type=mimetypes.guess_type(path.name)[0] or DEFAULT_MIME_TYPE,
                )
        else:
            logger.warning("Catalog directory %s does not exist", self._directory)

        with self._lock:
            self._index = index
        logger.info("Indexed %d files from %s", len(index), self._directory)

    def get_by_id(self, file_id: str) -> FileRecord | None:
        with self._lock:
            return self._index.get(file_id)

    def get_all(self) -> list[FileRecord]:
        with self._lock:
            return sorted(self._index.values(), key=lambda record: record.path)

    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Rank files by similarity of their name to `query`."""
        needle = query.strip().lower()
        if not needle:
            return []
        results = []
        for record in self.get_all():
            name = record.name.lower()
            score = 1.0 if needle in name else SequenceMatcher(None, needle, name).ratio()
            if score >= self._threshold:
                results.append(SearchResult(record, score))
        results.sort(key=lambda result: (-result.score, result.file.name))
        return results[:limit]
