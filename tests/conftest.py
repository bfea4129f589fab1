# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SIGNING_SECRET", "test-signing-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from download_gateway.core.pow import PowChallenge
from download_gateway.db.session import Base
from download_gateway.main import create_app
from download_gateway.services.catalog import DirectoryCatalog, FileRecord
from download_gateway.services.challenges import ChallengeManager, IssuedChallenge
from download_gateway.services.events import GatewayEvent
from download_gateway.services.gateway import DownloadGateway
from download_gateway.services.quota import QuotaLimiter
from download_gateway.services.quota_store import SqlQuotaStore
from download_gateway.services.signing import CapabilitySigner
from download_gateway.utils.pow_client import solve_captcha

TEST_SECRET = "test-signing-secret"
BASE_URL = "http://test"
START_MS = 1_700_000_000_000
CHALLENGE_TTL_MS = 60_000

TEST_FILES = {
    "report.pdf": b"%PDF-1.4 quarterly report",
    "notes.txt": b"meeting notes",
    "archive/Übersicht résumé.pdf": b"%PDF-1.4 unicode name",
    "archive/.hidden.pdf": b"hidden",
    "image.png": b"not an allowed extension",
}
ALLOWED_EXTENSIONS = [".pdf", ".txt"]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingSink:
    """Event sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[GatewayEvent] = []

    def emit(self, event: GatewayEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.name for event in self.events]


def solve(issued: IssuedChallenge) -> list[int]:
    """Solve an issued challenge the way the browser does."""
    return solve_captcha(issued.token, issued.challenge)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def events() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def quota_store(session_factory: sessionmaker[Session]) -> SqlQuotaStore:
    return SqlQuotaStore(session_factory)


@pytest.fixture()
def limiter(quota_store: SqlQuotaStore, clock: FakeClock, events: RecordingSink) -> QuotaLimiter:
    """Three downloads per three seconds, i.e. one token per second."""
    return QuotaLimiter(3, 3, quota_store, clock=clock, events=events)


@pytest.fixture()
def signer(clock: FakeClock) -> CapabilitySigner:
    return CapabilitySigner(TEST_SECRET, clock=clock)


@pytest.fixture()
def challenges(clock: FakeClock, events: RecordingSink) -> ChallengeManager:
    return ChallengeManager(
        TEST_SECRET,
        challenge_count=3,
        salt_length=16,
        difficulty=1,
        expires_ms=CHALLENGE_TTL_MS,
        clock=clock,
        events=events,
    )


@pytest.fixture()
def files_dir(tmp_path: Path) -> Path:
    root = tmp_path / "files"
    for relative, content in TEST_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture()
def catalog(files_dir: Path) -> DirectoryCatalog:
    catalog = DirectoryCatalog(files_dir, ALLOWED_EXTENSIONS)
    catalog.rescan()
    return catalog


@pytest.fixture()
def file_by_name(catalog: DirectoryCatalog):
    """Return a lookup from file name to catalog entry."""

    def _lookup(name: str) -> FileRecord:
        return next(record for record in catalog.get_all() if record.name == name)

    return _lookup


@pytest.fixture()
def gateway(
    signer: CapabilitySigner,
    challenges: ChallengeManager,
    limiter: QuotaLimiter,
    catalog: DirectoryCatalog,
    clock: FakeClock,
    events: RecordingSink,
) -> DownloadGateway:
    return DownloadGateway(signer, challenges, limiter, catalog, clock=clock, events=events)


@pytest.fixture()
def app(gateway: DownloadGateway) -> FastAPI:
    return create_app(gateway)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url=BASE_URL) as test_client:
        yield test_client


@pytest.fixture()
def small_challenge() -> PowChallenge:
    return PowChallenge(count=3, salt_length=16, difficulty=1)
