"""Business logic services for the download gateway."""

from __future__ import annotations

from download_gateway.core.settings import Settings
from download_gateway.db.time import Clock, now_ms

from .catalog import DirectoryCatalog, FileCatalog, FileRecord
from .challenges import ChallengeManager
from .events import EventSink, LoggingEventSink
from .gateway import DownloadGateway
from .quota import QuotaLimiter
from .quota_store import FileQuotaStore, QuotaStore, SqlQuotaStore
from .signing import CapabilitySigner

__all__ = [
    "CapabilitySigner",
    "ChallengeManager",
    "DirectoryCatalog",
    "DownloadGateway",
    "FileCatalog",
    "FileQuotaStore",
    "FileRecord",
    "QuotaLimiter",
    "SqlQuotaStore",
    "build_gateway",
    "build_quota_store",
]


def build_quota_store(config: Settings) -> QuotaStore:
    """Return the quota backend selected by `QUOTA_BACKEND`."""
    if config.quota_backend == "file":
        return FileQuotaStore(config.quota_storage_dir)

    from download_gateway.db.session import SessionLocal, create_tables

    create_tables()
    return SqlQuotaStore(SessionLocal)


def build_gateway(
    config: Settings,
    *,
    catalog: FileCatalog | None = None,
    store: QuotaStore | None = None,
    clock: Clock = now_ms,
    events: EventSink | None = None,
) -> DownloadGateway:
    """Wire a gateway from settings; collaborators may be overridden."""
    sink = events or LoggingEventSink()
    if catalog is None:
        directory_catalog = DirectoryCatalog(config.files_directory, config.allowed_extensions)
        directory_catalog.rescan()
        catalog = directory_catalog
    signer = CapabilitySigner(config.signing_secret, clock=clock)
    challenges = ChallengeManager(
        config.signing_secret,
        challenge_count=config.captcha_challenge_count,
        salt_length=config.captcha_salt_length,
        difficulty=config.captcha_difficulty,
        expires_ms=config.url_expiry_ms,
        clock=clock,
        events=sink,
    )
    quota = QuotaLimiter(
        config.rate_limit_downloads,
        config.rate_limit_window_sec,
        store or build_quota_store(config),
        clock=clock,
        events=sink,
    )
    return DownloadGateway(signer, challenges, quota, catalog, clock=clock, events=sink)
