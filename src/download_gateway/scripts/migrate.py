# src/download_gateway/scripts/migrate.py
"""Apply database migrations up to the latest revision."""
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from download_gateway.core.settings import settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def run_upgrade_head() -> None:
    cfg = Config(str(MIGRATIONS_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(cfg, "head")


if __name__ == "__main__":
    run_upgrade_head()
