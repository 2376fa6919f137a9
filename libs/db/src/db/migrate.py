"""Programmatic Alembic entry point for the workspace database.

Usage
-----
from db.migrate import upgrade

upgrade("sqlite+pysqlite:///ledger.db")
"""

from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config

# libs/db/src/db/migrate.py -> libs/db/alembic
SCRIPT_LOCATION = Path(__file__).resolve().parents[2] / "alembic"


def alembic_config(database_url: str | None = None) -> Config:
    """Build an in-memory Alembic config pointing at ``libs/db/alembic``."""

    cfg = Config()
    cfg.set_main_option("script_location", os.fspath(SCRIPT_LOCATION))
    url = database_url or os.getenv("DATABASE_URL")
    if url:
        cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def upgrade(database_url: str | None = None, revision: str = "head") -> None:
    command.upgrade(alembic_config(database_url), revision)


__all__ = ["SCRIPT_LOCATION", "alembic_config", "upgrade"]
