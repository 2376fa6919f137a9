# ruff: noqa: I001
"""
Alembic configuration for the `db` library.

The database URL comes from `sqlalchemy.url` in the active config (set by
`db.migrate`), falling back to the `DATABASE_URL` environment variable (a local
`.env` is honoured without overriding variables already set). Both offline
and online migrations are supported; programmatic callers may pass an open
connection through ``config.attributes["connection"]``.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import load_dotenv, find_dotenv

# Alembic Config object, which provides access to the values within
# the .ini file in use (if any).
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Works from the repo root as well as from inside libs/db.
dotenv_path = find_dotenv(usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path=dotenv_path, override=False)

db_url = config.get_main_option("sqlalchemy.url") or os.getenv("DATABASE_URL") or ""
if not db_url and "connection" not in config.attributes:
    raise RuntimeError(
        "DATABASE_URL is not set. Provide it via environment or set "
        "'sqlalchemy.url' in the Alembic config."
    )

logger = logging.getLogger("alembic.env")

# libs/db/alembic/env.py -> libs/db/src
_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.append(str(_SRC))

import db as _db_pkg  # noqa: E402

target_metadata = _db_pkg.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL only)."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_with(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    existing = config.attributes.get("connection")
    if existing is not None:
        _run_with(existing)
        return

    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    logger.info("Running migrations for %s", connectable.url.render_as_string(hide_password=True))

    with connectable.connect() as connection:
        _run_with(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
