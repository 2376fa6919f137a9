"""DB helpers for tests: bootstrap a temporary SQLite ledger database."""

from __future__ import annotations

import os
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from sqlalchemy import text as sql_text


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    # Ensure parent exists before engine creation attempts any writes
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_store_schema_in_sync(url)

    # Make it the default for any code paths that read from the environment
    if set_default_env:
        # Preserve prior non-overriding semantics
        os.environ.setdefault("DATABASE_URL", url)
    return url


def stored_keys(database_url: str) -> set[str]:
    """Keys currently present in ``bb_store``."""

    with session_scope(database_url=database_url) as session:
        rows = session.execute(sql_text("SELECT key FROM bb_store")).fetchall()
    return {row[0] for row in rows}


def _assert_store_schema_in_sync(database_url: str) -> None:
    """Quick sanity check: ORM column set matches the SQLite table column set."""

    expected = {c.name for c in Base.metadata.tables["bb_store"].columns}
    with session_scope(database_url=database_url) as session:
        rows = session.execute(sql_text("PRAGMA table_info('bb_store')")).fetchall()
        got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
    assert got == expected, f"bb_store schema drift: expected={expected}, got={got}"
