"""Pytest configuration for test isolation.

The ledger reads its database URL, store capacity, currency/provider defaults
and log level from the environment, and the CLI loads a ``.env`` from the
working directory. A developer's shell (or ``.env``) must never leak into a
test, so an autouse fixture clears those variables and runs each test from
its own temporary directory. Engines are cached per URL by ``db.client``;
they are disposed after every test so SQLite files can be removed.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
for _p in (ROOT / "packages", ROOT / "libs" / "db" / "src", ROOT):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from bank_buckets.persistence import LedgerStore  # noqa: E402
from db.client import dispose_engines, session_scope  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402

_ENV_VARS = (
    "DATABASE_URL",
    "BANK_BUCKETS_LOG_LEVEL",
    "BANK_BUCKETS_STORE_MAX_BYTES",
    "BANK_BUCKETS_CURRENCY",
    "BANK_BUCKETS_PROVIDER",
)


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    yield
    dispose_engines()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh, schema-initialized SQLite file."""

    return bootstrap_sqlite_db(tmp_path / "ledger.db")


@pytest.fixture
def store(database_url: str) -> Iterator[LedgerStore]:
    """A ``LedgerStore`` inside one session scope (committed at teardown)."""

    with session_scope(database_url=database_url) as session:
        yield LedgerStore(session)
