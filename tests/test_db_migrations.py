from __future__ import annotations

from pathlib import Path

from db import metadata
from db.migrate import SCRIPT_LOCATION, alembic_config, upgrade
from sqlalchemy import create_engine, inspect


def test_alembic_config_points_at_bundled_scripts():
    cfg = alembic_config("sqlite+pysqlite:///x.db")
    assert Path(cfg.get_main_option("script_location")) == SCRIPT_LOCATION
    assert cfg.get_main_option("sqlalchemy.url") == "sqlite+pysqlite:///x.db"
    assert (SCRIPT_LOCATION / "env.py").is_file()


def test_upgrade_creates_store_table_matching_orm(tmp_path: Path):
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}"

    upgrade(url)
    # Running again is a no-op at head
    upgrade(url)

    engine = create_engine(url)
    try:
        insp = inspect(engine)
        assert {"bb_store", "alembic_version"} <= set(insp.get_table_names())
        columns = {c["name"] for c in insp.get_columns("bb_store")}
        assert columns == {c.name for c in metadata.tables["bb_store"].columns}
        assert insp.get_pk_constraint("bb_store")["constrained_columns"] == ["key"]
    finally:
        engine.dispose()
