from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_alembic_upgrade_matches_runtime_schema(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    cfg = Config(str(REPO_ROOT / "backend" / "alembic.ini"))
    command.upgrade(cfg, "head")

    from backend.app.db import metadata

    insp = inspect(create_engine(db_url, future=True))
    tables = set(insp.get_table_names())
    for table in metadata.sorted_tables:
        assert table.name in tables
        migrated = {c["name"] for c in insp.get_columns(table.name)}
        assert migrated == {c.name for c in table.columns}, table.name

    command.downgrade(cfg, "base")
    insp = inspect(create_engine(db_url, future=True))
    assert not set(insp.get_table_names()) & {t.name for t in metadata.sorted_tables}
