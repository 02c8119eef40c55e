from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from core.config import get_settings


def test_required_tables_present_in_migration():
    text = Path("alembic/versions/20260301_0001_initial.py").read_text()
    required = [
        "teams",
        "seasons",
        "training_sessions",
        "training_session_teams",
        "training_session_exceptions",
    ]
    for t in required:
        assert f'"{t}"' in text


def test_migrations_avoid_postgres_now_function_for_portability():
    migrations_dir = Path("alembic/versions")
    for migration_file in migrations_dir.glob("*.py"):
        text = migration_file.read_text(encoding="utf-8").lower()
        assert "now()" not in text, f"Non-portable now() found in {migration_file.name}"


def test_alembic_upgrade_head_succeeds_on_sqlite(tmp_path, monkeypatch):
    db_path = tmp_path / "migration_smoke.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()

    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")
    get_settings.cache_clear()

    inspector = inspect(create_engine(f"sqlite:///{db_path}"))
    unique = inspector.get_unique_constraints("training_session_exceptions")
    assert any(u["column_names"] == ["training_session_id", "occurrence_date"] for u in unique)
