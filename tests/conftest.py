from __future__ import annotations

from datetime import date

import pytest

from core.config import get_settings
from core.db import get_engine, get_session_factory, reset_engine, session_scope
from core.models import Base, Season, Team


@pytest.fixture
def session_factory(tmp_path, monkeypatch):
    db_path = tmp_path / "schedule.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("APP_ENV", "test")
    get_settings.cache_clear()
    reset_engine()
    Base.metadata.create_all(get_engine())
    factory = get_session_factory()
    with session_scope(factory) as s:
        s.add_all(
            [
                Team(id=1, club_id=1, name="U12 Blue"),
                Team(id=2, club_id=1, name="U14 Red"),
                Team(id=3, club_id=2, name="Visitors"),
                Season(id=1, club_id=1, name="2024", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
                Season(id=2, club_id=2, name="2024", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
            ]
        )
    yield factory
    reset_engine()
    get_settings.cache_clear()
