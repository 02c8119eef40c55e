"""Tests for configuration module."""

from __future__ import annotations

from core.config import Settings, _ENV_PROFILES, get_database_url, get_settings


def test_settings_dataclass():
    s = Settings(database_url="postgres://localhost/test")
    assert s.database_url == "postgres://localhost/test"
    assert s.app_env == "dev"
    assert s.jwt_algorithm == "HS256"
    assert s.schedule_default_window_days == 365
    assert s.schedule_max_window_days == 731
    assert s.upcoming_default_limit == 10


def test_settings_frozen():
    s = Settings(database_url="x")
    try:
        s.database_url = "y"
        assert False, "Should raise"
    except AttributeError:
        pass


def test_settings_is_production():
    s = Settings(database_url="x", app_env="production")
    assert s.is_production is True
    assert s.is_dev is False


def test_get_database_url_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://from-env/db")
    assert get_database_url() == "postgres://from-env/db"


def test_get_database_url_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert "postgresql" in get_database_url()


def test_get_settings_uses_env(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("SCHEDULE_MAX_WINDOW_DAYS", "400")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    get_settings.cache_clear()
    try:
        s = get_settings()
        assert s.app_env == "staging"
        assert s.schedule_max_window_days == 400
        assert s.cors_origins == ["https://a.example", "https://b.example"]
    finally:
        get_settings.cache_clear()


def test_profile_applies_when_env_unset(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("SCHEDULE_LOCK_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    try:
        s = get_settings()
        assert s.schedule_lock_timeout_ms == _ENV_PROFILES["production"]["schedule_lock_timeout_ms"]
        assert s.log_level == "WARNING"
    finally:
        get_settings.cache_clear()


def test_unknown_env_falls_back_to_dev_profile(monkeypatch):
    monkeypatch.setenv("APP_ENV", "qa")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    try:
        assert get_settings().log_level == _ENV_PROFILES["dev"]["log_level"]
    finally:
        get_settings.cache_clear()
