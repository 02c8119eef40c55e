"""Application configuration with environment-specific profiles.

Supports dev, test, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    jwt_secret: str = "jwt-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 480
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    request_id_header_name: str = "X-Request-ID"

    # Occurrence expansion windows (days)
    schedule_default_window_days: int = 365
    schedule_max_window_days: int = 731

    # Row lock wait before a series edit gives up (PostgreSQL only)
    schedule_lock_timeout_ms: int = 5000

    upcoming_default_limit: int = 10

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "jwt_expire_minutes": 1440,
    },
    "test": {
        "log_level": "WARNING",
        "jwt_expire_minutes": 60,
    },
    "staging": {
        "log_level": "INFO",
        "jwt_expire_minutes": 480,
    },
    "production": {
        "log_level": "WARNING",
        "jwt_expire_minutes": 240,
        "schedule_lock_timeout_ms": 3000,
    },
}


def get_database_url() -> str:
    """Resolve database URL from env var or local default.

    Resolution order:
    1. DATABASE_URL environment variable
    2. Local default for common dev setups
    """
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/clubschedule"


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        jwt_secret=os.getenv("JWT_SECRET", "jwt-change-me"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", str(profile.get("jwt_expire_minutes", 480)))),
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "http://localhost:5173")),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER", "X-Request-ID"),
        schedule_default_window_days=int(os.getenv("SCHEDULE_DEFAULT_WINDOW_DAYS", "365")),
        schedule_max_window_days=int(os.getenv("SCHEDULE_MAX_WINDOW_DAYS", "731")),
        schedule_lock_timeout_ms=int(
            os.getenv("SCHEDULE_LOCK_TIMEOUT_MS", str(profile.get("schedule_lock_timeout_ms", 5000)))
        ),
        upcoming_default_limit=int(os.getenv("UPCOMING_DEFAULT_LIMIT", "10")),
    )
