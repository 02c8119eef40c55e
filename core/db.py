from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.config import get_settings
from core.errors import ConcurrentModification, PersistenceFailure, SchedulingError
from core.models import Base

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
_LOCK_CONFLICT_PGCODES = {"55P03", "40P01", "40001"}

__all__ = ["Base", "get_engine", "get_session_factory", "reset_engine", "session_scope", "apply_lock_timeout"]


@lru_cache(maxsize=1)
def get_engine():
    url = get_settings().database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    # Services hand ORM rows back after commit, so keep loaded attributes.
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False)


def reset_engine() -> None:
    """Drop cached engine/session factory (used after DATABASE_URL changes)."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


def is_lock_conflict(exc: DBAPIError) -> bool:
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _LOCK_CONFLICT_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


def apply_lock_timeout(session: Session, timeout_ms: Optional[int] = None) -> None:
    """Bound how long the current transaction waits for row locks."""
    if session.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = timeout_ms if timeout_ms is not None else get_settings().schedule_lock_timeout_ms
    session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Iterator[Session]:
    """One transaction: commit on success, roll back everything on any error.

    Database errors are re-raised as ConcurrentModification (lock wait,
    deadlock, serialization) or PersistenceFailure.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except SchedulingError:
        session.rollback()
        raise
    except DBAPIError as exc:
        session.rollback()
        if is_lock_conflict(exc):
            logger.warning("transaction_lock_conflict", extra={"ctx_error": str(exc.orig)})
            raise ConcurrentModification("The session is being edited by someone else, try again") from exc
        logger.exception("transaction_failed")
        raise PersistenceFailure("The change could not be saved") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("transaction_failed")
        raise PersistenceFailure("The change could not be saved") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
