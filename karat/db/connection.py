"""Engine and session handling for the shop database.

One engine per process. The URL comes from ``DATABASE_URL``; without it
the shop data lives in ``./karat.db``. Routes take a session through
``get_db``; the CLI and the health check use ``get_db_context``, which
commits on success.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from karat.db.models import Base

DEFAULT_DATABASE_URL = "sqlite:///./karat.db"


def get_database_url() -> str:
    """Database URL for this process, falling back to the local SQLite file."""
    return os.environ.get("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL


def _build_engine(url: str) -> Engine:
    is_sqlite = url.startswith("sqlite")
    built = create_engine(
        url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=os.environ.get("KARAT_SQL_ECHO", "").lower() == "true",
    )
    if not is_sqlite:
        return built

    # In-memory databases cannot switch journal mode
    use_wal = ":memory:" not in url

    @event.listens_for(built, "connect")
    def _sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        # Invoice items and messages rely on cascading deletes
        cursor.execute("PRAGMA foreign_keys=ON")
        if use_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return built


engine = _build_engine(get_database_url())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards.

    Services commit their own writes, so nothing is committed here.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Session scope for code running outside a request."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=engine)
