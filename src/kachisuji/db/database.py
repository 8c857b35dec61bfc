"""
Database configuration and session management
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Lazy initialization - engine is created by init_engine()
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Base class for models (can be created immediately)
Base = declarative_base()


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create (or replace) the engine and session factory."""
    global _engine, _SessionLocal

    kwargs: dict = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection, otherwise every session sees an empty DB
            kwargs["poolclass"] = StaticPool

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(database_url, **kwargs)
    if database_url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(_engine)

    _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    logger.info("Database engine initialised: %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database not initialised — call init_engine() first")
    return _engine


def init_db() -> None:
    """Create all tables that don't exist yet."""
    # Models must be imported so they register with Base.metadata
    from kachisuji.db import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def get_session() -> Session:
    if _SessionLocal is None:
        raise RuntimeError("Database not initialised — call init_engine() first")
    return _SessionLocal()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Transactional scope: commit on success, roll back on error."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session
    """
    db = get_session()
    try:
        yield db
    finally:
        db.close()
