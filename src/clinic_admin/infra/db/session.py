from __future__ import annotations

from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.clinic_admin.config import settings
from src.clinic_admin.infra.db.models import Base

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlalchemy_engine(database_url: str) -> Engine:
    """Build an engine for ``database_url``.

    In-memory SQLite shares a single connection across threads through
    ``StaticPool`` so every session (request handlers, background side
    effects, tests) sees the same database.
    """

    kwargs = {"echo": settings.sql_echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if database_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_sqlalchemy_engine(settings.database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False, class_=Session
        )
    return _session_factory


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding one ORM session per request."""

    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def init_db(drop_existing: bool = False) -> None:
    """Create all tables. Real deployments would run migrations instead."""

    engine = get_engine()
    if drop_existing:
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
