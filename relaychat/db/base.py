from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool


def get_engine(url: str) -> Engine:
    """Create an engine for a database URL.

    SQLite files get their parent directory created, WAL journaling and
    check_same_thread=False so sessions can be used from worker threads.
    In-memory SQLite shares one connection across the process.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    database = parsed.database or ""
    connect_args = {"check_same_thread": False, "timeout": 30}
    if database in ("", ":memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)

    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, connect_args=connect_args)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Context manager yielding a SQLAlchemy Session bound to engine."""
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()


def utc_now_iso() -> str:
    return to_utc_iso(datetime.now(UTC))


def to_utc_iso(value: datetime) -> str:
    """Render a timestamp as fixed-width UTC ISO text.

    Stored timestamps are compared as strings, so every row must use the same
    width and offset. Naive values are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")
