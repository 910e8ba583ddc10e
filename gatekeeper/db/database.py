"""
SQLAlchemy engine setup for the SQL store.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from gatekeeper.config import DATABASE_URL


def make_engine(url: str = DATABASE_URL, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    SQLite gets ``check_same_thread=False`` since requests are decided from
    a threadpool; an in-memory SQLite URL shares a single connection so every
    thread sees the same database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine
