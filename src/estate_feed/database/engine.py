"""Database engine and session management.

The catalog lives in SQLite by default (``data/estate_feed.db``, or
ESTATE_FEED_DB_PATH). DATABASE_URL points it at any other SQLAlchemy
database instead. Tables are created by ``init_db()``; ``get_engine()``
only connects.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from estate_feed.models.db_models import Base

DEFAULT_DB_PATH = Path(__file__).parent.parent.parent.parent / "data" / "estate_feed.db"

# Seconds a writer waits on a locked SQLite file
SQLITE_BUSY_TIMEOUT = 30


def _get_db_path() -> Path:
    env_path = os.environ.get("ESTATE_FEED_DB_PATH")
    return Path(env_path) if env_path else DEFAULT_DB_PATH


def get_database_url(db_path: Path | None = None) -> str:
    """Resolve the database URL.

    DATABASE_URL wins, then the explicit path, then ESTATE_FEED_DB_PATH,
    then the default SQLite file.

    Args:
        db_path: Optional path to SQLite database file.

    Returns:
        Database URL string.
    """
    if url := os.environ.get("DATABASE_URL"):
        return url
    return f"sqlite:///{db_path or _get_db_path()}"


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        # The sync job writes while the API reads
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT * 1000}")
    finally:
        cursor.close()


def _build_engine(database_url: str, echo: bool) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_size=5, pool_recycle=3600)

    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Get or create the shared engine.

    Args:
        db_path: Path to SQLite database file. Ignored once an engine
            exists or when DATABASE_URL is set.
        echo: Whether to echo SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine

    if _engine is None:
        path = Path(db_path) if db_path else None
        database_url = get_database_url(db_path=path)
        if database_url.startswith("sqlite") and not os.environ.get("DATABASE_URL"):
            (path or _get_db_path()).parent.mkdir(parents=True, exist_ok=True)
        _engine = _build_engine(database_url, echo)

    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Get or create the session factory.

    Args:
        engine: SQLAlchemy engine. If None, uses default engine.

    Returns:
        Session factory.
    """
    global _SessionLocal

    if _SessionLocal is None:
        if engine is None:
            engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    return _SessionLocal


@contextmanager
def get_session(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Get a database session as a context manager.

    Args:
        engine: SQLAlchemy engine. If None, uses default engine.

    Yields:
        Database session.
    """
    session_factory = get_session_factory(engine)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def init_db(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Connect and create any missing tables.

    Safe to call on every startup; existing tables are left alone.

    Args:
        db_path: Path to SQLite database file.
        echo: Whether to echo SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    engine = get_engine(db_path, echo)
    Base.metadata.create_all(engine)
    return engine


def reset_engine() -> None:
    """Drop the shared engine and session factory. Used by tests."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
