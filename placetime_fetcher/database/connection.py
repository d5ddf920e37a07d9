"""
Database connection management for the placetime datastore.

Provides SQLAlchemy engine and session helpers. Sessions are short-lived:
each one is opened for a single datastore operation and always closed,
including on error paths.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)


def get_db_path(database_url: str) -> Optional[Path]:
    """
    Get the database file path for a SQLite URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Path to the SQLite database file, or None for other databases
        and in-memory SQLite
    """
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        return Path(database_url[10:])
    return None


def init_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured SQLAlchemy engine
    """
    if not database_url.startswith("sqlite"):
        engine = create_engine(database_url, pool_pre_ping=True, pool_recycle=3600, echo=False)
        logger.debug(f"Database engine initialized: {database_url}")
        return engine

    # Ensure database directory exists
    db_path = get_db_path(database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,  # Sessions are opened from worker threads
            "timeout": 30,
        },
        pool_pre_ping=True,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable SQLite foreign key support."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.debug(f"Database engine initialized: {database_url}")
    return engine


def get_session_maker(engine: Engine) -> sessionmaker:
    """
    Create a session maker bound to an engine.

    Objects stay usable after their session closes, so records returned
    by the datastore can be handed to jobs.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Configured session maker
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@contextmanager
def get_db_session(session_maker: sessionmaker) -> Generator[Session, None, None]:
    """
    Get a database session context manager.

    Commits on success, rolls back on error and always closes the session.

    Usage:
        with get_db_session(session_maker) as session:
            item = session.get(Item, item_id)

    Args:
        session_maker: Session factory

    Yields:
        SQLAlchemy Session
    """
    session = session_maker()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create all database tables.

    Args:
        engine: SQLAlchemy engine
    """
    from placetime_fetcher.database.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")

