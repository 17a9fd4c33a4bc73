"""Database session management utilities.

Provides engine creation, session factories, and dependency injection helpers
for SQLAlchemy database connections.
"""

from collections.abc import Generator
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from vmsg.config import get_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create and cache a SQLAlchemy engine.

    Returns:
        Engine: SQLAlchemy engine configured with the database URL
            from settings and connection pool health checks enabled.
    """
    settings = get_settings()
    url = settings.database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def get_session_factory() -> sessionmaker[Session]:
    """Return a session factory bound to the cached engine.

    Background tasks call the factory to open their own session instead
    of sharing the one that belongs to the request that scheduled them.
    """
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_session() -> Session:
    """Create a new database session.

    Returns:
        Session: A new SQLAlchemy session bound to the cached engine.
    """
    return get_session_factory()()


def get_db() -> Generator[Session, None, None]:
    """Yield a database session with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session for database operations.

    Example:
        for db in get_db():
            recording = find_by_identity(db, recording_id)
    """
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Create all tables on the configured engine.

    Intended for local SQLite runs; deployed databases are managed with
    the alembic migrations.
    """
    from vmsg.models import Base

    Base.metadata.create_all(bind=get_engine())
