"""Database session management module.

Provides SQLAlchemy engine and session factories for database connectivity.
"""

from .session import get_db, get_engine, get_session, get_session_factory, init_db

__all__ = ["get_engine", "get_session", "get_session_factory", "get_db", "init_db"]
