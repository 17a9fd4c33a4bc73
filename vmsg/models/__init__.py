"""SQLAlchemy models for the video message service."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


from .recording import ProcessingStatus, Recording  # noqa: E402

__all__ = [
    "Base",
    "Recording",
    "ProcessingStatus",
]
