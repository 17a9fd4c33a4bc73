"""Recording model for storing video recording metadata."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base

PROCESSING_ERROR_MAX_LENGTH = 500


class ProcessingStatus(str, Enum):
    """Enum representing the processing status of a recording."""

    PROCESSING = "PROCESSING"  # re-encode scheduled or running
    READY = "READY"
    FAILED = "FAILED"


class Recording(Base):
    """SQLAlchemy model for uploaded video recordings.

    The id is the recording's public identity. storage_path is relative to
    the storage root and points at the single artifact kept for the
    recording.
    """

    __tablename__ = "recordings"
    __table_args__ = (
        Index("idx_recordings_status", "processing_status"),
        Index("idx_recordings_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    processing_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProcessingStatus.PROCESSING.value
    )
    processing_error: Mapped[str | None] = mapped_column(
        String(PROCESSING_ERROR_MAX_LENGTH), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, onupdate=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the Recording."""
        return (
            f"<Recording(id={self.id!r}, path={self.storage_path!r}, "
            f"status={self.processing_status!r})>"
        )
