"""Recording registry for the video message service.

This module provides identity-keyed CRUD operations for Recording rows.
The registry is the single source of truth for a recording's lifecycle
status; only the lifecycle orchestrator moves a recording out of
PROCESSING.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from vmsg.models import ProcessingStatus, Recording
from vmsg.models.recording import PROCESSING_ERROR_MAX_LENGTH

logger = logging.getLogger(__name__)


class RecordingNotFoundError(Exception):
    """Raised when no recording exists for an identity, or its file is gone."""

    pass


class DuplicateRecordingError(Exception):
    """Raised when inserting a recording whose identity already exists."""

    pass


def insert_recording(
    session: Session,
    recording_id: str,
    original_filename: str,
    storage_path: str,
    size_bytes: int,
    content_type: str,
    duration_ms: int | None = None,
) -> Recording:
    """Create and persist a new Recording in PROCESSING status.

    Args:
        session: SQLAlchemy database session.
        recording_id: Identity assigned at ingestion.
        original_filename: Client-supplied display name.
        storage_path: Path of the stored file relative to the storage root.
        size_bytes: Declared size of the upload in bytes.
        content_type: Declared MIME type of the upload.
        duration_ms: Duration in milliseconds, if a caller already knows it.

    Returns:
        Recording: The persisted Recording instance.

    Raises:
        DuplicateRecordingError: If a recording with this identity exists.
    """
    if session.get(Recording, recording_id) is not None:
        raise DuplicateRecordingError(f"Recording already exists: {recording_id}")

    now = datetime.now(UTC)
    recording = Recording(
        id=recording_id,
        original_filename=original_filename,
        storage_path=storage_path,
        size_bytes=size_bytes,
        content_type=content_type,
        duration_ms=duration_ms,
        processing_status=ProcessingStatus.PROCESSING.value,
        processing_error=None,
        created_at=now,
        updated_at=now,
    )
    session.add(recording)
    session.commit()
    session.refresh(recording)
    return recording


def get_recording(session: Session, recording_id: str) -> Recording | None:
    """Retrieve a recording by its identity.

    Returns:
        Recording | None: The Recording instance if found, None otherwise.
    """
    return session.query(Recording).filter_by(id=recording_id).first()


def find_by_identity(session: Session, recording_id: str) -> Recording:
    """Retrieve a recording by its identity.

    Raises:
        RecordingNotFoundError: If no recording is found with the given ID.
    """
    recording = get_recording(session, recording_id)
    if recording is None:
        raise RecordingNotFoundError(f"Recording not found with UUID: {recording_id}")
    return recording


def mark_ready(
    session: Session,
    recording_id: str,
    size_bytes: int,
    content_type: str,
) -> Recording:
    """Record a successful re-encode.

    Sets status READY, clears any processing error, and stores the size and
    content type of the re-encoded artifact.

    Raises:
        RecordingNotFoundError: If no recording is found with the given ID.
    """
    recording = find_by_identity(session, recording_id)
    recording.size_bytes = size_bytes
    recording.content_type = content_type
    recording.processing_status = ProcessingStatus.READY.value
    recording.processing_error = None
    recording.updated_at = datetime.now(UTC)
    session.commit()
    session.refresh(recording)
    return recording


def mark_failed(session: Session, recording_id: str, error_message: str) -> bool:
    """Record a failed processing attempt.

    The update is conditional on the recording still being PROCESSING, so a
    late failure can never move a READY (or already FAILED) recording.

    Args:
        session: SQLAlchemy database session.
        recording_id: Identity of the recording.
        error_message: Short diagnostic, truncated to fit the column.

    Returns:
        True if the recording was moved to FAILED, False if it was left as is.

    Raises:
        RecordingNotFoundError: If no recording is found with the given ID.
    """
    updated = (
        session.query(Recording)
        .filter(
            Recording.id == recording_id,
            Recording.processing_status == ProcessingStatus.PROCESSING.value,
        )
        .update(
            {
                Recording.processing_status: ProcessingStatus.FAILED.value,
                Recording.processing_error: truncate_error(error_message),
                Recording.updated_at: datetime.now(UTC),
            },
            synchronize_session=False,
        )
    )
    session.commit()

    if updated:
        session.expire_all()
        return True

    # Distinguish "already terminal" from "never existed"
    recording = find_by_identity(session, recording_id)
    logger.warning(
        f"Recording {recording_id}: ignoring failure update, "
        f"status is already {recording.processing_status}"
    )
    return False


def list_recordings(session: Session, limit: int = 50, offset: int = 0) -> list[Recording]:
    """List recordings newest first.

    Args:
        session: SQLAlchemy database session.
        limit: Maximum number of recordings to return. Defaults to 50.
        offset: Number of recordings to skip for pagination. Defaults to 0.

    Returns:
        list[Recording]: Recordings ordered by created_at descending.
    """
    return (
        session.query(Recording)
        .order_by(Recording.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def truncate_error(error_message: str | None) -> str:
    """Fit an error message into the processing_error column."""
    message = error_message or "Unknown error"
    if len(message) <= PROCESSING_ERROR_MAX_LENGTH:
        return message
    return message[: PROCESSING_ERROR_MAX_LENGTH - 3] + "..."
