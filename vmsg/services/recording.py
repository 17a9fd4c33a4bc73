"""Recording lifecycle for the video message service.

This module accepts uploads and drives each recording through its
processing states:

    PROCESSING -> READY   re-encode succeeded
    PROCESSING -> FAILED  anything after ingestion went wrong

Ingestion runs in the caller's request. Re-encoding is handed to a task
scheduler and runs on a background thread with its own database session;
its errors end up in the registry, never with the caller.
"""

import logging
import posixpath
from collections.abc import Callable
from typing import BinaryIO
from uuid import uuid4

from sqlalchemy.orm import Session

from vmsg.models import Recording
from vmsg.services.registry import get_recording, insert_recording, mark_failed, mark_ready
from vmsg.services.scheduler import TaskScheduler
from vmsg.services.storage import ContentStore, StorageWriteError
from vmsg.services.transcode import CANONICAL_CONTENT_TYPE, TranscodeRunner

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class IngestionFailed(Exception):
    """Raised when an upload cannot be stored. No recording is created."""

    pass


class UploadValidationError(Exception):
    """Raised when an upload is rejected before it is stored.

    Attributes:
        status_code: HTTP status suggested for the rejection.
    """

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


def validate_upload(declared_size: int | None, max_size: int | None) -> None:
    """Check an upload's declared size.

    Args:
        declared_size: Size reported by the transport, None if unknown.
        max_size: Largest accepted size in bytes, None for no limit.

    Raises:
        UploadValidationError: If the upload is empty or too large.
    """
    if declared_size is None:
        return
    if declared_size <= 0:
        raise UploadValidationError("Uploaded file is empty")
    if max_size is not None and declared_size > max_size:
        raise UploadValidationError(
            f"File size ({declared_size} bytes) exceeds maximum allowed size "
            f"({max_size} bytes)",
            status_code=413,
        )


class RecordingLifecycle:
    """Coordinates ingestion and background re-encoding of recordings.

    Args:
        store: Content store holding the recording files.
        transcoder: Runner that re-encodes a stored file in place.
        scheduler: Runs the background processing task.
        session_factory: Opens a database session for background work.
        max_upload_size: Largest accepted upload in bytes, None for no limit.
    """

    def __init__(
        self,
        store: ContentStore,
        transcoder: TranscodeRunner,
        scheduler: TaskScheduler,
        session_factory: Callable[[], Session],
        max_upload_size: int | None = None,
    ):
        self.store = store
        self.transcoder = transcoder
        self.scheduler = scheduler
        self.session_factory = session_factory
        self.max_upload_size = max_upload_size

    def submit(
        self,
        session: Session,
        stream: BinaryIO,
        original_filename: str | None,
        content_type: str | None,
        declared_size: int | None,
    ) -> Recording:
        """Store an upload, register it, and schedule its re-encode.

        Args:
            session: SQLAlchemy session of the calling request.
            stream: Readable binary stream with the upload contents.
            original_filename: Client-supplied filename, may be None.
            content_type: Declared MIME type, may be None.
            declared_size: Declared size in bytes, None if unknown.

        Returns:
            Recording: The new recording, in PROCESSING status, or FAILED
                when the scheduler no longer accepts work.

        Raises:
            UploadValidationError: If the upload is empty or too large.
            IngestionFailed: If the file could not be written.
        """
        validate_upload(declared_size, self.max_upload_size)

        recording_id = str(uuid4())

        try:
            storage_path = self.store.save(stream, recording_id, original_filename)
        except StorageWriteError as e:
            raise IngestionFailed(f"Failed to upload recording: {e}") from e

        if declared_size is None:
            declared_size = self.store.size(storage_path)

        try:
            recording = insert_recording(
                session,
                recording_id=recording_id,
                original_filename=original_filename or posixpath.basename(storage_path),
                storage_path=storage_path,
                size_bytes=declared_size,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        except Exception:
            logger.error(f"Failed to register recording {recording_id}, removing stored file")
            self.store.delete(storage_path)
            raise

        logger.info(
            f"Recording uploaded successfully with UUID: {recording_id}, "
            f"starting async processing"
        )
        try:
            self.scheduler.submit(self.process, recording_id)
        except RuntimeError as e:
            # Nothing else would ever move the recording out of PROCESSING
            logger.error(f"Could not schedule processing for UUID: {recording_id}: {e}")
            mark_failed(session, recording_id, f"Processing could not be scheduled: {e}")
            session.refresh(recording)
        return recording

    def process(self, recording_id: str) -> None:
        """Re-encode a recording and record the outcome.

        Runs on a background thread. Every failure is converted into a
        FAILED status; nothing is raised to the scheduler.
        """
        logger.info(f"Starting async video processing for UUID: {recording_id}")
        session = self.session_factory()
        try:
            self._process(session, recording_id)
        finally:
            session.close()

    def _process(self, session: Session, recording_id: str) -> None:
        try:
            recording = get_recording(session, recording_id)
            if recording is None:
                logger.error(f"Recording {recording_id} vanished before processing, skipping")
                return

            storage_path = recording.storage_path
            self.transcoder.reencode(self.store.absolute_path(storage_path))
            logger.info(f"Video re-encoding completed for UUID: {recording_id}")

            size_bytes = self.store.size(storage_path)
            mark_ready(session, recording_id, size_bytes, CANONICAL_CONTENT_TYPE)
            logger.info(f"Recording processing completed successfully for UUID: {recording_id}")
        except Exception as e:
            logger.error(f"Failed to process video for UUID: {recording_id}", exc_info=True)
            session.rollback()
            try:
                mark_failed(session, recording_id, str(e) or type(e).__name__)
            except Exception:
                logger.error(
                    f"Failed to save error status for UUID: {recording_id}", exc_info=True
                )
