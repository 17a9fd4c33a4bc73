"""Unit tests for the recording registry."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from vmsg.models import ProcessingStatus, Recording


def _insert(session: Session, **overrides) -> Recording:
    from vmsg.services.registry import insert_recording

    recording_id = overrides.pop("recording_id", str(uuid4()))
    fields = {
        "original_filename": "clip.webm",
        "storage_path": f"2025/11/03/{recording_id}.webm",
        "size_bytes": 1234,
        "content_type": "video/webm;codecs=vp8,opus",
    }
    fields.update(overrides)
    return insert_recording(session, recording_id=recording_id, **fields)


class TestInsertRecording:
    """Tests for insert_recording()."""

    def test_insert_starts_in_processing(self, db_session: Session) -> None:
        recording = _insert(db_session)

        assert recording.processing_status == ProcessingStatus.PROCESSING.value
        assert recording.processing_error is None
        assert recording.duration_ms is None
        assert recording.created_at is not None
        assert recording.updated_at is not None

    def test_insert_persists_declared_metadata(self, db_session: Session) -> None:
        recording = _insert(db_session, size_bytes=42, content_type="video/mp4")

        stored = db_session.query(Recording).filter_by(id=recording.id).one()
        assert stored.size_bytes == 42
        assert stored.content_type == "video/mp4"
        assert stored.original_filename == "clip.webm"

    def test_duplicate_identity_raises(self, db_session: Session) -> None:
        from vmsg.services.registry import DuplicateRecordingError

        recording = _insert(db_session)

        with pytest.raises(DuplicateRecordingError):
            _insert(db_session, recording_id=recording.id, storage_path="other/path.webm")


class TestFindByIdentity:
    """Tests for find_by_identity() and get_recording()."""

    def test_find_existing(self, db_session: Session) -> None:
        from vmsg.services.registry import find_by_identity

        recording = _insert(db_session)

        assert find_by_identity(db_session, recording.id).id == recording.id

    def test_find_unknown_raises(self, db_session: Session) -> None:
        from vmsg.services.registry import RecordingNotFoundError, find_by_identity

        with pytest.raises(RecordingNotFoundError) as exc_info:
            find_by_identity(db_session, "does-not-exist")

        assert "does-not-exist" in str(exc_info.value)

    def test_get_unknown_returns_none(self, db_session: Session) -> None:
        from vmsg.services.registry import get_recording

        assert get_recording(db_session, "does-not-exist") is None


class TestMarkReady:
    """Tests for mark_ready()."""

    def test_mark_ready_updates_artifact_metadata(self, db_session: Session) -> None:
        from vmsg.services.registry import mark_ready

        recording = _insert(db_session)

        updated = mark_ready(db_session, recording.id, 999, "video/webm")

        assert updated.processing_status == ProcessingStatus.READY.value
        assert updated.size_bytes == 999
        assert updated.content_type == "video/webm"
        assert updated.processing_error is None

    def test_mark_ready_unknown_raises(self, db_session: Session) -> None:
        from vmsg.services.registry import RecordingNotFoundError, mark_ready

        with pytest.raises(RecordingNotFoundError):
            mark_ready(db_session, "does-not-exist", 1, "video/webm")


class TestMarkFailed:
    """Tests for mark_failed().

    A recording leaves PROCESSING at most once; a failure report must never
    move a READY recording back.
    """

    def test_mark_failed_from_processing(self, db_session: Session) -> None:
        from vmsg.services.registry import find_by_identity, mark_failed

        recording = _insert(db_session)

        assert mark_failed(db_session, recording.id, "ffmpeg exited with 1") is True

        stored = find_by_identity(db_session, recording.id)
        assert stored.processing_status == ProcessingStatus.FAILED.value
        assert stored.processing_error == "ffmpeg exited with 1"

    def test_mark_failed_does_not_downgrade_ready(self, db_session: Session) -> None:
        from vmsg.services.registry import find_by_identity, mark_failed, mark_ready

        recording = _insert(db_session)
        mark_ready(db_session, recording.id, 10, "video/webm")

        assert mark_failed(db_session, recording.id, "late failure") is False

        stored = find_by_identity(db_session, recording.id)
        assert stored.processing_status == ProcessingStatus.READY.value
        assert stored.processing_error is None

    def test_mark_failed_keeps_first_error(self, db_session: Session) -> None:
        from vmsg.services.registry import find_by_identity, mark_failed

        recording = _insert(db_session)
        mark_failed(db_session, recording.id, "first")

        assert mark_failed(db_session, recording.id, "second") is False
        assert find_by_identity(db_session, recording.id).processing_error == "first"

    def test_mark_failed_unknown_raises(self, db_session: Session) -> None:
        from vmsg.services.registry import RecordingNotFoundError, mark_failed

        with pytest.raises(RecordingNotFoundError):
            mark_failed(db_session, "does-not-exist", "boom")

    def test_mark_failed_truncates_long_messages(self, db_session: Session) -> None:
        from vmsg.models.recording import PROCESSING_ERROR_MAX_LENGTH
        from vmsg.services.registry import find_by_identity, mark_failed

        recording = _insert(db_session)

        mark_failed(db_session, recording.id, "e" * 5000)

        error = find_by_identity(db_session, recording.id).processing_error
        assert len(error) == PROCESSING_ERROR_MAX_LENGTH
        assert error.endswith("...")


class TestTruncateError:
    """Tests for truncate_error()."""

    def test_short_message_unchanged(self) -> None:
        from vmsg.services.registry import truncate_error

        assert truncate_error("boom") == "boom"

    def test_empty_message_gets_placeholder(self) -> None:
        from vmsg.services.registry import truncate_error

        assert truncate_error("") == "Unknown error"
        assert truncate_error(None) == "Unknown error"


class TestListRecordings:
    """Tests for list_recordings()."""

    def test_newest_first_with_pagination(self, db_session: Session) -> None:
        from vmsg.services.registry import list_recordings

        base = datetime(2025, 11, 3, tzinfo=UTC)
        ids = []
        for i in range(3):
            recording = _insert(db_session)
            recording.created_at = base + timedelta(minutes=i)
            ids.append(recording.id)
        db_session.commit()

        assert [r.id for r in list_recordings(db_session)] == list(reversed(ids))
        assert [r.id for r in list_recordings(db_session, limit=1, offset=1)] == [ids[1]]
