"""Pytest fixtures for video message service tests.

This module provides shared fixtures for database sessions, the content
store, a scripted encoder runner, and a scheduler that runs tasks on demand.
"""

from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vmsg.config import Settings
from vmsg.models import Base, ProcessingStatus, Recording
from vmsg.services.recording import RecordingLifecycle
from vmsg.services.storage import ContentStore
from vmsg.services.transcode import TranscodeRunner

from tests.fakes import DeferredScheduler, FakeCommandRunner


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Create a Settings object with test environment variables.

    Yields:
        Settings: A Settings instance pointing storage at a temporary directory.
    """
    with patch.dict(
        "os.environ",
        {
            "DATABASE_URL": "sqlite:///:memory:",
            "STORAGE_BASE_DIRECTORY": str(tmp_path / "recordings"),
            "FFMPEG_BINARY": "ffmpeg-test",
            "MAX_UPLOAD_SIZE_BYTES": str(1024 * 1024),
            "STREAM_CHUNK_SIZE": "16",
            "LOG_LEVEL": "DEBUG",
        },
    ):
        from vmsg.config import get_settings

        get_settings.cache_clear()
        settings = Settings(_env_file=None)
        yield settings
        get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an in-memory SQLite engine shared across sessions and threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to the test engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session connected to the in-memory database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def content_store(tmp_path: Path) -> ContentStore:
    """Content store rooted in a temporary directory."""
    return ContentStore(tmp_path / "recordings")


@pytest.fixture
def command_runner() -> FakeCommandRunner:
    """Encoder runner double that succeeds by default."""
    return FakeCommandRunner()


@pytest.fixture
def scheduler() -> DeferredScheduler:
    """Scheduler double that runs tasks only when asked."""
    return DeferredScheduler()


@pytest.fixture
def lifecycle(
    content_store: ContentStore,
    command_runner: FakeCommandRunner,
    scheduler: DeferredScheduler,
    session_factory: sessionmaker[Session],
) -> RecordingLifecycle:
    """RecordingLifecycle wired to the test doubles."""
    return RecordingLifecycle(
        store=content_store,
        transcoder=TranscodeRunner(command_runner),
        scheduler=scheduler,
        session_factory=session_factory,
        max_upload_size=1024 * 1024,
    )


@pytest.fixture
def sample_recording(db_session: Session, content_store: ContentStore) -> Recording:
    """Create a READY recording whose 100-byte file exists in the store.

    The file contents are bytes 0..99, so any slice can be checked by value.
    """
    recording_id = str(uuid4())
    storage_path = f"2025/11/03/{recording_id}.webm"
    path = content_store.absolute_path(storage_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(bytes(range(100)))

    recording = Recording(
        id=recording_id,
        original_filename="hello.webm",
        storage_path=storage_path,
        size_bytes=100,
        content_type="video/webm",
        processing_status=ProcessingStatus.READY.value,
        created_at=datetime(2025, 11, 3, 10, 30, 0, tzinfo=UTC),
    )
    db_session.add(recording)
    db_session.commit()
    db_session.refresh(recording)
    return recording
