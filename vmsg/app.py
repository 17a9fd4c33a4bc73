"""Main Flask application for the video message service.

This module provides the application factory, the JSON error handlers,
and the health check endpoint.
"""

import atexit
import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from flask import Flask, Response
from sqlalchemy.orm import Session
from werkzeug.exceptions import HTTPException

from vmsg.api import ServiceRegistry, recordings_bp
from vmsg.config import Settings, get_settings
from vmsg.db import get_session_factory, init_db
from vmsg.logging_config import configure_logging
from vmsg.services.recording import IngestionFailed, RecordingLifecycle, UploadValidationError
from vmsg.services.registry import RecordingNotFoundError
from vmsg.services.retrieval import RangeNotSatisfiable
from vmsg.services.scheduler import TaskScheduler, ThreadTaskScheduler
from vmsg.services.storage import ContentStore
from vmsg.services.transcode import CommandRunner, SubprocessCommandRunner, TranscodeRunner

logger = logging.getLogger(__name__)

# Application version
__version__ = "0.1.0"


def _error_response(message: str, status: int, headers: dict[str, str] | None = None) -> Response:
    body = {
        "timestamp": datetime.now(UTC).isoformat(),
        "message": message,
        "status": status,
    }
    return Response(
        json.dumps(body),
        status=status,
        mimetype="application/json",
        headers=headers,
    )


def register_error_handlers(app: Flask) -> None:
    """Map service exceptions to JSON error responses."""

    @app.errorhandler(RecordingNotFoundError)
    def handle_not_found(e: RecordingNotFoundError) -> Response:
        logger.info(f"Recording not found: {e}")
        return _error_response(str(e), 404)

    @app.errorhandler(UploadValidationError)
    def handle_invalid_upload(e: UploadValidationError) -> Response:
        logger.warning(f"Upload rejected: {e}")
        return _error_response(str(e), e.status_code)

    @app.errorhandler(RangeNotSatisfiable)
    def handle_bad_range(e: RangeNotSatisfiable) -> Response:
        logger.warning(f"Range not satisfiable: {e}")
        return _error_response(str(e), 416, headers={"Content-Range": f"bytes */{e.size}"})

    @app.errorhandler(IngestionFailed)
    def handle_ingestion_failed(e: IngestionFailed) -> Response:
        logger.error(f"Error uploading recording: {e}", exc_info=True)
        return _error_response(str(e), 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception) -> Response | HTTPException:
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return _error_response(f"An error occurred: {e}", 500)


def create_app(
    settings: Settings | None = None,
    scheduler: TaskScheduler | None = None,
    command_runner: CommandRunner | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> Flask:
    """Build the Flask application and wire its services.

    Args:
        settings: Application settings. Defaults to get_settings().
        scheduler: Background task scheduler. Defaults to a ThreadTaskScheduler.
        command_runner: Runs the encoder. Defaults to a SubprocessCommandRunner
            that stops when the scheduler shuts down.
        session_factory: Opens database sessions. Defaults to the cached engine.

    Returns:
        The configured Flask application.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    scheduler = scheduler or ThreadTaskScheduler()
    command_runner = command_runner or SubprocessCommandRunner(
        timeout=settings.TRANSCODE_TIMEOUT_SECONDS,
        cancel_event=scheduler.cancel_event,
    )
    session_factory = session_factory or get_session_factory()

    store = ContentStore(settings.STORAGE_BASE_DIRECTORY)
    lifecycle = RecordingLifecycle(
        store=store,
        transcoder=TranscodeRunner(command_runner, ffmpeg_binary=settings.FFMPEG_BINARY),
        scheduler=scheduler,
        session_factory=session_factory,
        max_upload_size=settings.MAX_UPLOAD_SIZE_BYTES,
    )

    app = Flask(__name__)
    app.config["DEBUG"] = settings.DEBUG
    app.extensions["vmsg"] = ServiceRegistry(
        settings=settings,
        store=store,
        lifecycle=lifecycle,
        session_factory=session_factory,
    )

    app.register_blueprint(recordings_bp)
    register_error_handlers(app)

    @app.get("/health")
    def health_check() -> Response:
        """Return health status of the application."""
        return Response(
            json.dumps({"status": "healthy", "version": __version__}),
            mimetype="application/json",
        )

    logger.info(f"Storage root: {store.base_directory.absolute()}")
    return app


if __name__ == "__main__":
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        init_db()
    scheduler = ThreadTaskScheduler()
    atexit.register(scheduler.shutdown, True, 5)
    app = create_app(settings, scheduler=scheduler)
    app.run(debug=settings.DEBUG, host="0.0.0.0", port=8080)
