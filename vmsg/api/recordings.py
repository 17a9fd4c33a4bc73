"""HTTP endpoints for uploading, inspecting, and streaming recordings."""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from flask import Blueprint, Response, current_app, request
from sqlalchemy.orm import Session, sessionmaker

from vmsg.config import Settings
from vmsg.models import Recording
from vmsg.services.recording import RecordingLifecycle, UploadValidationError
from vmsg.services.registry import find_by_identity
from vmsg.services.retrieval import fetch_recording
from vmsg.services.storage import ContentStore

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "video"

recordings_bp = Blueprint("recordings", __name__, url_prefix="/api/recordings")


@dataclass
class ServiceRegistry:
    """Per-application service objects, stored in app.extensions["vmsg"]."""

    settings: Settings
    store: ContentStore
    lifecycle: RecordingLifecycle
    session_factory: sessionmaker[Session]


def _services() -> ServiceRegistry:
    return current_app.extensions["vmsg"]


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def recording_to_response(recording: Recording) -> dict[str, Any]:
    """Map a Recording to the upload response body."""
    return {
        "uuid": recording.id,
        "filename": recording.original_filename,
        "fileSize": recording.size_bytes,
        "contentType": recording.content_type,
        "processingStatus": recording.processing_status,
        "createdAt": _isoformat(recording.created_at),
    }


def recording_to_detail(recording: Recording) -> dict[str, Any]:
    """Map a Recording to the detail response body."""
    detail = recording_to_response(recording)
    detail["duration"] = recording.duration_ms
    detail["processingError"] = recording.processing_error
    return detail


def _json_response(body: dict[str, Any], status: int) -> Response:
    return Response(json.dumps(body), status=status, mimetype="application/json")


@recordings_bp.post("")
def upload_recording() -> Response:
    """Accept a multipart upload in the "video" field.

    Returns:
        201 with the new recording in PROCESSING status.
    """
    upload = request.files.get(UPLOAD_FIELD)
    if upload is None:
        raise UploadValidationError(f"Missing '{UPLOAD_FIELD}' file part")

    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)

    services = _services()
    with services.session_factory() as session:
        recording = services.lifecycle.submit(
            session,
            stream,
            original_filename=upload.filename,
            content_type=upload.content_type,
            declared_size=size,
        )
        body = recording_to_response(recording)

    return _json_response(body, 201)


@recordings_bp.get("/<recording_id>")
def get_recording(recording_id: str) -> Response:
    """Return the recording's metadata and processing status."""
    with _services().session_factory() as session:
        body = recording_to_detail(find_by_identity(session, recording_id))
    return _json_response(body, 200)


@recordings_bp.get("/<recording_id>/stream")
def stream_recording(recording_id: str) -> Response:
    """Serve the recording's bytes, honouring a single-range Range header."""
    range_header = request.headers.get("Range")
    logger.info(f"Stream request received for UUID: {recording_id} with Range: {range_header}")

    services = _services()
    with services.session_factory() as session:
        result = fetch_recording(
            session,
            services.store,
            recording_id,
            range_header=range_header,
            chunk_size=services.settings.STREAM_CHUNK_SIZE,
        )

    response = Response(
        result.body,
        status=result.status_code,
        content_type=result.content_type,
        direct_passthrough=True,
    )
    response.headers.update(result.headers)
    response.headers["Content-Length"] = str(result.content_length)
    return response
