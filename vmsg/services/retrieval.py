"""Byte-serving of stored recordings with single-range support.

The retrieval path does not look at a recording's status: whatever file
is currently at the recording's storage path is served. The file is opened
once per request and its size is taken from the open handle, so a re-encode
that atomically replaces the file mid-request cannot make the declared
length disagree with the bytes sent.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from vmsg.services.registry import RecordingNotFoundError, find_by_identity
from vmsg.services.storage import ContentStore, StorageNotFoundError, StoredFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
FALLBACK_CONTENT_TYPE = "application/octet-stream"


class RangeNotSatisfiable(Exception):
    """Raised for Range headers that are malformed, multi-range, or out of bounds.

    Attributes:
        size: Size of the file the range was checked against.
    """

    def __init__(self, size: int, reason: str):
        self.size = size
        super().__init__(reason)


@dataclass(frozen=True)
class ByteRange:
    """An inclusive byte range [start, end]."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


@dataclass
class StreamResult:
    """What the transport needs to answer a stream request.

    Attributes:
        status_code: 200 for full content, 206 for a partial range.
        content_type: MIME type to send.
        content_length: Number of bytes body will yield.
        headers: Response headers, including Content-Range for 206.
        body: Iterator over the bytes to send; closes the file when exhausted.
    """

    status_code: int
    content_type: str
    content_length: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Iterator[bytes] = field(default_factory=lambda: iter(()))


def parse_range_header(range_header: str | None, size: int) -> ByteRange | None:
    """Parse a single-range "bytes=<start>-<end>?" header.

    An end past the last byte is clamped to size - 1. A missing end means
    "to the end of the file".

    Args:
        range_header: Raw Range header value, or None.
        size: Size of the file in bytes.

    Returns:
        ByteRange for the request, or None when no range was requested.

    Raises:
        RangeNotSatisfiable: If the header is malformed, asks for more than
            one range, omits the start, or starts at or past the end of file
            or after its own end.
    """
    if range_header is None or not range_header.strip():
        return None

    unit, sep, ranges = range_header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeNotSatisfiable(size, f"Unsupported range unit: {range_header}")
    if "," in ranges:
        raise RangeNotSatisfiable(size, "Multiple ranges are not supported")

    start_text, dash, end_text = ranges.strip().partition("-")
    start_text, end_text = start_text.strip(), end_text.strip()
    if not dash or not start_text.isdigit():
        raise RangeNotSatisfiable(size, f"Invalid range: {range_header}")
    if end_text and not end_text.isdigit():
        raise RangeNotSatisfiable(size, f"Invalid range: {range_header}")

    start = int(start_text)
    end = int(end_text) if end_text else size - 1

    if start >= size:
        raise RangeNotSatisfiable(size, f"Range start {start} is beyond file size {size}")
    if start > end:
        raise RangeNotSatisfiable(size, f"Range start {start} is after range end {end}")

    return ByteRange(start=start, end=min(end, size - 1))


def media_type_for(content_type: str | None) -> str:
    """Return a content type safe to send in a response header.

    Recorder-supplied types such as "video/webm;codecs=vp8,opus" carry a
    comma inside an unquoted parameter; those fall back to the base type.
    """
    if not content_type or not content_type.strip():
        return FALLBACK_CONTENT_TYPE
    base_type = content_type.split(";", 1)[0].strip()
    if "/" not in base_type:
        return FALLBACK_CONTENT_TYPE
    if "," in content_type:
        logger.warning(f"Failed to parse full content type {content_type}, using base type {base_type}")
        return base_type
    return content_type.strip()


def fetch_recording(
    session: Session,
    store: ContentStore,
    recording_id: str,
    range_header: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> StreamResult:
    """Look up a recording and prepare its bytes for streaming.

    Args:
        session: SQLAlchemy database session.
        store: Content store holding the recording files.
        recording_id: Identity of the recording.
        range_header: Raw Range header value, or None for the full file.
        chunk_size: Size of chunks yielded by the body iterator.

    Returns:
        StreamResult: Full content (200) or the requested slice (206).

    Raises:
        RecordingNotFoundError: If the recording or its file does not exist.
        RangeNotSatisfiable: If the Range header cannot be honoured.
    """
    recording = find_by_identity(session, recording_id)

    try:
        stored = store.open(recording.storage_path)
    except StorageNotFoundError as e:
        logger.error(
            f"Video file missing for UUID: {recording_id}, path: {recording.storage_path}"
        )
        raise RecordingNotFoundError(
            f"Video file does not exist for recording: {recording_id}"
        ) from e

    try:
        byte_range = parse_range_header(range_header, stored.size)
    except RangeNotSatisfiable:
        stored.close()
        raise

    content_type = media_type_for(recording.content_type)
    headers = {"Accept-Ranges": "bytes"}

    if byte_range is None:
        logger.info(f"Returning full content for {recording_id}: {stored.size} bytes")
        return StreamResult(
            status_code=200,
            content_type=content_type,
            content_length=stored.size,
            headers=headers,
            body=_stream(stored, 0, stored.size - 1, chunk_size),
        )

    headers["Content-Range"] = byte_range.content_range(stored.size)
    logger.info(
        f"Returning partial content for {recording_id}: {headers['Content-Range']}"
    )
    return StreamResult(
        status_code=206,
        content_type=content_type,
        content_length=byte_range.length,
        headers=headers,
        body=_stream(stored, byte_range.start, byte_range.end, chunk_size),
    )


def _stream(stored: StoredFile, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
    try:
        yield from stored.iter_range(start, end, chunk_size)
    finally:
        stored.close()
