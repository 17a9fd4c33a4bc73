"""Content store for uploaded video files.

Files live under a single storage root, partitioned by ingestion date:
<root>/<YYYY>/<MM>/<DD>/<identity><ext>. Paths handed to callers and kept
in the database are relative to the root.
"""

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterator
from datetime import date
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".webm"
_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


class StorageError(Exception):
    """Base exception for content store failures."""

    pass


class StorageWriteError(StorageError):
    """Raised when a file cannot be written or installed in the store."""

    pass


class StorageNotFoundError(StorageError):
    """Raised when a stored file does not exist or cannot be read."""

    pass


def get_file_extension(filename: str | None) -> str:
    """Derive the stored file extension from a client-supplied filename.

    Args:
        filename: Original filename of the upload, possibly None.

    Returns:
        The extension including its leading dot, or DEFAULT_EXTENSION when
        the name has none or it is not a plain alphanumeric suffix.
    """
    if not filename:
        return DEFAULT_EXTENSION

    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    last_dot = basename.rfind(".")
    if 0 < last_dot < len(basename) - 1:
        extension = basename[last_dot:]
        if _EXTENSION_PATTERN.match(extension):
            return extension
    return DEFAULT_EXTENSION


def date_partition(day: date) -> str:
    """Return the YYYY/MM/DD partition for a day."""
    return f"{day.year:04d}/{day.month:02d}/{day.day:02d}"


class StoredFile:
    """An open, random-access handle on a stored artifact.

    The size is taken from the open descriptor, so it always describes the
    bytes this handle will serve even if the path is atomically replaced
    while the handle is open.
    """

    def __init__(self, path: Path, handle: BinaryIO):
        self.path = path
        self._handle = handle
        self.size = os.fstat(handle.fileno()).st_size

    def read_range(self, start: int, end: int) -> bytes:
        """Read the inclusive byte range [start, end]."""
        return b"".join(self.iter_range(start, end))

    def iter_range(self, start: int, end: int, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the inclusive byte range [start, end] in chunks.

        Args:
            start: First byte offset.
            end: Last byte offset, inclusive.
            chunk_size: Maximum size of each yielded chunk.

        Yields:
            Consecutive byte chunks covering the range.
        """
        remaining = end - start + 1
        self._handle.seek(start)
        while remaining > 0:
            chunk = self._handle.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> "StoredFile":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ContentStore:
    """Date-partitioned file store rooted at a fixed base directory."""

    def __init__(self, base_directory: str | os.PathLike):
        self.base_directory = Path(base_directory)

    def save(
        self,
        stream: BinaryIO,
        identity: str,
        original_filename: str | None,
        today: date | None = None,
    ) -> str:
        """Write an uploaded stream to the store.

        The bytes are written to a hidden temporary file in the target
        directory and renamed into place, so readers never see a partial
        file. An existing file at the same path is replaced.

        Args:
            stream: Readable binary stream with the upload contents.
            identity: Recording identity used as the file stem.
            original_filename: Client-supplied filename, used for the extension.
            today: Partition date. Defaults to the current local date.

        Returns:
            The storage path relative to the base directory.

        Raises:
            StorageWriteError: If any filesystem operation fails.
        """
        partition = date_partition(today or date.today())
        filename = identity + get_file_extension(original_filename)
        relative_path = f"{partition}/{filename}"
        target_dir = self.base_directory / partition
        target_path = target_dir / filename

        temp_name = None
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=target_dir, prefix=f".{identity}.", suffix=".part", delete=False
            ) as temp_file:
                temp_name = temp_file.name
                shutil.copyfileobj(stream, temp_file)
                temp_file.flush()
                os.fsync(temp_file.fileno())
            os.replace(temp_name, target_path)
        except OSError as e:
            if temp_name is not None:
                _remove_quietly(Path(temp_name))
            logger.error(f"Failed to save file {relative_path}: {e}", exc_info=True)
            raise StorageWriteError(f"Failed to save file {relative_path}: {e}") from e

        logger.info(f"Saved file to: {relative_path}")
        return relative_path

    def open(self, storage_path: str) -> StoredFile:
        """Open a stored file for reading.

        Raises:
            StorageNotFoundError: If the file is missing or not readable.
        """
        path = self.absolute_path(storage_path)
        if not path.is_file():
            raise StorageNotFoundError(f"File not found or not readable: {storage_path}")
        try:
            handle = open(path, "rb")
        except OSError as e:
            raise StorageNotFoundError(
                f"File not found or not readable: {storage_path}"
            ) from e
        return StoredFile(path, handle)

    def size(self, storage_path: str) -> int:
        """Return the current size in bytes of a stored file.

        Raises:
            StorageNotFoundError: If the file does not exist.
        """
        try:
            return self.absolute_path(storage_path).stat().st_size
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {storage_path}") from e

    def delete(self, storage_path: str) -> None:
        """Remove a stored file if it exists. Failures are logged, not raised."""
        _remove_quietly(self.absolute_path(storage_path))
        logger.info(f"Deleted file: {storage_path}")

    def absolute_path(self, storage_path: str) -> Path:
        """Resolve a storage path against the base directory. No existence check."""
        return (self.base_directory / storage_path).absolute()


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove temporary file {path}: {e}")
