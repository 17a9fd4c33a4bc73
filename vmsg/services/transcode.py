"""Re-encoding of stored recordings with ffmpeg.

Browser-recorded video is not always standards-compliant WebM, so every upload
is re-encoded to VP9/Opus WebM. The encoder writes to a temporary file next
to the input, which is renamed over the input once the encoder exits
cleanly.
"""

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from vmsg.services.storage import StorageWriteError

logger = logging.getLogger(__name__)

CANONICAL_CONTENT_TYPE = "video/webm"
TEMP_SUFFIX = "_tmp"

# Longest diagnostic tail kept in exception messages
MAX_DIAGNOSTIC_CHARS = 300

_POLL_INTERVAL_SECONDS = 0.5


class TranscodeError(Exception):
    """Base exception for re-encoding failures."""

    pass


class TranscodeInputMissing(TranscodeError):
    """Raised when the file to re-encode does not exist."""

    pass


class TranscodeFailed(TranscodeError):
    """Raised when the encoder exits with a non-zero code.

    Attributes:
        exit_code: The encoder's exit code.
        output: Combined stdout/stderr of the encoder.
    """

    def __init__(self, exit_code: int, output: str):
        self.exit_code = exit_code
        self.output = output
        tail = output.strip()[-MAX_DIAGNOSTIC_CHARS:]
        message = f"ffmpeg re-encoding failed with exit code {exit_code}"
        if tail:
            message = f"{message}: {tail}"
        super().__init__(message)


class TranscodeInterrupted(TranscodeError):
    """Raised when waiting for the encoder was interrupted or timed out."""

    pass


@dataclass
class ExitResult:
    """Outcome of an external command.

    Attributes:
        exit_code: Process exit code, 0 on success.
        output: Combined stdout/stderr text.
    """

    exit_code: int
    output: str


class CommandRunner(Protocol):
    """Runs an external command to completion."""

    def run(self, args: list[str]) -> ExitResult:
        """Run the command and return its exit code and output.

        Raises:
            InterruptedError: If the wait was interrupted.
        """
        ...


class SubprocessCommandRunner:
    """CommandRunner that spawns a real process.

    Args:
        timeout: Seconds to wait before killing the process, None for no limit.
        cancel_event: When set, a running process is killed.
    """

    def __init__(
        self,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.timeout = timeout
        self.cancel_event = cancel_event

    def run(self, args: list[str]) -> ExitResult:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        # Drain output on a separate thread so a chatty encoder cannot block on a full pipe
        chunks: list[bytes] = []
        reader = threading.Thread(
            target=lambda: chunks.extend(iter(lambda: process.stdout.read(8192), b"")),
            daemon=True,
        )
        reader.start()

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        try:
            while True:
                try:
                    exit_code = process.wait(timeout=_POLL_INTERVAL_SECONDS)
                    break
                except subprocess.TimeoutExpired:
                    if self.cancel_event is not None and self.cancel_event.is_set():
                        raise InterruptedError("Encoder run was cancelled")
                    if deadline is not None and time.monotonic() >= deadline:
                        raise InterruptedError(
                            f"Encoder did not finish within {self.timeout} seconds"
                        )
        except BaseException:
            process.kill()
            process.wait()
            raise
        finally:
            reader.join(timeout=5)
            process.stdout.close()

        return ExitResult(
            exit_code=exit_code,
            output=b"".join(chunks).decode("utf-8", errors="replace"),
        )


def get_temp_path(video_path: Path) -> Path:
    """Return the sibling path the encoder writes to.

    "clip.webm" becomes "clip_tmp.webm"; a name without an extension
    gets the suffix appended.
    """
    name = video_path.name
    last_dot = name.rfind(".")
    if last_dot > 0:
        temp_name = name[:last_dot] + TEMP_SUFFIX + name[last_dot:]
    else:
        temp_name = name + TEMP_SUFFIX
    return video_path.with_name(temp_name)


def build_ffmpeg_command(
    input_path: Path,
    output_path: Path,
    ffmpeg_binary: str = "ffmpeg",
) -> list[str]:
    """Build the canonical VP9/Opus WebM encoder command line."""
    return [
        ffmpeg_binary,
        "-y",
        "-fflags", "+genpts",
        "-i", str(input_path.absolute()),
        # Video: VP9
        "-c:v", "libvpx-vp9",
        "-b:v", "1M",
        "-crf", "31",
        "-maxrate", "1.5M",
        "-bufsize", "2M",
        # Audio: Opus
        "-c:a", "libopus",
        "-b:a", "128k",
        "-vbr", "on",
        "-f", "webm",
        "-avoid_negative_ts", "make_zero",
        str(output_path.absolute()),
    ]


class TranscodeRunner:
    """Re-encodes a file in place using an external encoder.

    Args:
        command_runner: Executes the encoder command.
        ffmpeg_binary: Encoder executable name or path.
    """

    def __init__(self, command_runner: CommandRunner, ffmpeg_binary: str = "ffmpeg"):
        self.command_runner = command_runner
        self.ffmpeg_binary = ffmpeg_binary

    def reencode(self, video_path: str | os.PathLike) -> None:
        """Re-encode a video file and replace it with the result.

        Args:
            video_path: Absolute path of the file to re-encode.

        Raises:
            TranscodeInputMissing: If the input file does not exist.
            TranscodeFailed: If the encoder exits with a non-zero code.
            TranscodeInterrupted: If the wait for the encoder was interrupted.
            StorageWriteError: If staging or installing the output fails.
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise TranscodeInputMissing(f"Video file does not exist: {video_path}")

        temp_path = get_temp_path(video_path)
        command = build_ffmpeg_command(video_path, temp_path, self.ffmpeg_binary)

        logger.info(f"Re-encoding video file: {video_path.name}")
        logger.debug(f"ffmpeg command: {' '.join(command)}")

        try:
            result = self.command_runner.run(command)
        except InterruptedError as e:
            _discard(temp_path)
            raise TranscodeInterrupted(f"Video re-encoding was interrupted: {e}") from e
        except OSError as e:
            _discard(temp_path)
            raise StorageWriteError(f"Failed to run encoder for {video_path.name}: {e}") from e
        except BaseException:
            # KeyboardInterrupt or SystemExit while the CLI waits on the main thread
            _discard(temp_path)
            raise

        if result.exit_code != 0:
            logger.error(
                f"ffmpeg re-encoding failed with exit code {result.exit_code}: {result.output}"
            )
            _discard(temp_path)
            raise TranscodeFailed(result.exit_code, result.output)

        try:
            # Atomic rename over the original; readers holding it open keep the old bytes
            os.replace(temp_path, video_path)
        except OSError as e:
            _discard(temp_path)
            raise StorageWriteError(
                f"Failed to install re-encoded file {video_path.name}: {e}"
            ) from e

        logger.info(f"Successfully re-encoded video file: {video_path.name}")


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove temporary file {temp_path}: {e}")
