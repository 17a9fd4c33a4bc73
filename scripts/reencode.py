#!/usr/bin/env python3
"""Re-encode a local video file in place with the canonical WebM profile."""

import argparse
import sys
from pathlib import Path

from vmsg.config import get_settings
from vmsg.logging_config import configure_logging
from vmsg.services.storage import StorageError
from vmsg.services.transcode import (
    SubprocessCommandRunner,
    TranscodeError,
    TranscodeRunner,
)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Re-encode a video file in place to VP9/Opus WebM"
    )
    parser.add_argument(
        "video_file",
        type=Path,
        help="Path to the local video file",
    )
    parser.add_argument(
        "--ffmpeg",
        default=None,
        help="Encoder executable (default: FFMPEG_BINARY setting)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the encoder (default: TRANSCODE_TIMEOUT_SECONDS setting)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    if not args.video_file.is_file():
        print(f"Error: File not found: {args.video_file}", file=sys.stderr)
        return 1

    runner = TranscodeRunner(
        SubprocessCommandRunner(timeout=args.timeout or settings.TRANSCODE_TIMEOUT_SECONDS),
        ffmpeg_binary=args.ffmpeg or settings.FFMPEG_BINARY,
    )

    size_before = args.video_file.stat().st_size
    try:
        runner.reencode(args.video_file)
    except (TranscodeError, StorageError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    size_after = args.video_file.stat().st_size
    print(f"Re-encoded {args.video_file}: {size_before} -> {size_after} bytes")
    return 0


if __name__ == "__main__":
    sys.exit(main())
