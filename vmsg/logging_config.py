"""Logging setup shared by the web application and the CLI scripts."""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a stdout handler to the root logger.

    Safe to call more than once; only the level is updated on later calls.

    Args:
        level: Log level name such as "INFO" or "DEBUG".
    """
    global _configured

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    _configured = True
