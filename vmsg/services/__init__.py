"""Services module for the video message service.

This module exports service modules that handle core business logic
for storage, re-encoding, the recording registry, and retrieval.
"""

from vmsg.services import recording, registry, retrieval, scheduler, storage, transcode

__all__ = ["recording", "registry", "retrieval", "scheduler", "storage", "transcode"]
