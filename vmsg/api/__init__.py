"""HTTP surface of the video message service."""

from .recordings import ServiceRegistry, recordings_bp

__all__ = ["ServiceRegistry", "recordings_bp"]
