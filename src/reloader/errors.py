"""Reloader error hierarchy.

All reloader errors inherit from ReloaderError for easy catching.
Construction errors are raised to the caller; the runtime ones are
logged by the background loops and never escape them.
"""
from typing import Literal

FilesystemReason = Literal["not_found", "permission_denied", "os_error"]


class ReloaderError(Exception):
    """Base error for all reloader operations."""


class ConstructionError(ReloaderError):
    """The watch primitive, server or script could not be set up."""


class FilesystemError(ReloaderError):
    """A watch target could not be registered.

    Attributes:
        path: The path that was passed to ``add``.
        reason: Why registration failed.
    """

    def __init__(self, path: str, reason: FilesystemReason, detail: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"cannot watch {path!r}: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class WatchRuntimeError(ReloaderError):
    """The filesystem observer reported an error while running."""


class ClientConnectionError(ReloaderError):
    """A WebSocket upgrade or send failed."""


class RebuildCallbackError(ReloaderError):
    """The user rebuild callback raised."""
