"""Event filter deciding which changes trigger a rebuild."""

import threading
import time
from collections.abc import Iterable
from pathlib import PurePath

from reloader.events.types import (
    DEFAULT_RELOAD_EXTENSIONS,
    TEMP_FILE_PATTERNS,
    ChangeEvent,
)


def is_temp_file(path: str) -> bool:
    """Check if path is an editor or VCS artifact that should be ignored.

    Args:
        path: File path to check.

    Returns:
        True if the file is a temporary file.
    """
    p = PurePath(path)
    if ".git" in p.parts[:-1]:
        return True
    name = p.name
    if name.startswith(".#"):
        return True
    return any(name == pattern or name.endswith(pattern) for pattern in TEMP_FILE_PATTERNS)


class EventFilter:
    """Accept/reject policy applied to every change event.

    Baseline policy accepts events whose suffix is reload-worthy. The
    permissive variant accepts every non-temporary event. An optional
    per-path debounce window coalesces bursts such as editors writing a
    file several times per save.

    Attributes:
        accept_all: Whether suffixes are ignored.
        debounce_ms: Coalescing window in milliseconds, 0 when disabled.
    """

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_RELOAD_EXTENSIONS,
        accept_all: bool = False,
        debounce_ms: int = 0,
    ) -> None:
        """Initialize event filter.

        Args:
            extensions: Reload-worthy suffixes, case-insensitive.
            accept_all: Accept every event regardless of suffix.
            debounce_ms: Coalescing window in milliseconds.
        """
        self._extensions = frozenset(ext.lower() for ext in extensions)
        self.accept_all = accept_all
        self.debounce_ms = debounce_ms
        self._last_accepted: dict[str, float] = {}
        self._lock = threading.Lock()
        self._coalesced_count = 0

    @property
    def extensions(self) -> frozenset[str]:
        """Suffixes considered reload-worthy."""
        return self._extensions

    @property
    def coalesced_events(self) -> int:
        """Number of events suppressed by the debounce window."""
        return self._coalesced_count

    def matches(self, path: str) -> bool:
        """Check the path-based part of the policy.

        Args:
            path: Path of the changed file.

        Returns:
            True if the path is eligible for a reload.
        """
        if is_temp_file(path):
            return False
        if self.accept_all:
            return True
        return PurePath(path).suffix.lower() in self._extensions

    def accepts(self, event: ChangeEvent, now: float | None = None) -> bool:
        """Decide whether an event triggers a rebuild and a broadcast.

        Args:
            event: Change event to check.
            now: Monotonic timestamp, defaults to the current time.

        Returns:
            True if the event should be processed.
        """
        if not self.matches(event.path):
            return False
        if self.debounce_ms <= 0:
            return True

        ts = time.monotonic() if now is None else now
        window = self.debounce_ms / 1000.0
        with self._lock:
            last = self._last_accepted.get(event.path)
            if last is not None and ts - last < window:
                self._coalesced_count += 1
                return False
            self._last_accepted[event.path] = ts
        return True

    def reset(self) -> None:
        """Forget debounce history."""
        with self._lock:
            self._last_accepted.clear()
