"""Graceful shutdown coordinator for background threads."""
import threading
from typing import Any

import structlog


class GracefulShutdown:
    """Coordinates graceful shutdown across background threads.

    This class provides a mechanism for signaling shutdown to multiple
    concurrent loops and waiting for them to observe it. Loops poll
    ``is_triggered`` at each of their suspension points.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        name: str = "reloader",
        log: Any = None,
    ) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Default seconds to wait for shutdown completion.
            name: Label used in log entries.
            log: Bound logger for diagnostics. Defaults to structlog's.
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._timeout = timeout
        self._name = name
        self._log = log if log is not None else structlog.get_logger()

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered.

        Returns:
            True if shutdown signal received.
        """
        return self._event.is_set()

    def trigger(self) -> bool:
        """Signal all waiting loops to begin shutdown.

        Idempotent - calling multiple times has no additional effect.

        Returns:
            True for the call that actually triggered shutdown.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
        self._log.debug("shutdown_triggered", name=self._name)
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is triggered.

        Args:
            timeout: Seconds to wait, uses default if None.

        Returns:
            True if triggered within timeout, False if timeout exceeded.
        """
        t = timeout if timeout is not None else self._timeout
        return self._event.wait(timeout=t)

    def wait_forever(self) -> None:
        """Wait indefinitely for shutdown signal.

        Blocks until trigger() is called from another thread or a signal
        handler.
        """
        self._event.wait()
