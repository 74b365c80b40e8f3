"""Filesystem watch set bridging watchdog events into a bounded queue."""

import contextlib
import errno
import queue
import threading
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from reloader.errors import ConstructionError, FilesystemError, WatchRuntimeError
from reloader.events.normalizer import normalize_event
from reloader.events.types import ChangeEvent

WatchItem = ChangeEvent | WatchRuntimeError


class QueueingHandler(FileSystemEventHandler):
    """Watchdog event handler feeding a bounded queue.

    Runs on the observer's dispatch thread. Errors raised while
    normalizing are queued as WatchRuntimeError items on the same queue,
    so a single consumer sees events and errors in arrival order.

    When the queue is full the oldest item is discarded to make room.
    """

    def __init__(self, items: "queue.Queue[WatchItem]") -> None:
        """Initialize queueing handler.

        Args:
            items: Queue shared with the event loop.
        """
        super().__init__()
        self._items = items
        self._lock = threading.Lock()
        self._dropped_count = 0

    @property
    def dropped_events(self) -> int:
        """Number of items discarded because the queue was full."""
        return self._dropped_count

    def put(self, item: WatchItem) -> None:
        """Enqueue an item using the drop-oldest overflow strategy.

        Args:
            item: Change event or runtime error.
        """
        with self._lock:
            try:
                self._items.put_nowait(item)
            except queue.Full:
                with contextlib.suppress(queue.Empty):
                    self._items.get_nowait()
                    self._dropped_count += 1
                self._items.put_nowait(item)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Normalize a raw event and enqueue it.

        Args:
            event: Raw watchdog filesystem event.
        """
        try:
            change = normalize_event(event)
        except Exception as e:
            self.put(WatchRuntimeError(f"cannot normalize {event!r}: {e}"))
            return
        if change is not None:
            self.put(change)


class WatchSet:
    """Set of watched paths backed by a watchdog Observer.

    Wraps the observer and its handler to provide add/remove of targets
    and a blocking ``get`` for the consuming loop. ``add`` may be called
    from any thread while the observer runs.

    Attributes:
        recursive: Whether directories are watched recursively.
        queue_size: Capacity of the event queue.
    """

    def __init__(self, recursive: bool = True, queue_size: int = 1024) -> None:
        """Initialize watch set.

        Args:
            recursive: Watch directories recursively.
            queue_size: Maximum number of queued items.
        """
        self.recursive = recursive
        self.queue_size = queue_size
        self._items: queue.Queue[WatchItem] = queue.Queue(maxsize=queue_size)
        self._handler = QueueingHandler(self._items)
        self._watches: dict[str, ObservedWatch] = {}
        self._lock = threading.Lock()
        self._observer: Any = None
        self._closed = False
        self._stopped_targets: set[str] = set()
        self._observer_stopped = False

    @property
    def targets(self) -> tuple[str, ...]:
        """Paths currently being watched."""
        with self._lock:
            return tuple(self._watches)

    @property
    def dropped_events(self) -> int:
        """Number of events lost to queue overflow."""
        return self._handler.dropped_events

    @property
    def is_running(self) -> bool:
        """Whether the observer thread is active."""
        return self._observer is not None and self._observer.is_alive()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str | Path):
            return False
        with self._lock:
            return _resolve(path) in self._watches

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            ConstructionError: If the observer cannot be created or started.
        """
        try:
            observer = Observer()
            observer.start()
        except Exception as e:
            raise ConstructionError(f"cannot start filesystem observer: {e}") from e
        self._observer = observer

    def add(self, path: str | Path) -> str:
        """Register a file or directory for change notification.

        Adding a path that is already watched is a no-op.

        Args:
            path: File or directory to watch.

        Returns:
            The resolved path now being watched.

        Raises:
            FilesystemError: If the path does not exist, cannot be watched,
                or the watch set is not running.
        """
        raw = str(path)
        resolved = _resolve(path)
        p = Path(resolved)
        if not p.exists():
            raise FilesystemError(raw, "not_found")

        with self._lock:
            if self._observer is None or self._closed:
                raise FilesystemError(raw, "os_error", "watch set is not running")
            if resolved in self._watches:
                return resolved
            try:
                watch = self._observer.schedule(
                    self._handler,
                    resolved,
                    recursive=self.recursive and p.is_dir(),
                )
            except PermissionError as e:
                raise FilesystemError(raw, "permission_denied", str(e)) from e
            except FileNotFoundError as e:
                raise FilesystemError(raw, "not_found", str(e)) from e
            except OSError as e:
                if e.errno in (errno.EACCES, errno.EPERM):
                    raise FilesystemError(raw, "permission_denied", str(e)) from e
                raise FilesystemError(raw, "os_error", str(e)) from e
            self._watches[resolved] = watch
        return resolved

    def remove(self, path: str | Path) -> bool:
        """Stop watching a single target.

        Other targets are unaffected.

        Args:
            path: A path previously passed to ``add``.

        Returns:
            True if the path was watched and has been removed.
        """
        resolved = _resolve(path)
        with self._lock:
            watch = self._watches.pop(resolved, None)
            self._stopped_targets.discard(resolved)
            if watch is None or self._observer is None:
                return False
            with contextlib.suppress(KeyError):
                self._observer.unschedule(watch)
        return True

    def get(self, timeout: float) -> WatchItem | None:
        """Wait for the next change event or runtime error.

        An observer or per-target emitter that has stopped on its own, for
        example because a watched directory was deleted, is reported once
        as a WatchRuntimeError.

        Args:
            timeout: Seconds to block.

        Returns:
            The next item, or None if nothing arrived within timeout.
        """
        self._check_emitters()
        try:
            return self._items.get(timeout=timeout)
        except queue.Empty:
            return None

    def _check_emitters(self) -> None:
        with self._lock:
            observer = self._observer
            if observer is None or self._closed:
                return
            if not observer.is_alive():
                if not self._observer_stopped:
                    self._observer_stopped = True
                    self._handler.put(WatchRuntimeError("filesystem observer stopped"))
                return
            emitters = {emitter.watch: emitter for emitter in observer.emitters}
            for path, watch in self._watches.items():
                if path in self._stopped_targets:
                    continue
                emitter = emitters.get(watch)
                if emitter is not None and not emitter.is_alive():
                    self._stopped_targets.add(path)
                    self._handler.put(WatchRuntimeError(f"watch on {path} stopped"))

    def put(self, item: WatchItem) -> None:
        """Inject an item as if the observer had produced it."""
        self._handler.put(item)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the observer and release its OS resources.

        Idempotent.

        Args:
            timeout: Seconds to wait for the observer thread.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            observer = self._observer
            self._watches.clear()

        if observer is not None and observer.is_alive():
            observer.stop()
            observer.join(timeout=timeout)


def _resolve(path: str | Path) -> str:
    return str(Path(path).expanduser().resolve())
