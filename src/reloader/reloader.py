"""Reloader: watch files, rebuild, and tell connected browsers to refresh.

One background thread drains the watch set and runs the rebuild callback
followed by a broadcast, strictly in arrival order. A uvicorn server on a
second thread accepts WebSocket connections; each connection's read loop
runs as a task on that server's event loop.
"""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from pydantic import ValidationError

from reloader.app import create_app
from reloader.config import Settings
from reloader.errors import (
    ConstructionError,
    FilesystemError,
    RebuildCallbackError,
    WatchRuntimeError,
)
from reloader.events.filter import EventFilter
from reloader.events.hub import Broadcaster
from reloader.events.registry import ConnectionRegistry
from reloader.events.types import ChangeEvent
from reloader.events.watcher import WatchSet
from reloader.lifecycle import GracefulShutdown
from reloader.logging import get_diagnostic_logger
from reloader.script import (
    ReloadScript,
    browser_host,
    render_reload_script,
    render_reload_source,
)
from reloader.server import ServerThread

POLL_INTERVAL = 0.25


class Reloader:
    """Live-reload sidecar for a development web server.

    Usage:

        reloader = Reloader(lambda: templates.reload(), 9000, enable_logging=True)
        reloader.add("./templates")
        ...
        reloader.close()

    Construction starts every background loop; ``close`` stops them.

    Attributes:
        settings: Effective configuration.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        port: int | None = None,
        *,
        settings: Settings | None = None,
        **options: Any,
    ) -> None:
        """Start watching, serving and broadcasting.

        Args:
            callback: Zero-argument rebuild function, run on every
                accepted change before clients are notified.
            port: Port for the WebSocket endpoint. Overrides settings.
            settings: Base configuration. Defaults to ``Settings()``.
            **options: Individual settings overrides, e.g.
                ``enable_logging=True``.

        Raises:
            TypeError: If an option name is unknown.
            ConstructionError: If an option value is invalid, or the
                watcher, server or script cannot be set up. Anything
                already started is torn down first.
        """
        unknown = sorted(set(options) - set(Settings.model_fields))
        if unknown:
            raise TypeError(f"unknown reloader option(s): {', '.join(unknown)}")
        if port is not None:
            options["port"] = port

        base = settings if settings is not None else Settings()
        if options:
            values = base.model_dump(exclude=set(Settings.model_computed_fields))
            try:
                base = Settings(**{**values, **options})
            except ValidationError as e:
                raise ConstructionError(f"invalid reloader option(s): {e}") from e
        self.settings = base

        self._callback = callback
        self._log = get_diagnostic_logger(self.settings.enable_logging, component="reloader")
        self._shutdown = GracefulShutdown(
            timeout=self.settings.shutdown_timeout,
            log=self._log,
        )
        self._close_lock = threading.Lock()
        self._closed = False
        self._watch_set: WatchSet | None = None
        self._server: ServerThread | None = None
        self._events_thread: threading.Thread | None = None
        self._script: ReloadScript | None = None
        self._source = ""
        self.app: FastAPI | None = None
        self._callback_failures = 0
        self._reported_drops = 0

        self._filter = EventFilter(
            extensions=self.settings.reload_extensions,
            accept_all=self.settings.accept_all_events,
            debounce_ms=self.settings.debounce_ms,
        )
        self._registry = ConnectionRegistry()
        self._broadcaster = Broadcaster(
            self._registry,
            send_timeout=self.settings.send_timeout,
            log=self._log,
        )

        try:
            self._start()
        except Exception as e:
            self.close()
            if isinstance(e, ConstructionError):
                raise
            raise ConstructionError(str(e)) from e

    def _start(self) -> None:
        self._watch_set = WatchSet(
            recursive=self.settings.recursive,
            queue_size=self.settings.event_queue_size,
        )
        self._watch_set.start()

        self._events_thread = threading.Thread(
            target=self._run,
            name="reloader-events",
            daemon=True,
        )
        self._events_thread.start()

        self.app = create_app(
            self.settings,
            self._registry,
            log=self._log,
            watched_paths=lambda: self.watched_paths,
            reload_source=lambda: self._source,
        )
        self._server = ServerThread(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            shutdown_timeout=self.settings.shutdown_timeout,
            log_level="warning" if self.settings.enable_logging else "critical",
        )
        bound = self._server.start(timeout=self.settings.startup_timeout)

        try:
            host = browser_host(self.settings.host)
            self._source = render_reload_source(bound, path=self.settings.ws_path, host=host)
            self._script = render_reload_script(bound, path=self.settings.ws_path, host=host)
        except ValueError as e:
            raise ConstructionError(f"cannot render reload script: {e}") from e

        self._log.info(
            "reloader_started",
            host=self.settings.host,
            port=bound,
            ws_path=self.settings.ws_path,
        )

    @property
    def port(self) -> int:
        """Port the WebSocket endpoint is bound to."""
        if self._server is None:
            raise RuntimeError("reloader is not running")
        return self._server.port

    @property
    def url(self) -> str:
        """WebSocket URL of the endpoint."""
        return f"ws://{self.settings.host}:{self.port}{self.settings.ws_path}"

    @property
    def watched_paths(self) -> tuple[str, ...]:
        """Paths currently being watched."""
        if self._watch_set is None:
            return ()
        return self._watch_set.targets

    @property
    def connection_count(self) -> int:
        """Number of open browser connections."""
        return len(self._registry)

    @property
    def callback_failures(self) -> int:
        """Number of times the rebuild callback raised."""
        return self._callback_failures

    @property
    def is_closed(self) -> bool:
        """Whether ``close`` has been called."""
        return self._closed

    def add(self, path: str | Path) -> str:
        """Watch a file or directory.

        Safe to call while the event loop is running. Adding a path twice
        has no further effect.

        Args:
            path: File or directory to watch.

        Returns:
            The resolved path.

        Raises:
            FilesystemError: If the path does not exist or cannot be
                watched. Existing targets are unaffected.
        """
        if self._watch_set is None or self._closed:
            raise FilesystemError(str(path), "os_error", "reloader is closed")
        try:
            resolved = self._watch_set.add(path)
        except FilesystemError as e:
            self._log.warning("watch_add_failed", path=str(path), reason=e.reason)
            raise
        self._log.info("watch_added", path=resolved)
        return resolved

    def remove(self, path: str | Path) -> bool:
        """Stop watching a path previously passed to ``add``.

        Returns:
            True if the path was being watched.
        """
        if self._watch_set is None:
            return False
        removed = self._watch_set.remove(path)
        if removed:
            self._log.info("watch_removed", path=str(path))
        return removed

    def reload_script(self) -> ReloadScript:
        """Return the ``<script>`` fragment for the host to embed in pages."""
        if self._script is None:
            raise RuntimeError("reloader is not running")
        return self._script

    def template_functions(self) -> dict[str, Callable[[], ReloadScript]]:
        """Template globals exposing the script as ``LiveReload``.

        For Jinja2: ``env.globals.update(reloader.template_functions())``
        then ``{{ LiveReload() }}`` in a template.
        """
        return {"LiveReload": self.reload_script}

    def close(self) -> None:
        """Stop the event loop, the watcher, every connection and the server.

        Idempotent, and safe after a failed construction. Waits up to
        ``shutdown_timeout`` for an in-flight rebuild callback.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._shutdown.trigger()

        if self._watch_set is not None:
            self._watch_set.stop(timeout=self.settings.shutdown_timeout)

        if self._events_thread is not None:
            self._events_thread.join(timeout=self.settings.shutdown_timeout)
            if self._events_thread.is_alive():
                self._log.warning(
                    "events_loop_still_running",
                    timeout_seconds=self.settings.shutdown_timeout,
                )

        closed = self._broadcaster.close_all()

        if self._server is not None:
            self._server.stop()
            # connections accepted while the server was shutting down
            closed += self._broadcaster.close_all()

        self._log.info("reloader_closed", connections_closed=closed)

    def __enter__(self) -> "Reloader":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _run(self) -> None:
        """Event loop: drain the watch set until shutdown."""
        assert self._watch_set is not None
        watch_set = self._watch_set
        self._log.debug("events_loop_started")

        while not self._shutdown.is_triggered:
            item = watch_set.get(timeout=POLL_INTERVAL)
            if item is None:
                continue
            if self._shutdown.is_triggered:
                break
            if isinstance(item, WatchRuntimeError):
                self._log.error("watch_error", error=str(item))
                continue
            try:
                self._handle(item)
            except Exception:
                self._log.exception("watch_loop_error", path=item.path)
            self._report_drops(watch_set)

        self._log.debug("events_loop_stopped")

    def _handle(self, event: ChangeEvent) -> None:
        self._log.info("watch_event", path=event.path, kind=event.kind.value)
        if not self._filter.accepts(event):
            self._log.debug("watch_event_ignored", path=event.path)
            return

        self._invoke_callback(event)
        delivered = self._broadcaster.broadcast(event.path)
        self._log.info(
            "reload_broadcast",
            path=event.path,
            delivered_to=delivered,
            active_connections=len(self._registry),
        )

    def _invoke_callback(self, event: ChangeEvent) -> None:
        try:
            self._callback()
        except Exception as e:
            self._callback_failures += 1
            error = RebuildCallbackError(f"rebuild callback raised {type(e).__name__}: {e}")
            self._log.exception("rebuild_failed", path=event.path, error=str(error))

    def _report_drops(self, watch_set: WatchSet) -> None:
        dropped = watch_set.dropped_events
        if dropped != self._reported_drops:
            self._log.warning("watch_events_dropped", dropped_events=dropped)
            self._reported_drops = dropped
