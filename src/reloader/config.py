"""Reloader configuration loaded from environment variables."""
from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reloader.events.types import DEFAULT_RELOAD_EXTENSIONS


class Settings(BaseSettings):
    """Reloader configuration loaded from environment variables.

    Every field can also be passed as a keyword option to ``Reloader``;
    options given there win over the environment.

    Attributes:
        host: Bind address for the WebSocket endpoint. Loopback by default.
        port: TCP port for the WebSocket endpoint. ``0`` picks a free port.
        ws_path: URL path the WebSocket upgrade is served on.
        enable_logging: Emit diagnostics for every watch event, error and
            connection transition. Silent when False.
        debug: Enable debug-level output when logging is configured.
        reload_extensions_raw: Comma-separated file suffixes that trigger
            a reload.
        accept_all_events: Accept every event regardless of suffix.
        recursive: Watch directories recursively.
        debounce_ms: Suppress repeat events for the same path within this
            window. ``0`` disables coalescing.
        event_queue_size: Capacity of the queue between the filesystem
            observer and the event loop.
        send_timeout: Seconds to wait for one WebSocket send.
        startup_timeout: Seconds to wait for the server to bind.
        shutdown_timeout: Seconds to wait for background threads on close.
        watch_paths_raw: Comma-separated paths watched by the CLI.
        rebuild_command: Shell command the CLI runs on every change.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 9000
    ws_path: str = "/ws"
    enable_logging: bool = False
    debug: bool = False

    reload_extensions_raw: str = ",".join(DEFAULT_RELOAD_EXTENSIONS)
    accept_all_events: bool = False
    recursive: bool = True
    debounce_ms: int = 0
    event_queue_size: int = 1024

    send_timeout: float = 5.0
    startup_timeout: float = 5.0
    shutdown_timeout: float = 5.0

    watch_paths_raw: str = ""
    rebuild_command: str = ""

    @computed_field
    @property
    def reload_extensions(self) -> list[str]:
        """Parse reload-worthy suffixes from comma-separated string.

        Returns:
            Lower-cased suffixes, each starting with a dot.
        """
        extensions = []
        for ext in self.reload_extensions_raw.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            extensions.append(ext if ext.startswith(".") else f".{ext}")
        return extensions

    @computed_field
    @property
    def watch_paths(self) -> list[str]:
        """Parse watch paths from comma-separated string.

        Returns:
            List of file or directory paths to watch.
        """
        return [
            path.strip()
            for path in self.watch_paths_raw.split(",")
            if path.strip()
        ]
