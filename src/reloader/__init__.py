"""Live-reload sidecar: watch files, rebuild, and push reloads to browsers."""
from reloader.config import Settings
from reloader.errors import (
    ClientConnectionError,
    ConstructionError,
    FilesystemError,
    RebuildCallbackError,
    ReloaderError,
    WatchRuntimeError,
)
from reloader.middleware import LiveReloadMiddleware
from reloader.reloader import Reloader
from reloader.script import ReloadScript, inject_script, render_reload_script

__version__ = "0.1.0"

__all__ = [
    "ClientConnectionError",
    "ConstructionError",
    "FilesystemError",
    "LiveReloadMiddleware",
    "RebuildCallbackError",
    "ReloadScript",
    "Reloader",
    "ReloaderError",
    "Settings",
    "WatchRuntimeError",
    "inject_script",
    "render_reload_script",
]
