"""FastAPI application factory for the reloader's WebSocket endpoint."""

from collections.abc import Callable, Iterable
from typing import Any

from fastapi import FastAPI

from reloader.config import Settings
from reloader.events.registry import ConnectionRegistry
from reloader.routes import health, ws


def create_app(
    settings: Settings,
    registry: ConnectionRegistry,
    *,
    log: Any,
    watched_paths: Callable[[], Iterable[str]] = tuple,
    reload_source: Callable[[], str] = str,
) -> FastAPI:
    """Factory function to create the reloader's own app.

    Each reloader owns one app, so several reloaders in one process never
    share route registrations.

    Args:
        settings: Reloader configuration.
        registry: Registry the WebSocket route adds connections to.
        log: Diagnostic logger used by the routes.
        watched_paths: Returns the paths currently watched.
        reload_source: Returns the client script source.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Live Reload",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.log = log
    app.state.watched_paths = watched_paths
    app.state.reload_source = reload_source

    app.include_router(ws.create_router(settings.ws_path))
    app.include_router(health.router)

    return app
