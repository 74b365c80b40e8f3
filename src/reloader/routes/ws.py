"""WebSocket endpoint browsers connect to for reload notifications."""

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket

from reloader.errors import ClientConnectionError
from reloader.events.connection import ClientConnection

if TYPE_CHECKING:
    from reloader.events.registry import ConnectionRegistry


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Live-reload WebSocket endpoint.

    Accepts the upgrade, registers the connection, then reads until the
    client disconnects. Inbound frames are only a liveness signal. On
    exit the connection is unregistered and its transport closed.

    Args:
        websocket: Incoming WebSocket connection.
    """
    registry: ConnectionRegistry = websocket.app.state.registry
    log: Any = websocket.app.state.log

    conn = ClientConnection(websocket, asyncio.get_running_loop())
    try:
        await conn.accept()
    except ClientConnectionError as e:
        log.warning("ws_upgrade_failed", client=conn.client, error=str(e))
        return

    registry.register(conn)
    log.info(
        "ws_client_connected",
        connection_id=conn.id,
        client=conn.client,
        active_connections=len(registry),
    )

    reason = "unknown"
    try:
        reason = await conn.read_until_closed()
    finally:
        registry.unregister(conn)
        await conn.aclose()
        log.info(
            "ws_client_disconnected",
            connection_id=conn.id,
            reason=reason,
            active_connections=len(registry),
        )


def create_router(ws_path: str = "/ws") -> APIRouter:
    """Build the router serving the WebSocket endpoint at ``ws_path``.

    Args:
        ws_path: URL path for the upgrade.

    Returns:
        Router with the WebSocket route.
    """
    router = APIRouter(tags=["live-reload"])
    router.add_api_websocket_route(ws_path, websocket_endpoint)
    return router
