"""A single browser WebSocket connection, usable from any thread."""

import asyncio
import concurrent.futures
import contextlib
import threading
import uuid
from enum import Enum

from starlette.websockets import WebSocket, WebSocketState

from reloader.errors import ClientConnectionError


class ConnectionState(str, Enum):
    """Lifecycle of a client connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ClientConnection:
    """Wraps an accepted WebSocket and the event loop that serves it.

    The WebSocket can only be driven from its own loop. ``send`` and
    ``close`` hop onto that loop with ``run_coroutine_threadsafe`` so the
    watch loop and the registry can call them from other threads.

    Attributes:
        id: Unique connection identity.
        client: Remote address, for logging.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        """Initialize client connection.

        Args:
            websocket: Starlette WebSocket in the connecting state.
            loop: Event loop running the WebSocket's ASGI task.
        """
        self.id = uuid.uuid4().hex
        self.client = (
            f"{websocket.client.host}:{websocket.client.port}" if websocket.client else None
        )
        self._websocket = websocket
        self._loop = loop
        self._state = ConnectionState.CONNECTING
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"ClientConnection(id={self.id!r}, state={self._state.value!r})"

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether the connection can still be sent to."""
        return self._state is ConnectionState.OPEN

    async def accept(self) -> None:
        """Complete the upgrade handshake.

        Raises:
            ClientConnectionError: If the handshake fails. The connection
                is then closed without ever having been open.
        """
        try:
            await self._websocket.accept()
        except Exception as e:
            self._state = ConnectionState.CLOSED
            raise ClientConnectionError(f"upgrade failed: {e}") from e
        self._state = ConnectionState.OPEN

    async def read_until_closed(self) -> str:
        """Consume inbound frames until the client goes away.

        Inbound messages carry no meaning; they only prove liveness.

        Returns:
            Reason the loop ended.
        """
        while self.is_open:
            try:
                message = await self._websocket.receive()
            except Exception as e:
                return f"read error: {e}"
            if message["type"] == "websocket.disconnect":
                return f"client closed ({message.get('code', 1000)})"
        return "closed by server"

    def send(self, payload: str, timeout: float = 5.0) -> None:
        """Send a text frame from any thread.

        Args:
            payload: UTF-8 text to send.
            timeout: Seconds to wait for the frame to be written.

        Raises:
            ClientConnectionError: If the connection is not open or the
                send fails or times out.
        """
        if not self.is_open:
            raise ClientConnectionError(f"connection {self.id} is {self._state.value}")
        try:
            future = asyncio.run_coroutine_threadsafe(
                self._websocket.send_text(payload), self._loop
            )
        except RuntimeError as e:
            raise ClientConnectionError(f"event loop unavailable: {e}") from e
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            raise ClientConnectionError(f"send timed out after {timeout}s") from e
        except Exception as e:
            raise ClientConnectionError(f"send failed: {e}") from e

    async def aclose(self, code: int = 1000) -> None:
        """Close the transport from inside the connection's loop.

        Idempotent.
        """
        with self._lock:
            if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            self._state = ConnectionState.CLOSING
        try:
            if (
                self._websocket.application_state == WebSocketState.CONNECTED
                and self._websocket.client_state == WebSocketState.CONNECTED
            ):
                with contextlib.suppress(RuntimeError, OSError):
                    await self._websocket.close(code=code)
        finally:
            self._state = ConnectionState.CLOSED

    def close(self, timeout: float = 5.0) -> None:
        """Close the transport from any thread.

        Idempotent. If the serving loop is already gone the connection is
        simply marked closed.

        Args:
            timeout: Seconds to wait for the close frame.
        """
        if self._state is ConnectionState.CLOSED:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._loop.create_task(self.aclose())
            return
        try:
            future = asyncio.run_coroutine_threadsafe(self.aclose(), self._loop)
        except RuntimeError:
            self._state = ConnectionState.CLOSED
            return
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            self._state = ConnectionState.CLOSED
