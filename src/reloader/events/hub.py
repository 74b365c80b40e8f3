"""Broadcast hub pushing change notifications to every client."""

from typing import Any

from reloader.events.registry import Connection, ConnectionRegistry
from reloader.logging import get_diagnostic_logger


class Broadcaster:
    """Fans a payload out to every registered connection.

    A failed send is treated as a disconnect: the connection is removed
    from the registry and closed, and delivery continues with the
    remaining connections. Nothing raised by a connection escapes
    ``broadcast``.

    Attributes:
        send_timeout: Seconds allowed for each individual send.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        send_timeout: float = 5.0,
        log: Any = None,
    ) -> None:
        """Initialize broadcaster.

        Args:
            registry: Registry of live connections.
            send_timeout: Seconds allowed for each send.
            log: Bound logger for diagnostics. Defaults to a silent logger.
        """
        self._registry = registry
        self.send_timeout = send_timeout
        self._log = log if log is not None else get_diagnostic_logger(False)
        self._failed_count = 0

    @property
    def registry(self) -> ConnectionRegistry:
        """Registry this broadcaster delivers to."""
        return self._registry

    @property
    def failed_sends(self) -> int:
        """Number of sends that failed and pruned a connection."""
        return self._failed_count

    def broadcast(self, payload: str) -> int:
        """Send payload to every registered connection.

        Args:
            payload: Text frame contents.

        Returns:
            Number of connections that received the payload.
        """
        delivered = 0
        for conn in self._registry.snapshot():
            try:
                conn.send(payload, timeout=self.send_timeout)
            except Exception as e:
                self._failed_count += 1
                self._drop(conn, e)
                continue
            delivered += 1

        self._log.debug("broadcast_sent", payload=payload, delivered_to=delivered)
        return delivered

    def close_all(self) -> int:
        """Close and unregister every connection.

        Returns:
            Number of connections closed.
        """
        conns = self._registry.drain()
        for conn in conns:
            self._close_quietly(conn)
            self._log.info("ws_client_closed", connection_id=conn.id, reason="shutdown")
        return len(conns)

    def _drop(self, conn: Connection, error: Exception) -> None:
        self._registry.unregister(conn)
        self._log.warning(
            "ws_send_failed",
            connection_id=conn.id,
            error=str(error),
            error_type=type(error).__name__,
            active_connections=len(self._registry),
        )
        self._close_quietly(conn)

    def _close_quietly(self, conn: Connection) -> None:
        try:
            conn.close(timeout=self.send_timeout)
        except Exception as e:
            self._log.warning(
                "ws_close_failed",
                connection_id=conn.id,
                error=str(e),
            )
