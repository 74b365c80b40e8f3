"""Thread-safe registry of live client connections."""
import threading
from typing import Protocol


class Connection(Protocol):
    """What the registry and broadcaster need from a connection."""

    id: str

    def send(self, payload: str, timeout: float = ...) -> None: ...

    def close(self, timeout: float = ...) -> None: ...


class ConnectionRegistry:
    """Registry of open connections keyed by identity.

    Mutated by the WebSocket route (register on accept, unregister on
    close) and by the broadcaster (unregister on failed send). Every
    access goes through one lock.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        conn_id = getattr(conn, "id", None)
        with self._lock:
            return conn_id in self._connections

    def register(self, conn: Connection) -> bool:
        """Add a connection.

        Args:
            conn: Connection that completed its upgrade.

        Returns:
            False if a connection with the same identity was already present.
        """
        with self._lock:
            if conn.id in self._connections:
                return False
            self._connections[conn.id] = conn
            return True

    def unregister(self, conn: Connection) -> bool:
        """Remove a connection by identity. Safe to call more than once.

        Args:
            conn: Connection to remove.

        Returns:
            True if the connection was present.
        """
        with self._lock:
            return self._connections.pop(conn.id, None) is not None

    def snapshot(self) -> tuple[Connection, ...]:
        """Get the current connections (no lock held on return)."""
        with self._lock:
            return tuple(self._connections.values())

    def drain(self) -> tuple[Connection, ...]:
        """Remove and return every connection."""
        with self._lock:
            conns = tuple(self._connections.values())
            self._connections.clear()
            return conns
