"""Events subsystem for filesystem monitoring and WebSocket broadcasting."""
from reloader.events.connection import ClientConnection, ConnectionState
from reloader.events.filter import EventFilter, is_temp_file
from reloader.events.hub import Broadcaster
from reloader.events.registry import ConnectionRegistry
from reloader.events.types import ChangeEvent, ChangeKind
from reloader.events.watcher import WatchSet

__all__ = [
    "Broadcaster",
    "ChangeEvent",
    "ChangeKind",
    "ClientConnection",
    "ConnectionRegistry",
    "ConnectionState",
    "EventFilter",
    "WatchSet",
    "is_temp_file",
]
