"""Normalization of raw watchdog events into change events."""

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from reloader.events.types import ChangeEvent, ChangeKind

EVENT_KINDS: dict[type[FileSystemEvent], ChangeKind] = {
    FileCreatedEvent: ChangeKind.CREATED,
    FileModifiedEvent: ChangeKind.MODIFIED,
    FileDeletedEvent: ChangeKind.REMOVED,
    FileMovedEvent: ChangeKind.RENAMED,
}


def decode_path(path: str | bytes) -> str:
    """Return a watchdog path as text.

    Args:
        path: Path as reported by watchdog.

    Returns:
        The path decoded as UTF-8, with undecodable bytes replaced.
    """
    if isinstance(path, str):
        return path
    return bytes(path).decode("utf-8", errors="replace")


def normalize_event(raw_event: FileSystemEvent) -> ChangeEvent | None:
    """Transform a raw watchdog event into a change event.

    Directory events and open/close notifications carry no content
    change and are dropped.

    Args:
        raw_event: Raw watchdog filesystem event.

    Returns:
        Normalized change event, or None if the event should be dropped.
    """
    if raw_event.is_directory:
        return None

    kind = EVENT_KINDS.get(type(raw_event))
    if kind is None:
        return None

    src_path = decode_path(raw_event.src_path)

    if kind is ChangeKind.RENAMED:
        dest_path = decode_path(raw_event.dest_path)
        if not dest_path:
            return ChangeEvent(path=src_path, kind=ChangeKind.REMOVED)
        if not src_path:
            return ChangeEvent(path=dest_path, kind=ChangeKind.CREATED)
        return ChangeEvent(path=dest_path, kind=kind, src_path=src_path)

    return ChangeEvent(path=src_path, kind=kind)
