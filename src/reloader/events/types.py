"""Change event types for filesystem monitoring."""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangeKind(str, Enum):
    """Kinds of filesystem change the watch loop reacts to."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


TEMP_FILE_PATTERNS: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".swx",
    ".tmp",
    ".temp",
    "~",
    ".DS_Store",
    ".git",
    "4913",
)


DEFAULT_RELOAD_EXTENSIONS: tuple[str, ...] = (
    ".html",
    ".htm",
    ".tmpl",
    ".gohtml",
    ".jinja",
    ".jinja2",
    ".j2",
    ".css",
    ".js",
    ".svg",
)


class ChangeEvent(BaseModel):
    """A single filesystem change observed under a watch target.

    Attributes:
        path: Path of the changed file. For renames, the new path.
        kind: What happened to the file.
        src_path: Previous path for renames, otherwise None.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Path of the changed file")
    kind: ChangeKind = Field(description="Kind of change")
    src_path: str | None = Field(default=None, description="Old path for renames")
