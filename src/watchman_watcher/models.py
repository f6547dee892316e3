"""Data models for the watchman watcher package."""

import os
import stat as stat_module
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .exceptions import WatchRootNotReadyError


class EventType(Enum):
    """Signals emitted by a watcher."""
    READY = "ready"
    ERROR = "error"
    FRESH_INSTANCE = "fresh_instance"
    ADD = "add"
    CHANGE = "change"
    DELETE = "delete"
    ALL = "all"


FILE_EVENT_TYPES = frozenset({EventType.ADD, EventType.CHANGE, EventType.DELETE})


@dataclass(frozen=True)
class WatchRoot:
    """
    The root watchman actually watches for a requested directory.

    Attributes:
        watched_root: Absolute path of the watch (may be an ancestor of the
            requested directory when watchman reuses an existing watch)
        relative_path: Offset of the requested directory inside watched_root
    """
    watched_root: Path
    relative_path: str = ""

    def __post_init__(self):
        if not self.watched_root.is_absolute():
            raise ValueError(f"watched_root must be absolute: {self.watched_root}")

    @classmethod
    def from_response(cls, resp: dict) -> "WatchRoot":
        """Build from a watch-project response."""
        return cls(
            watched_root=Path(resp["watch"]),
            relative_path=resp.get("relative_path") or "",
        )

    def resolve(self, name: str) -> Path:
        """Absolute path of a name reported relative to the subscription."""
        return self.watched_root / self.relative_path / name


class WatchRootHolder:
    """
    Holds the current WatchRoot snapshot.

    The snapshot is replaced wholesale by each handshake and read by the
    change processor. Reading before the first handshake is a logic error.
    """

    def __init__(self):
        self._watch_root: Optional[WatchRoot] = None
        self._lock = threading.Lock()

    def set(self, watch_root: Optional[WatchRoot]) -> None:
        with self._lock:
            self._watch_root = watch_root

    def clear(self) -> None:
        self.set(None)

    def get(self) -> WatchRoot:
        """
        Get the current watch root.

        Raises:
            WatchRootNotReadyError: If no handshake has produced one yet
        """
        with self._lock:
            watch_root = self._watch_root
        if watch_root is None:
            raise WatchRootNotReadyError(
                "watch-project response should have been set before "
                "receiving subscription events"
            )
        return watch_root


@dataclass(frozen=True)
class FileChange:
    """
    A single file record from a subscription message.

    Attributes:
        name: Path relative to the subscription's relative_root
        exists: Whether the file exists after the change
        new: Whether the file is new since the subscription's clock
    """
    name: str
    exists: bool = True
    new: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "FileChange":
        return cls(
            name=data["name"],
            exists=bool(data.get("exists", True)),
            new=bool(data.get("new", False)),
        )


@dataclass(frozen=True)
class FileMetadata:
    """
    File metadata captured when classifying a change.

    Attributes:
        type: "f" regular file, "d" directory, "l" symlink, "?" other
        size: Size in bytes
        mtime: Modification time as a Unix timestamp
    """
    type: str
    size: int
    mtime: float

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "FileMetadata":
        if stat_module.S_ISDIR(st.st_mode):
            file_type = "d"
        elif stat_module.S_ISLNK(st.st_mode):
            file_type = "l"
        elif stat_module.S_ISREG(st.st_mode):
            file_type = "f"
        else:
            file_type = "?"
        return cls(type=file_type, size=st.st_size, mtime=st.st_mtime)

    def is_directory(self) -> bool:
        return self.type == "d"


@dataclass(frozen=True)
class FileChangeEvent:
    """
    A normalized file change event.

    Attributes:
        event_type: ADD, CHANGE or DELETE
        relative_path: Path relative to the watcher's root
        root: The watcher's root directory
        metadata: File metadata (None for DELETE events)
    """
    event_type: EventType
    relative_path: str
    root: Path
    metadata: Optional[FileMetadata] = None

    def __post_init__(self):
        if self.event_type not in FILE_EVENT_TYPES:
            raise ValueError(f"not a file event type: {self.event_type}")

    @property
    def path(self) -> Path:
        """Absolute path of the changed file."""
        return self.root / self.relative_path

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "relative_path": self.relative_path,
            "root": str(self.root),
            "metadata": {
                "type": self.metadata.type,
                "size": self.metadata.size,
                "mtime": self.metadata.mtime,
            } if self.metadata else None,
        }
