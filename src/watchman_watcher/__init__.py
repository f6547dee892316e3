"""
Watchman Watcher Package

Keeps a live subscription to the watchman daemon and republishes its
notifications as normalized file events.

Features:
- watch-project / clock / subscribe handshake per watched directory
- File change events: ADD, CHANGE, DELETE, plus a catch-all ALL channel
- Existence and type classification against the live filesystem
- Glob, dotfile and ignore filtering
- Automatic reconnection when the daemon connection drops
- Deduplicated daemon warnings
"""

from .models import (
    EventType,
    WatchRoot,
    WatchRootHolder,
    FileChange,
    FileMetadata,
    FileChangeEvent,
)

from .config import WatcherOptions

from .exceptions import (
    WatcherError,
    TransportError,
    ProtocolError,
    MetadataError,
    WatcherClosedError,
    ProtocolInvariantViolation,
    WatchRootNotReadyError,
    SubscriptionMismatchError,
)

from .events import EventBus
from .recrawl import WarningPolicy
from .handshake import HandshakeSequencer, SUBSCRIPTION_NAME
from .change_processor import ChangeEventProcessor
from .connection import ConnectionManager, WatchmanSession
from .watcher import WatchmanWatcher


__all__ = [
    # Models
    "EventType",
    "WatchRoot",
    "WatchRootHolder",
    "FileChange",
    "FileMetadata",
    "FileChangeEvent",
    # Config
    "WatcherOptions",
    # Exceptions
    "WatcherError",
    "TransportError",
    "ProtocolError",
    "MetadataError",
    "WatcherClosedError",
    "ProtocolInvariantViolation",
    "WatchRootNotReadyError",
    "SubscriptionMismatchError",
    # Components
    "EventBus",
    "WarningPolicy",
    "HandshakeSequencer",
    "SUBSCRIPTION_NAME",
    "ChangeEventProcessor",
    "ConnectionManager",
    "WatchmanSession",
    # Main watcher
    "WatchmanWatcher",
]

__version__ = "0.1.0"
