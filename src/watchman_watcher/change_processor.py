"""Translation of subscription messages into normalized file events."""

import logging
import os
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Set

from .config import WatcherOptions
from .events import EventBus
from .exceptions import MetadataError, SubscriptionMismatchError
from .handshake import SUBSCRIPTION_NAME
from .models import (
    EventType,
    FileChange,
    FileChangeEvent,
    FileMetadata,
    WatchRootHolder,
)

logger = logging.getLogger(__name__)


class ChangeEventProcessor:
    """
    Turns subscription messages into ADD, CHANGE and DELETE events.

    Existing files are classified with a metadata query against the live
    filesystem, so a file removed between the notification and the query
    produces no event at all.
    """

    def __init__(
        self,
        root: Path,
        options: WatcherOptions,
        bus: EventBus,
        watch_root: WatchRootHolder,
        stat: Callable[[str], os.stat_result] = os.lstat,
        is_live: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize the processor.

        Args:
            root: The watcher's root directory, reported with every event
            options: Watcher options (filters and defer states)
            bus: Where events are emitted
            watch_root: Holder of the current handshake result
            stat: Metadata query used to classify existing files
            is_live: Returns False once the watcher is closed
        """
        self.root = root
        self.options = options
        self._bus = bus
        self._watch_root = watch_root
        self._stat = stat
        self._is_live = is_live or (lambda: True)
        self._deferred: Set[str] = set()

    @property
    def deferred_states(self) -> FrozenSet[str]:
        """Defer states watchman reported as entered and not yet left."""
        return frozenset(self._deferred)

    def reset(self) -> None:
        self._deferred.clear()

    def handle(self, message: dict) -> None:
        """
        Process one subscription message.

        Raises:
            SubscriptionMismatchError: If the message is for another subscription
        """
        name = message.get("subscription")
        if name != SUBSCRIPTION_NAME:
            raise SubscriptionMismatchError(
                f"Invalid subscription event: expected '{SUBSCRIPTION_NAME}', got {name!r}"
            )

        if message.get("is_fresh_instance"):
            self._bus.emit(EventType.FRESH_INSTANCE)

        files = message.get("files")
        if isinstance(files, list):
            for record in files:
                self.handle_file_change(FileChange.from_dict(record))

        self._track_state(message)

    def _track_state(self, message: dict) -> None:
        entered = message.get("state-enter")
        if entered is not None and entered in self.options.defer_states:
            self._deferred.add(entered)
            logger.debug(
                f"Watchman reports {entered} just started. "
                "Filesystem notifications are paused."
            )

        left = message.get("state-leave")
        if left is not None and left in self.options.defer_states:
            self._deferred.discard(left)
            logger.debug(
                f"Watchman reports {left} ended. Filesystem notifications resumed."
            )

    def handle_file_change(self, change: FileChange) -> Optional[FileChangeEvent]:
        """
        Classify and emit a single file record.

        Args:
            change: The record from the subscription message

        Returns:
            The emitted event, or None if nothing was emitted
        """
        watch_root = self._watch_root.get()
        abs_path = watch_root.resolve(change.name)

        if self.options.has_ignore and not self.options.is_file_included(change.name):
            return None

        if not change.exists:
            return self._emit(EventType.DELETE, change.name)

        try:
            st = self._stat(str(abs_path))
        except FileNotFoundError:
            # Deleted between the notification and the stat.
            logger.debug(f"File vanished before stat: {abs_path}")
            return None
        except OSError as e:
            if not self._is_live():
                return None
            error = MetadataError(f"Failed to stat {abs_path}: {e}", str(abs_path))
            logger.error(str(error))
            self._bus.emit(EventType.ERROR, error)
            return None

        if not self._is_live():
            logger.debug(f"Watcher closed, dropping result for {abs_path}")
            return None

        metadata = FileMetadata.from_stat(st)
        event_type = EventType.ADD if change.new else EventType.CHANGE

        # Change events on directories carry no useful information.
        if event_type == EventType.CHANGE and metadata.is_directory():
            return None

        return self._emit(event_type, change.name, metadata)

    def _emit(
        self,
        event_type: EventType,
        relative_path: str,
        metadata: Optional[FileMetadata] = None,
    ) -> FileChangeEvent:
        event = FileChangeEvent(
            event_type=event_type,
            relative_path=relative_path,
            root=self.root,
            metadata=metadata,
        )
        logger.debug(f"{event_type.value}: {relative_path}")
        self._bus.emit_file_event(event)
        return event
