"""Watchman-backed directory watcher."""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Union

from .change_processor import ChangeEventProcessor
from .config import WatcherOptions
from .connection import ConnectionManager, WatchmanSession
from .events import EventBus, Listener
from .models import EventType, WatchRoot, WatchRootHolder
from .recrawl import WarningPolicy
from .handshake import HandshakeSequencer

logger = logging.getLogger(__name__)


class WatchmanWatcher:
    """
    Watches a directory through a watchman subscription.

    Emits READY once the subscription is established, ADD, CHANGE and
    DELETE for file changes (each also delivered on ALL), FRESH_INSTANCE
    when watchman rebuilt its view, and ERROR for recoverable failures.
    Listeners run on the watcher's connection thread.
    """

    def __init__(
        self,
        root: Union[str, Path],
        options: Optional[WatcherOptions] = None,
        client_factory: Optional[Callable[[], object]] = None,
        stat: Callable[[str], os.stat_result] = os.lstat,
        auto_start: bool = True,
    ):
        """
        Initialize the watcher.

        Args:
            root: Directory to watch
            options: Watcher options
            client_factory: Creates watchman clients (pywatchman.client by default)
            stat: Metadata query used to classify changes
            auto_start: Connect immediately; otherwise call start()
        """
        self.root = Path(root).resolve()
        self.options = options or WatcherOptions()

        self._bus = EventBus()
        self._watch_root = WatchRootHolder()
        self._ready = threading.Event()

        self._handshake = HandshakeSequencer(
            self.root,
            self.options,
            self._bus,
            self._watch_root,
            WarningPolicy(),
        )
        self._processor = ChangeEventProcessor(
            self.root,
            self.options,
            self._bus,
            self._watch_root,
            stat=stat,
            is_live=lambda: not self.closed,
        )
        self._connection = ConnectionManager(
            self.options,
            self._bus,
            self._on_session_open,
            self._processor.handle,
            client_factory,
        )
        self._bus.on(EventType.READY, self._ready.set)

        if auto_start:
            self.start()

    def _on_session_open(self, session: WatchmanSession) -> Optional[WatchRoot]:
        self._ready.clear()
        self._processor.reset()
        return self._handshake.run(session)

    def start(self) -> None:
        """Connect to watchman and start the subscription."""
        logger.debug(f"Starting watchman watcher for {self.root}")
        self._connection.start()

    def on(self, event_type: EventType, listener: Listener) -> Listener:
        return self._bus.on(event_type, listener)

    def once(self, event_type: EventType, listener: Listener) -> Listener:
        return self._bus.once(event_type, listener)

    def off(self, event_type: EventType, listener: Listener) -> bool:
        return self._bus.off(event_type, listener)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current subscription is established.

        Returns:
            True if ready, False on timeout
        """
        return self._ready.wait(timeout)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def watch_root(self) -> WatchRoot:
        """
        The watch root of the current subscription.

        Raises:
            WatchRootNotReadyError: Before the first handshake has completed
        """
        return self._watch_root.get()

    @property
    def deferred_states(self) -> FrozenSet[str]:
        return self._processor.deferred_states

    @property
    def reconnect_count(self) -> int:
        return self._connection.reconnect_count

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def close(self) -> None:
        """
        Stop watching.

        Listeners are detached and the connection is closed; this does not
        wait for the daemon to acknowledge.
        """
        self._bus.remove_all_listeners()
        self._connection.close()
        self._ready.clear()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the connection thread to exit after close().

        Returns:
            True if the thread is no longer running
        """
        return self._connection.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
