"""Listener registry that delivers watcher signals to consumers."""

import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List

from .models import EventType, FileChangeEvent

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class EventBus:
    """
    Delivers watcher signals by type.

    File events are delivered twice: once to listeners of their own type and
    once to listeners of EventType.ALL, with the same FileChangeEvent.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def on(self, event_type: EventType, listener: Listener) -> Listener:
        """
        Register a listener.

        Args:
            event_type: Signal to listen for
            listener: Callback invoked with the signal's payload

        Returns:
            The listener, so this can be used as a decorator
        """
        with self._lock:
            self._listeners[event_type].append(listener)
        return listener

    def once(self, event_type: EventType, listener: Listener) -> Listener:
        """Register a listener that is removed after its first call."""
        def wrapper(*args):
            self.off(event_type, wrapper)
            listener(*args)

        self.on(event_type, wrapper)
        return wrapper

    def off(self, event_type: EventType, listener: Listener) -> bool:
        """
        Remove a listener.

        Returns:
            True if the listener was registered
        """
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)
                return True
            return False

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    def listener_count(self, event_type: EventType) -> int:
        with self._lock:
            return len(self._listeners.get(event_type, []))

    def emit(self, event_type: EventType, *args) -> int:
        """
        Call every listener registered for a signal.

        A failing listener is logged and does not stop delivery to the rest.

        Returns:
            Number of listeners called
        """
        with self._lock:
            listeners = list(self._listeners.get(event_type, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{event_type.value}' failed")
        return len(listeners)

    def emit_file_event(self, event: FileChangeEvent) -> None:
        """Emit a file event to its typed listeners and to ALL listeners."""
        self.emit(event.event_type, event)
        self.emit(EventType.ALL, event)
