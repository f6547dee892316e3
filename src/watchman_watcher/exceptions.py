"""Custom exceptions for the watchman watcher package."""

from typing import Optional, Sequence


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class TransportError(WatcherError):
    """The connection to the watchman daemon reported an error."""
    pass


class ProtocolError(WatcherError):
    """A watchman command response carried an error field."""

    def __init__(self, message: str, command: Optional[Sequence] = None):
        super().__init__(message)
        self.command = list(command) if command else None


class MetadataError(WatcherError):
    """Querying file metadata failed for a reason other than a missing file."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class WatcherClosedError(WatcherError):
    """Operation attempted on a watcher that has been closed."""
    pass


class ProtocolInvariantViolation(WatcherError, AssertionError):
    """A programming-logic violation. Not recoverable."""
    pass


class WatchRootNotReadyError(ProtocolInvariantViolation):
    """The watch root was read before the first handshake completed."""
    pass


class SubscriptionMismatchError(ProtocolInvariantViolation):
    """A subscription message arrived for an unexpected subscription name."""
    pass
