"""Ownership of the watchman connection and reconnection on disconnect."""

import logging
import threading
from typing import Callable, Optional

import pywatchman

from .config import WatcherOptions
from .events import EventBus
from .exceptions import (
    ProtocolInvariantViolation,
    TransportError,
    WatcherClosedError,
)
from .models import EventType

logger = logging.getLogger(__name__)

# pywatchman's socket transports (UnixSocketTransport.readBytes and the
# Windows named pipe transport) raise WatchmanError with this message when
# the daemon closes the connection. There is no dedicated exception type.
_EOF_MESSAGE = "empty watchman response"


def _is_disconnect(error: Exception) -> bool:
    return isinstance(error, pywatchman.WatchmanError) and _EOF_MESSAGE in str(error)


class WatchmanSession:
    """
    One connection to the watchman daemon.

    A detached session refuses new commands and its messages are no longer
    dispatched.
    """

    def __init__(self, client):
        self.client = client
        self._attached = True
        self._ended = False
        self._lock = threading.Lock()

    @property
    def attached(self) -> bool:
        return self._attached

    def detach(self) -> None:
        self._attached = False

    def command(self, *args) -> dict:
        """
        Issue a command and wait for its response.

        A socket timeout only means the daemon is still working on the
        command (the initial crawl of a large tree can outlast it), so the
        wait continues for as long as the session stays attached.

        Raises:
            WatcherClosedError: If the session has been detached
        """
        if not self._attached:
            raise WatcherClosedError("Watchman session is detached")
        try:
            return self.client.query(*args)
        except pywatchman.SocketTimeout:
            logger.debug(f"Still waiting for watchman to answer '{args[0]}'")
        return self._await_response(args[0])

    def _await_response(self, name: str) -> dict:
        while True:
            if not self._attached:
                raise WatcherClosedError("Watchman session is detached")
            try:
                resp = self.client.receive()
            except pywatchman.SocketTimeout:
                continue
            if self.client.isUnilateralResponse(resp):
                logger.debug(f"Skipping unilateral message while waiting for '{name}'")
                continue
            return resp

    def receive(self) -> dict:
        return self.client.receive()

    def drain(self, subscription: str, root: Optional[str] = None) -> None:
        """Drop the copies of received messages pywatchman keeps per subscription."""
        if root is not None:
            self.client.getSubscription(subscription, root=root)
        else:
            self.client.getSubscription(subscription)

    def end(self) -> None:
        """Detach and close the connection without waiting for the daemon."""
        self.detach()
        with self._lock:
            if self._ended:
                return
            self._ended = True
        try:
            self.client.close()
        except (OSError, pywatchman.WatchmanError) as e:
            logger.debug(f"Error closing watchman client: {e}")


class ConnectionManager:
    """
    Owns the session to the watchman daemon.

    A single worker thread opens a session, runs the handshake callback on
    it and dispatches every subscription message to the message callback.
    When the session ends the whole sequence starts again on a new session.
    """

    def __init__(
        self,
        options: WatcherOptions,
        bus: EventBus,
        on_session_open: Callable[[WatchmanSession], object],
        on_message: Callable[[dict], None],
        client_factory: Optional[Callable[[], object]] = None,
    ):
        """
        Initialize the connection manager.

        Args:
            options: Watcher options (socket, timeout and reconnect settings)
            bus: Where transport errors are emitted
            on_session_open: Called with each new session to run the handshake
            on_message: Called with each subscription message
            client_factory: Creates watchman clients (pywatchman.client by default)
        """
        self.options = options
        self._bus = bus
        self._on_session_open = on_session_open
        self._on_message = on_message
        self._client_factory = client_factory or self._default_client_factory

        self._session: Optional[WatchmanSession] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._closed = False
        self.reconnect_count = 0

    def _default_client_factory(self):
        return pywatchman.client(
            sockpath=self.options.sockpath,
            timeout=self.options.timeout,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def session(self) -> Optional[WatchmanSession]:
        return self._session

    def start(self) -> None:
        """
        Start the worker thread.

        Raises:
            WatcherClosedError: If the manager has been closed
        """
        with self._lock:
            if self._closed:
                raise WatcherClosedError("Connection manager is closed")
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._run,
                name="WatchmanConnection",
                daemon=True,
            )
        self._thread.start()

    def initialize(self) -> WatchmanSession:
        """
        Replace the current session with a new one and run the handshake.

        Returns:
            The new session

        Raises:
            WatcherClosedError: If the manager has been closed
        """
        with self._lock:
            if self._closed:
                raise WatcherClosedError("Connection manager is closed")
            old_session = self._session
            self._session = None

        if old_session is not None:
            old_session.end()

        session = WatchmanSession(self._client_factory())
        with self._lock:
            if self._closed:
                session.end()
                raise WatcherClosedError("Connection manager is closed")
            self._session = session

        self._on_session_open(session)
        return session

    def serve(self, session: WatchmanSession) -> None:
        """
        Dispatch subscription messages until the session ends.

        Raises:
            ProtocolInvariantViolation: If a message cannot be interpreted
        """
        while session.attached:
            try:
                message = session.receive()
            except pywatchman.SocketTimeout:
                continue
            except pywatchman.CommandError as e:
                if session.attached:
                    self._forward_error(e)
                continue
            except (pywatchman.WatchmanError, OSError) as e:
                if session.attached and not _is_disconnect(e):
                    self._forward_error(e)
                return

            if not session.attached:
                return

            subscription = message.get("subscription")
            if subscription is None:
                logger.debug(f"Ignoring non-subscription message: {message}")
                continue

            session.drain(subscription, message.get("root"))
            self._on_message(message)

    def _forward_error(self, error: Exception) -> None:
        if not isinstance(error, TransportError):
            wrapped = TransportError(str(error))
            wrapped.__cause__ = error
            error = wrapped
        logger.error(f"Watchman connection error: {error}")
        self._bus.emit(EventType.ERROR, error)

    def _fail(self, error: Exception) -> None:
        """Shut down for good and report why."""
        self.close()
        self._bus.emit(EventType.ERROR, error)

    def _run(self) -> None:
        """Worker loop: connect, handshake, serve, reconnect."""
        while not self._closed:
            try:
                session = self.initialize()
                self.serve(session)
            except WatcherClosedError:
                break
            except ProtocolInvariantViolation as e:
                logger.critical(f"Watchman protocol invariant violated: {e}")
                self._fail(e)
                break
            except (pywatchman.WatchmanError, OSError) as e:
                if self._closed:
                    break
                if not _is_disconnect(e):
                    self._forward_error(e)
            except Exception as e:
                logger.exception("Unexpected error in watchman connection loop")
                self._fail(e)
                break

            if self._closed:
                break

            max_reconnects = self.options.max_reconnects
            if max_reconnects is not None and self.reconnect_count >= max_reconnects:
                logger.error(
                    f"Lost connection to watchman, giving up after "
                    f"{self.reconnect_count} reconnect(s)"
                )
                self._fail(TransportError("Lost connection to watchman"))
                break

            logger.warning("Lost connection to watchman, reconnecting..")
            self.reconnect_count += 1

            if self.options.reconnect_delay_ms > 0:
                self._stop_event.wait(self.options.reconnect_delay_ms / 1000.0)

        logger.debug("Watchman connection loop stopped")

    def close(self) -> None:
        """
        Detach and terminate the current session.

        Returns once the connection is closed; does not wait for the worker
        thread or for the daemon.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            session = self._session
            self._session = None

        self._stop_event.set()
        if session is not None:
            session.end()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker thread to exit.

        Returns:
            True if the thread is no longer running
        """
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()
