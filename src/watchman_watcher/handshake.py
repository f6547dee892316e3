"""The watch-project, clock, subscribe sequence that establishes a subscription."""

import logging
from pathlib import Path
from typing import Optional

import pywatchman

from .config import WatcherOptions
from .events import EventBus
from .exceptions import ProtocolError
from .models import EventType, WatchRoot, WatchRootHolder
from .recrawl import WarningPolicy

logger = logging.getLogger(__name__)

SUBSCRIPTION_NAME = "sane-sub"
SUBSCRIPTION_FIELDS = ["name", "exists", "new"]


class HandshakeSequencer:
    """
    Establishes a watchman subscription for a directory.

    Each step is issued only after the previous response has been checked.
    A command error aborts the attempt; the next attempt only happens when
    the connection manager reconnects.
    """

    def __init__(
        self,
        root: Path,
        options: WatcherOptions,
        bus: EventBus,
        watch_root: WatchRootHolder,
        warning_policy: WarningPolicy,
    ):
        self.root = root
        self.options = options
        self._bus = bus
        self._watch_root = watch_root
        self._warnings = warning_policy

    def build_query(self, clock: str, watch_root: WatchRoot) -> dict:
        """
        Build the subscribe query.

        Args:
            clock: Clock token the subscription starts from
            watch_root: Result of the watch-project step

        Returns:
            The query dict for the subscribe command
        """
        query = {
            "fields": list(SUBSCRIPTION_FIELDS),
            "since": clock,
            "defer": list(self.options.defer_states),
            "relative_root": watch_root.relative_path,
        }

        # Honor the dot option even when no globs are configured.
        if not self.options.globs and not self.options.dot:
            query["expression"] = [
                "match",
                "**",
                "wholename",
                {"includedotfiles": False},
            ]

        return query

    def _command(self, session, *args) -> dict:
        try:
            resp = session.command(*args)
        except pywatchman.CommandError as e:
            raise ProtocolError(str(e), args) from e
        self._warnings.check(resp, list(args))
        return resp

    def run(self, session) -> Optional[WatchRoot]:
        """
        Run the handshake on a freshly opened session.

        Transport failures propagate to the caller; command errors are
        emitted on the error channel.

        Args:
            session: The session to issue commands on

        Returns:
            The new WatchRoot, or None if a command failed
        """
        self._watch_root.clear()

        try:
            resp = self._command(session, "watch-project", str(self.root))
            watch_root = WatchRoot.from_response(resp)
            self._watch_root.set(watch_root)
            watched = str(watch_root.watched_root)

            resp = self._command(session, "clock", watched)
            query = self.build_query(resp["clock"], watch_root)

            self._command(session, "subscribe", watched, SUBSCRIPTION_NAME, query)
        except ProtocolError as e:
            logger.error(f"Watchman handshake failed for {self.root}: {e}")
            self._bus.emit(EventType.ERROR, e)
            return None

        if not session.attached:
            return None

        logger.info(
            f"Subscribed to {watch_root.watched_root} "
            f"(relative_root='{watch_root.relative_path}')"
        )
        self._bus.emit(EventType.READY)
        return watch_root
