"""Shared fixtures: a scripted stand-in for pywatchman.client."""

import queue
import threading
from functools import partial
from pathlib import Path

import pytest
import pywatchman

from watchman_watcher.models import EventType


class FakeWatchmanClient:
    """
    Scripted replacement for pywatchman.client.

    Command responses come from a dict keyed by command name; a value may
    be a dict, an exception to raise, or a callable taking the arguments.
    A command listed in late_responses times out on the first attempt and
    its response arrives later through receive(), as it does when the
    daemon is slower than the socket timeout.
    Messages pushed with push() are returned by receive().
    """

    def __init__(self, responses=None, late_responses=None):
        self.responses = dict(responses or {})
        self.late_responses = dict(late_responses or {})
        self.commands = []
        self.messages = queue.Queue()
        self.subs = {}
        self.closed = False

    def query(self, *args):
        self.commands.append(args)
        if args[0] in self.late_responses:
            self.messages.put(self.late_responses.pop(args[0]))
            raise pywatchman.SocketTimeout("timed out waiting for response")
        resp = self.responses.get(args[0], {})
        if isinstance(resp, Exception):
            raise resp
        if callable(resp):
            return resp(*args)
        return dict(resp)

    def receive(self):
        if self.closed:
            raise pywatchman.WatchmanError("empty watchman response")
        try:
            item = self.messages.get(timeout=0.05)
        except queue.Empty:
            raise pywatchman.SocketTimeout("timed out waiting for response")
        if isinstance(item, Exception):
            raise item
        if "subscription" in item:
            self.subs.setdefault(item["subscription"], []).append(item)
        return item

    def isUnilateralResponse(self, res):
        return any(key in res for key in ("unilateral", "log", "subscription"))

    def getSubscription(self, name, remove=True, root=None):
        if remove:
            return self.subs.pop(name, None)
        return self.subs.get(name)

    def push(self, message):
        self.messages.put(message)

    def disconnect(self):
        self.messages.put(pywatchman.WatchmanError("empty watchman response"))

    def close(self):
        self.closed = True

    def command_names(self):
        return [args[0] for args in self.commands]


def default_responses(root: Path, **overrides) -> dict:
    responses = {
        "watch-project": {"watch": str(root), "relative_path": ""},
        "clock": {"clock": "c:1"},
        "subscribe": {"subscribe": "sane-sub"},
    }
    responses.update(overrides)
    return responses


class ClientFactory:
    """Creates a new FakeWatchmanClient per connection and keeps them all."""

    def __init__(self, root: Path, late_responses=None, **overrides):
        self.root = root
        self.late_responses = late_responses
        self.overrides = overrides
        self.clients = []
        self._lock = threading.Lock()

    def __call__(self):
        client = FakeWatchmanClient(
            default_responses(self.root, **self.overrides),
            late_responses=self.late_responses,
        )
        with self._lock:
            self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeWatchmanClient:
        with self._lock:
            return self.clients[-1]


class EventRecorder:
    """Records every signal emitted by an EventBus or watcher."""

    def __init__(self, emitter):
        self.events = []
        self._lock = threading.Lock()
        self._conditions = threading.Condition(self._lock)
        for event_type in EventType:
            emitter.on(event_type, partial(self._record, event_type))

    def _record(self, event_type, *args):
        with self._conditions:
            self.events.append((event_type, args))
            self._conditions.notify_all()

    def of(self, event_type):
        with self._lock:
            return [args for recorded, args in self.events if recorded == event_type]

    def types(self):
        with self._lock:
            return [recorded for recorded, _ in self.events]

    def wait_for(self, event_type, count=1, timeout=2.0) -> bool:
        with self._conditions:
            return self._conditions.wait_for(
                lambda: sum(1 for recorded, _ in self.events if recorded == event_type) >= count,
                timeout=timeout,
            )


@pytest.fixture
def root(tmp_path):
    return tmp_path.resolve()
