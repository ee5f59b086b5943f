"""Shared pytest fixtures.

Provides:
- ``emitted``: a recording stand-in for ``SocketIO.emit``
- ``registry`` / ``router`` / ``store``: fresh core objects
- ``make_app``: builds (app, socketio) in threading mode with inline,
  in-memory persistence and closes every context at teardown
"""

from __future__ import annotations

import pytest

from relay.registry import ConnectionRegistry
from relay.rooms import RoomRouter
from relay.server import create_app
from relay.storage import MessageStore


class EmitRecorder:
    """Callable with the ``SocketIO.emit(event, data, to=None)`` shape."""

    def __init__(self):
        self.calls = []

    def __call__(self, event, data=None, to=None, **kwargs):
        self.calls.append((event, data, to))

    def named(self, event):
        return [c for c in self.calls if c[0] == event]

    def broadcasts(self, event):
        return [data for name, data, to in self.calls if name == event and to is None]

    def sent_to(self, sid, event=None):
        return [data for name, data, to in self.calls if to == sid and (event is None or name == event)]

    def clear(self):
        self.calls.clear()


@pytest.fixture
def emitted():
    return EmitRecorder()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router():
    return RoomRouter()


@pytest.fixture
def store():
    return MessageStore()


@pytest.fixture
def make_app():
    created = []

    def _make(**kwargs):
        kwargs.setdefault("async_mode", "threading")
        kwargs.setdefault("async_persist", False)
        kwargs.setdefault("persist_to_disk", False)
        app, socketio = create_app(**kwargs)
        created.append(app)
        return app, socketio

    yield _make

    for app in created:
        app.extensions["relay"].close()


@pytest.fixture
def received():
    """``received(client, event)`` → first argument of every ``event`` the
    Socket.IO test client got since the last call (drains the queue)."""

    def _received(client, event):
        return [pkt["args"][0] for pkt in client.get_received() if pkt["name"] == event]

    return _received
