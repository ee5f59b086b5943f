"""Tests for MessageDispatcher persistence and routing decisions."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from relay.dispatcher import DELIVERY_EVENT, MessageDispatcher, build_message, to_wire
from relay.storage import StorageError


def _dispatcher(registry, router, store, emitted, **kwargs):
    return MessageDispatcher(registry, router, store, emitted, **kwargs)


@pytest.fixture
def two_users(registry, router):
    """alice on c1 + c2, bob on c3, every connection joined to the pair room."""
    registry.register("alice", "c1")
    registry.register("alice", "c2")
    registry.register("bob", "c3")
    room = router.room_key("alice", "bob")
    for sid in ("c1", "c2", "c3"):
        router.join(sid, room)
    return room


class TestRoomDelivery:
    def test_room_members_except_origin_without_echo(self, registry, router, store, emitted, two_users):
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=False)

        delivered = d.dispatch("alice", "bob", "hi", origin="c1")

        assert delivered == ["c2", "c3"]
        assert [to for _, _, to in emitted.named(DELIVERY_EVENT)] == ["c2", "c3"]

    def test_room_members_including_origin_with_echo(self, registry, router, store, emitted, two_users):
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=True)

        delivered = d.dispatch("alice", "bob", "hi", origin="c1")

        assert delivered == ["c1", "c2", "c3"]
        for sid in ("c1", "c2", "c3"):
            assert len(emitted.sent_to(sid, DELIVERY_EVENT)) == 1

    def test_connections_outside_room_are_excluded(self, registry, router, store, emitted, two_users):
        registry.register("bob", "c4")  # bob's second tab never joined the room
        registry.register("carol", "c5")
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=False)

        delivered = d.dispatch("alice", "bob", "hi", origin="c1")

        assert "c4" not in delivered
        assert "c5" not in delivered

    def test_payload_shape(self, registry, router, store, emitted, two_users):
        d = _dispatcher(registry, router, store, emitted)
        d.dispatch("alice", "bob", "hi", origin="c1")

        _, data, _ = emitted.named(DELIVERY_EVENT)[0]
        assert data["senderId"] == "alice"
        assert data["receiverId"] == "bob"
        assert data["message"] == "hi"
        assert isinstance(data["timestamp"], float)

    def test_room_without_receiver_falls_back_to_direct(self, registry, router, store, emitted):
        registry.register("alice", "c1")
        registry.register("alice", "c2")
        registry.register("bob", "c3")
        room = router.room_key("alice", "bob")
        router.join("c1", room)
        router.join("c2", room)

        d = _dispatcher(registry, router, store, emitted, echo_to_sender=False)
        delivered = d.dispatch("alice", "bob", "hi", origin="c1")

        assert delivered == ["c3"]


class TestDirectDelivery:
    def test_receiver_connections_only(self, registry, router, store, emitted):
        registry.register("alice", "c1")
        registry.register("bob", "c3")
        registry.register("bob", "c4")
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=False)

        assert d.dispatch("alice", "bob", "hi", origin="c1") == ["c3", "c4"]

    def test_echo_goes_to_origin_only(self, registry, router, store, emitted):
        registry.register("alice", "c1")
        registry.register("alice", "c2")
        registry.register("bob", "c3")
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=True)

        assert d.dispatch("alice", "bob", "hi", origin="c1") == ["c1", "c3"]

    def test_echo_without_origin(self, registry, router, store, emitted):
        registry.register("bob", "c3")
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=True)

        assert d.dispatch("alice", "bob", "hi") == ["c3"]

    def test_offline_receiver_is_persisted_but_not_delivered(self, registry, router, store, emitted):
        registry.register("alice", "c1")
        d = _dispatcher(registry, router, store, emitted, echo_to_sender=False)

        assert d.dispatch("alice", "bob", "later", origin="c1") == []
        assert emitted.named(DELIVERY_EVENT) == []

        stored = store.find_between("bob", "alice")
        assert len(stored) == 1
        assert stored[0]["message"] == "later"


class TestPersistence:
    def test_message_is_stored(self, registry, router, store, emitted, two_users):
        d = _dispatcher(registry, router, store, emitted)
        d.dispatch("alice", "bob", "hi", origin="c1")

        stored = store.find_between("alice", "bob")
        assert [(m["sender_id"], m["receiver_id"], m["message"]) for m in stored] == [("alice", "bob", "hi")]

    def test_store_failure_does_not_block_delivery(self, registry, router, emitted, two_users):
        broken = MagicMock()
        broken.create.side_effect = StorageError("disk full")
        d = _dispatcher(registry, router, broken, emitted, echo_to_sender=False)

        delivered = d.dispatch("alice", "bob", "hi", origin="c1")

        broken.create.assert_called_once()
        assert delivered == ["c2", "c3"]

    def test_unexpected_store_error_is_contained(self, registry, router, emitted):
        registry.register("bob", "c3")
        broken = MagicMock()
        broken.create.side_effect = RuntimeError("boom")
        d = _dispatcher(registry, router, broken, emitted)

        assert d.dispatch("alice", "bob", "hi") == ["c3"]

    def test_spawn_runs_persistence_in_background(self, registry, router, store, emitted):
        registry.register("bob", "c3")
        spawned = []
        d = _dispatcher(registry, router, store, emitted, spawn=lambda fn, *args: spawned.append((fn, args)))

        assert d.dispatch("alice", "bob", "hi") == ["c3"]
        # delivered before the store write ran
        assert len(store) == 0
        assert len(spawned) == 1

        fn, args = spawned[0]
        fn(*args)
        assert len(store) == 1

    def test_spawn_failure_does_not_block_delivery(self, registry, router, store, emitted):
        registry.register("bob", "c3")

        def _spawn(fn, *args):
            raise RuntimeError("no workers")

        d = _dispatcher(registry, router, store, emitted, spawn=_spawn)
        assert d.dispatch("alice", "bob", "hi") == ["c3"]

    def test_stored_timestamp_matches_delivered(self, registry, router, store, emitted):
        registry.register("bob", "c3")
        d = _dispatcher(registry, router, store, emitted)
        d.dispatch("alice", "bob", "hi")

        _, data, _ = emitted.named(DELIVERY_EVENT)[0]
        assert store.find_between("alice", "bob")[0]["timestamp"] == data["timestamp"]


def test_echo_default_comes_from_config(registry, router, store, emitted, monkeypatch):
    import relay.dispatcher as dispatcher_module

    monkeypatch.setattr(dispatcher_module, "ECHO_TO_SENDER", True)
    assert MessageDispatcher(registry, router, store, emitted).echo_to_sender is True


def test_to_wire_uses_client_field_names():
    msg = build_message("a", "b", "yo")
    assert to_wire(msg) == {
        "senderId": "a",
        "receiverId": "b",
        "message": "yo",
        "timestamp": msg["timestamp"],
    }
