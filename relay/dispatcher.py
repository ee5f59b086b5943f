# ============================================
#     Relay — Message Dispatcher
#     persist (fire-and-forget) → route → deliver
# ============================================

import time

from relay.config import ECHO_TO_SENDER
from relay.logger import log_info, log_exception


DELIVERY_EVENT = "receive_message"


def build_message(sender_id: str, receiver_id: str, payload: str) -> dict:
    return {
        "sender_id": str(sender_id),
        "receiver_id": str(receiver_id),
        "message": payload,
        "timestamp": time.time(),
    }


def to_wire(message: dict) -> dict:
    """Client-facing shape of a stored message."""
    return {
        "senderId": message.get("sender_id"),
        "receiverId": message.get("receiver_id"),
        "message": message.get("message"),
        "timestamp": message.get("timestamp"),
    }


class MessageDispatcher:
    """
    Entry point for send_message.

    Persistence and delivery are independent: the store write is issued
    first, but its outcome never changes who receives the message.

    Routing:
      - shared room active (the pair's room holds at least one live
        connection of the receiver) → every room member
      - otherwise → every live connection of the receiver

    echo_to_sender:
      False → the originating connection never gets its own message back;
              the client is expected to render it locally.
      True  → the originating connection receives one receive_message too.
    The sender's other connections only receive the message when they have
    joined the pair's room.

    `spawn`, when given, runs the store write in the background
    (e.g. SocketIO.start_background_task). Without it the write runs inline.
    """

    def __init__(self, registry, router, store, emit, echo_to_sender=None, spawn=None):
        self.registry = registry
        self.router = router
        self.store = store
        self.emit = emit
        self.echo_to_sender = ECHO_TO_SENDER if echo_to_sender is None else bool(echo_to_sender)
        self.spawn = spawn

    # -----------------------------------------
    # Persistence
    # -----------------------------------------
    def _persist(self, message: dict):
        try:
            self.store.create(message)
        except Exception:
            log_exception(
                "dispatcher",
                f"Failed saving message {message['sender_id']} -> {message['receiver_id']}",
            )

    def persist(self, message: dict):
        if self.spawn is None:
            self._persist(message)
            return

        try:
            self.spawn(self._persist, message)
        except Exception:
            log_exception("dispatcher", "Could not schedule message persistence")

    # -----------------------------------------
    # Routing
    # -----------------------------------------
    def targets(self, sender_id: str, receiver_id: str, origin=None) -> list:
        """
        Ordered, de-duplicated list of sids that should receive the message.
        """
        room = self.router.room_key(sender_id, receiver_id)
        members = self.router.members_of(room)
        receiver_conns = self.registry.connections_for(receiver_id)

        if members and not members.isdisjoint(receiver_conns):
            selected = set(members)
            if not self.echo_to_sender:
                selected.discard(origin)
            elif origin is not None:
                selected.add(origin)
        else:
            selected = set(receiver_conns)
            if self.echo_to_sender and origin is not None:
                selected.add(origin)

        return sorted(selected)

    def dispatch(self, sender_id: str, receiver_id: str, payload: str, origin=None) -> list:
        """
        Persist and deliver one message. Returns the sids it was sent to.
        An offline receiver with no active room gets nothing live; the
        message is still persisted.
        """
        message = build_message(sender_id, receiver_id, payload)

        self.persist(message)

        delivered = self.targets(message["sender_id"], message["receiver_id"], origin=origin)
        wire = to_wire(message)
        for sid in delivered:
            self.emit(DELIVERY_EVENT, wire, to=sid)

        if delivered:
            log_info(
                "dispatcher",
                f"Message {message['sender_id']} -> {message['receiver_id']} delivered to {len(delivered)} connection(s)",
            )
        else:
            log_info(
                "dispatcher",
                f"Message {message['sender_id']} -> {message['receiver_id']} stored only (receiver offline)",
            )

        return delivered
