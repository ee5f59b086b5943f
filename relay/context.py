# ============================================
#     Relay — Runtime Context
#     one instance per running server process
# ============================================

from relay.registry import ConnectionRegistry, RemoveResult
from relay.presence import PresenceBroadcaster
from relay.rooms import RoomRouter
from relay.dispatcher import MessageDispatcher
from relay.logger import log_info, log_exception


class RelayContext:
    """
    Owns the in-memory routing state and the stores, and wires the four
    core components together. Socket handlers receive it explicitly.

    Lifecycle: built by create_app(), torn down by close().
    """

    def __init__(self, emit, accounts, messages, echo_to_sender=None, spawn=None):
        self.emit = emit
        self.accounts = accounts
        self.messages = messages

        self.registry = ConnectionRegistry()
        self.router = RoomRouter()
        self.presence = PresenceBroadcaster(self.registry, emit)
        self.dispatcher = MessageDispatcher(
            self.registry,
            self.router,
            messages,
            emit,
            echo_to_sender=echo_to_sender,
            spawn=spawn,
        )
        self.closed = False

    # -----------------------------------------
    # Event flows
    # -----------------------------------------
    def connect(self, conn_id: str):
        self.presence.send_snapshot(conn_id)

    def join(self, user_id: str, conn_id: str) -> bool:
        # A sid re-joining as someone else drops the previous user's rooms.
        previous = self.registry.user_for(conn_id)
        if previous is not None and previous != str(user_id):
            self.router.leave_all(conn_id)

        changed = self.registry.register(user_id, conn_id)
        if changed:
            self.presence.notify_all()
        return changed

    def join_chat(self, conn_id: str, sender_id: str, receiver_id: str) -> str:
        room = self.router.room_key(sender_id, receiver_id)
        self.router.join(conn_id, room)
        return room

    def send(self, sender_id: str, receiver_id: str, payload: str, origin=None) -> list:
        return self.dispatcher.dispatch(sender_id, receiver_id, payload, origin=origin)

    def disconnect(self, conn_id: str) -> RemoveResult:
        self.router.leave_all(conn_id)
        result = self.registry.remove(conn_id)
        if result is RemoveResult.WENT_OFFLINE:
            self.presence.notify_all()
        return result

    # -----------------------------------------
    # Teardown
    # -----------------------------------------
    def close(self):
        if self.closed:
            return
        self.closed = True

        self.router.clear()
        self.registry.clear()

        for store in (self.accounts, self.messages):
            try:
                store.close()
            except Exception:
                log_exception("context", f"Failed flushing {store.name} store on shutdown")

        log_info("context", "Relay context closed.")
