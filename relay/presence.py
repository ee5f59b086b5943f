# ============================================
#     Relay — Presence Broadcaster
# ============================================

from relay.logger import log_info


class PresenceBroadcaster:
    """
    Full-state presence: every notification carries the complete sorted
    list of online user_ids, so a client that missed an update converges
    on the next one.

    `emit` follows the SocketIO.emit signature: emit(event, data, to=None).
    Without `to`, the event goes to every connection in the namespace.
    """

    EVENT = "online_users"

    def __init__(self, registry, emit):
        self.registry = registry
        self.emit = emit

    def snapshot(self) -> list:
        return sorted(self.registry.online_users())

    def notify_all(self) -> list:
        users = self.snapshot()
        self.emit(self.EVENT, users)
        log_info("presence", f"Broadcast online_users ({len(users)} online)")
        return users

    def send_snapshot(self, conn_id: str) -> list:
        users = self.snapshot()
        self.emit(self.EVENT, users, to=conn_id)
        return users
