# ============================================
#     Relay — Connection Registry
#     user_id → set of live connection sids
# ============================================

import enum
import threading

from relay.logger import log_info


class RemoveResult(enum.Enum):
    WENT_OFFLINE = "went_offline"
    STILL_ONLINE = "still_online"
    UNKNOWN = "unknown"


class ConnectionRegistry:
    """
    Tracks which logical users have live connections.

    _connections = {
        user_id: {sid, sid, ...},   # never empty
    }
    _owners = {
        sid: user_id,               # reverse index, one user per sid
    }

    A user_id is present in _connections iff at least one of its
    connections is open. All mutations happen under _lock.
    """

    def __init__(self):
        self._connections = {}
        self._owners = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, conn_id: str) -> bool:
        """
        Associate conn_id with user_id.

        Returns True when the online set changed (user_id came online,
        or conn_id moved away from the last connection of another user).
        Re-registering the same pair is a no-op.
        """
        user_id = str(user_id)

        with self._lock:
            previous = self._owners.get(conn_id)
            if previous == user_id:
                return False

            changed = False

            # Last register wins: the sid moves to the new user.
            if previous is not None:
                changed = self._detach(previous, conn_id)

            sids = self._connections.get(user_id)
            if sids is None:
                self._connections[user_id] = {conn_id}
                changed = True
            else:
                sids.add(conn_id)

            self._owners[conn_id] = user_id

        if previous is not None:
            log_info("registry", f"Connection {conn_id} moved from {previous} to {user_id}")
        return changed

    def remove(self, conn_id: str) -> RemoveResult:
        with self._lock:
            user_id = self._owners.pop(conn_id, None)
            if user_id is None:
                return RemoveResult.UNKNOWN

            went_offline = self._detach(user_id, conn_id)

        if went_offline:
            log_info("registry", f"User {user_id} offline")
            return RemoveResult.WENT_OFFLINE
        return RemoveResult.STILL_ONLINE

    def _detach(self, user_id, conn_id) -> bool:
        # Caller holds _lock. True if user_id lost its last connection.
        sids = self._connections.get(user_id)
        if not sids:
            return False

        sids.discard(conn_id)
        if sids:
            return False

        del self._connections[user_id]
        return True

    def connections_for(self, user_id: str) -> frozenset:
        with self._lock:
            return frozenset(self._connections.get(str(user_id), ()))

    def user_for(self, conn_id: str):
        with self._lock:
            return self._owners.get(conn_id)

    def online_users(self):
        """
        Yield the user_ids online at call time.
        The snapshot is taken before the first item is produced, so later
        registry changes never leak into an iteration in progress.
        """
        with self._lock:
            snapshot = list(self._connections.keys())
        return (user_id for user_id in snapshot)

    def clear(self):
        with self._lock:
            self._connections.clear()
            self._owners.clear()

    def __len__(self):
        with self._lock:
            return len(self._connections)
