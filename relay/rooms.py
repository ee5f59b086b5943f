# ============================================
#     Relay — Direct Message Rooms
#     @dm_<hash> rooms keyed on the user_id pair
# ============================================

import hashlib
import threading

from relay.logger import log_info


ROOM_PREFIX = "@dm_"


def room_key(user_id_a: str, user_id_b: str) -> str:
    """
    Deterministic room name for an unordered pair of user_ids.

    The pair is sorted, then each id is length-prefixed before hashing, so
    ("a|b", "c") and ("a", "b|c") never encode to the same bytes whatever
    characters a user_id contains. Full sha256, no truncation.
    """
    ids = sorted([str(user_id_a), str(user_id_b)])
    encoded = "".join(f"{len(uid)}:{uid}" for uid in ids)
    digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
    return f"{ROOM_PREFIX}{digest}"


class RoomRouter:
    """
    Channel membership for direct message rooms.

    _members = {
        room: {sid, ...},           # never empty
    }
    _rooms_by_conn = {
        sid: {room, ...},           # every room a sid joined
    }

    There is no explicit leave: a sid stays in its rooms until
    leave_all() runs on disconnect.
    """

    def __init__(self):
        self._members = {}
        self._rooms_by_conn = {}
        self._lock = threading.Lock()

    @staticmethod
    def room_key(user_id_a: str, user_id_b: str) -> str:
        return room_key(user_id_a, user_id_b)

    def join(self, conn_id: str, room: str) -> bool:
        """Add conn_id to room. Returns False if it was already a member."""
        with self._lock:
            members = self._members.setdefault(room, set())
            if conn_id in members:
                return False

            members.add(conn_id)
            self._rooms_by_conn.setdefault(conn_id, set()).add(room)

        log_info("rooms", f"{conn_id} joined {room}")
        return True

    def members_of(self, room: str) -> frozenset:
        with self._lock:
            return frozenset(self._members.get(room, ()))

    def rooms_of(self, conn_id: str) -> frozenset:
        with self._lock:
            return frozenset(self._rooms_by_conn.get(conn_id, ()))

    def leave_all(self, conn_id: str) -> list:
        """
        Remove conn_id from every room it joined.
        Rooms left without members are dropped. Returns the dropped rooms.
        """
        dropped = []

        with self._lock:
            rooms = self._rooms_by_conn.pop(conn_id, set())
            for room in rooms:
                members = self._members.get(room)
                if members is None:
                    continue
                members.discard(conn_id)
                if not members:
                    del self._members[room]
                    dropped.append(room)

        for room in dropped:
            log_info("rooms", f"Room {room} dropped (no members left)")
        return dropped

    def clear(self):
        with self._lock:
            self._members.clear()
            self._rooms_by_conn.clear()

    def __len__(self):
        with self._lock:
            return len(self._members)
