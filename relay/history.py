# ============================================
#     Relay — History
#     conversation replay for one user pair
# ============================================

from relay.dispatcher import to_wire
from relay.logger import log_info, log_exception


def history_between(store, user_a: str, user_b: str) -> list:
    """
    Messages between user_a and user_b in either direction, oldest first,
    in client-facing shape.
    """
    return [to_wire(m) for m in store.find_between(user_a, user_b)]


def send_chat_history(emit, store, sender_id: str, receiver_id: str, sid: str):
    """
    Emit `chat_history` for the (sender_id, receiver_id) conversation to one
    connection. A store failure sends an empty list rather than nothing, so
    the client can stop waiting.
    """
    try:
        messages = history_between(store, sender_id, receiver_id)
    except Exception:
        log_exception("history", f"Failed loading history {sender_id} <-> {receiver_id}")
        messages = []

    emit("chat_history", {
        "senderId": sender_id,
        "receiverId": receiver_id,
        "messages": messages,
    }, to=sid)

    log_info("history", f"Sent {len(messages)} message(s) of {sender_id} <-> {receiver_id} to {sid}")
