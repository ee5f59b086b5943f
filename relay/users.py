# ============================================
#     Relay — User id & payload helpers
# ============================================

from relay.config import MAX_USER_ID_LENGTH


def clean_user_id(value):
    """
    Normalize a client-supplied user_id.

    Returns the stripped string, or None when it is empty, too long,
    not a scalar, or contains control characters.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None

    user_id = str(value).strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return None

    if any(ord(ch) < 32 for ch in user_id):
        return None

    return user_id


def extract_join_user_id(data):
    """
    `join` accepts either the bare user_id or {"userId": ...}.
    """
    if isinstance(data, dict):
        data = data.get("userId") or data.get("user_id")
    return clean_user_id(data)


def extract_pair(data):
    """
    Returns (sender_id, receiver_id) from a {senderId, receiverId} payload,
    or (None, None) when either side is missing or invalid.
    """
    if not isinstance(data, dict):
        return None, None

    sender_id = clean_user_id(data.get("senderId"))
    receiver_id = clean_user_id(data.get("receiverId"))
    if not sender_id or not receiver_id:
        return None, None

    return sender_id, receiver_id
