# ============================================
#   Relay — Socket.IO Handlers
# ============================================

from flask import request
from flask_socketio import emit

from relay.config import MAX_MESSAGE_LENGTH
from relay.history import send_chat_history
from relay.registry import RemoveResult
from relay.users import extract_join_user_id, extract_pair
from relay.logger import log_info, log_warning, log_exception


def register_socket_handlers(socketio, relay):
    """
    Events:
    - connect        → online_users snapshot to the new connection
    - join           → bind the connection to a user_id
    - join_chat      → join the pair's @dm_ room
    - send_message   → persist + deliver
    - load_history   → chat_history for one pair
    - disconnect     → unbind, leave rooms, presence if user went offline

    `relay` is the RelayContext owning all routing state.
    """

    def _reject(msg):
        emit("system_message", {"msg": msg}, to=request.sid)

    # -----------------------------------------
    # CONNECT
    # -----------------------------------------
    @socketio.on("connect", namespace="/")
    def on_connect(auth=None):
        try:
            relay.connect(request.sid)
            log_info("sockets", f"Client connected: sid={request.sid}")
        except Exception:
            log_exception("sockets", f"Error on connect sid={request.sid}")

    # -----------------------------------------
    # JOIN (user goes online on this connection)
    # -----------------------------------------
    @socketio.on("join", namespace="/")
    def on_join(data=None):
        user_id = extract_join_user_id(data)
        if not user_id:
            log_warning("sockets", f"Join rejected (invalid user id) sid={request.sid}")
            _reject("Invalid user id.")
            return

        try:
            came_online = relay.join(user_id, request.sid)
        except Exception:
            log_exception("sockets", f"Error joining {user_id} sid={request.sid}")
            return

        if came_online:
            log_info("sockets", f"User {user_id} online (sid={request.sid})")
        else:
            log_info("sockets", f"User {user_id} added connection sid={request.sid}")

    # -----------------------------------------
    # JOIN CHAT (pair room)
    # -----------------------------------------
    @socketio.on("join_chat", namespace="/")
    def on_join_chat(data=None):
        sender_id, receiver_id = extract_pair(data)
        if not sender_id:
            log_warning("sockets", f"join_chat rejected (bad payload) sid={request.sid}")
            _reject("join_chat needs senderId and receiverId.")
            return

        try:
            room = relay.join_chat(request.sid, sender_id, receiver_id)
        except Exception:
            log_exception("sockets", f"Error in join_chat {sender_id} <-> {receiver_id}")
            return

        emit("joined_chat", {"room": room}, to=request.sid)

    # -----------------------------------------
    # SEND MESSAGE
    # -----------------------------------------
    @socketio.on("send_message", namespace="/")
    def on_send_message(data=None):
        sender_id, receiver_id = extract_pair(data)
        if not sender_id:
            log_warning("sockets", f"send_message rejected (bad payload) sid={request.sid}")
            _reject("send_message needs senderId and receiverId.")
            return

        msg = data.get("message")
        if not isinstance(msg, str) or not msg.strip():
            log_warning("sockets", f"Empty message from {sender_id} rejected")
            _reject("Message is empty.")
            return

        if len(msg) > MAX_MESSAGE_LENGTH:
            log_warning("sockets", f"Message too long from {sender_id} ({len(msg)} chars)")
            _reject(f"Message too long ({len(msg)} chars).")
            return

        try:
            relay.send(sender_id, receiver_id, msg, origin=request.sid)
        except Exception:
            log_exception("sockets", f"Error dispatching {sender_id} -> {receiver_id}")

    # -----------------------------------------
    # LOAD HISTORY
    # -----------------------------------------
    @socketio.on("load_history", namespace="/")
    def on_load_history(data=None):
        sender_id, receiver_id = extract_pair(data)
        if not sender_id:
            _reject("load_history needs senderId and receiverId.")
            return

        send_chat_history(relay.emit, relay.messages, sender_id, receiver_id, request.sid)

    # -----------------------------------------
    # DISCONNECT
    # -----------------------------------------
    @socketio.on("disconnect", namespace="/")
    def on_disconnect(reason=None):
        try:
            result = relay.disconnect(request.sid)
        except Exception:
            log_exception("sockets", f"Error on disconnect sid={request.sid}")
            return

        if result is RemoveResult.UNKNOWN:
            log_info("sockets", f"Client disconnected before join: sid={request.sid}")
        else:
            log_info("sockets", f"Client disconnected: sid={request.sid} ({result.value})")
