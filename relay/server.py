# ============================================
#     Relay — Application factory
# ============================================

from flask import Flask
from flask_socketio import SocketIO

from relay import config
from relay.accounts import accounts_bp
from relay.context import RelayContext
from relay.sockets import register_socket_handlers
from relay.storage import AccountStore, MessageStore
from relay.logger import log_info


def create_app(
    echo_to_sender=None,
    persist_to_disk=None,
    async_persist=None,
    async_mode=None,
    accounts=None,
    messages=None,
):
    """
    Build the Flask app, its SocketIO server and the RelayContext.

    Keyword arguments override the matching settings in relay.config;
    `accounts` / `messages` replace the default stores entirely.

    Returns (app, socketio). The context lives at app.extensions["relay"].
    """
    persist_to_disk = config.PERSIST_TO_DISK if persist_to_disk is None else persist_to_disk
    async_persist = config.ASYNC_PERSIST if async_persist is None else async_persist

    app = Flask(__name__)
    socketio = SocketIO(
        app,
        cors_allowed_origins=config.CORS_ALLOWED_ORIGINS,
        async_mode=async_mode,
    )

    if accounts is None:
        accounts = AccountStore(config.ACCOUNTS_FILE if persist_to_disk else None)
    if messages is None:
        messages = MessageStore(
            config.MESSAGES_FILE if persist_to_disk else None,
            secret_key=config.SECRET_KEY,
            limit=config.HISTORY_LIMIT,
        )

    relay = RelayContext(
        socketio.emit,
        accounts,
        messages,
        echo_to_sender=echo_to_sender,
        spawn=socketio.start_background_task if async_persist else None,
    )
    app.extensions["relay"] = relay

    app.register_blueprint(accounts_bp)
    register_socket_handlers(socketio, relay)

    log_info(
        "server",
        f"App created (async_mode={socketio.async_mode}, echo_to_sender={relay.dispatcher.echo_to_sender}, "
        f"persist_to_disk={bool(persist_to_disk)})",
    )
    return app, socketio
