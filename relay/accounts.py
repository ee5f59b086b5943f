# ============================================
#     Relay — Account HTTP routes
#     register / login / users / message history
# ============================================

from flask import Blueprint, current_app, jsonify, request

from relay.history import history_between
from relay.logger import log_info, log_warning, log_exception


accounts_bp = Blueprint("accounts", __name__)


def _relay():
    return current_app.extensions["relay"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _field(data: dict, name: str) -> str:
    value = data.get(name)
    return value.strip() if isinstance(value, str) else ""


@accounts_bp.route("/register", methods=["POST"])
def register():
    data = _json_body()
    name = _field(data, "name")
    email = _field(data, "email")

    if not name or not email:
        return jsonify({"message": "Name and email required"}), 400

    accounts = _relay().accounts
    if accounts.find_by_email(email):
        log_warning("accounts", f"Register refused, email already used: {email}")
        return jsonify({"message": "User exists"}), 400

    try:
        user = accounts.create(name, email)
    except Exception:
        log_exception("accounts", f"Failed creating account for {email}")
        return jsonify({"message": "Could not create account"}), 500

    log_info("accounts", f"Registered {user['id']}")
    return jsonify({"message": "Registered", "user": user})


@accounts_bp.route("/login", methods=["POST"])
def login():
    email = _field(_json_body(), "email")

    user = _relay().accounts.find_by_email(email) if email else None
    if not user:
        return jsonify({"message": "User not found"}), 404

    return jsonify({"message": "Login success", "user": user})


@accounts_bp.route("/users", methods=["GET"])
def list_users():
    return jsonify(_relay().accounts.all())


@accounts_bp.route("/messages/<user1>/<user2>", methods=["GET"])
def messages_between(user1, user2):
    return jsonify(history_between(_relay().messages, user1, user2))
