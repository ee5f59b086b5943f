# ============================================
#     Relay — Global Configuration
# ============================================

import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# =========================================
#   ENVIRONMENT
# =========================================
# Expected values: "dev", "prod"
ENV = os.getenv("ENV", "dev").lower()

IS_PROD = ENV == "prod"

# =========================================
#   PATHS — PERSISTENCE ROOT
# =========================================
# Prod default is a mounted disk at /var/data.
# Dev default is ./var/data inside the repo.
#
# Override with RELAY_PERSIST_ROOT=/custom/path

# Project root = one level above /relay
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

PERSIST_ROOT = (
    os.getenv("RELAY_PERSIST_ROOT")
    or ("/var/data" if IS_PROD else os.path.join(PROJECT_ROOT, "var", "data"))
)

DATA_DIR = PERSIST_ROOT

ACCOUNTS_FILE = os.path.join(PERSIST_ROOT, "accounts.json")
MESSAGES_FILE = os.path.join(PERSIST_ROOT, "messages.json")

# When off, both stores live in memory only.
PERSIST_TO_DISK = _env_flag("RELAY_PERSIST_TO_DISK", IS_PROD)

# =========================================
#   LOGGING
# =========================================
LOG_DIR = os.path.join(PERSIST_ROOT, "logs")
DEFAULT_LOG_FILE = os.path.join(LOG_DIR, "relay.log")
LOG_FILE = os.getenv("RELAY_LOG_FILE", DEFAULT_LOG_FILE)
LOG_LEVEL = os.getenv("RELAY_LOG_LEVEL", "INFO").upper()

# Dev logs go to stderr, prod logs go to a rotating file.
LOG_TO_FILE = _env_flag("RELAY_LOG_TO_FILE", IS_PROD)

# =========================================
#   SERVER
# =========================================
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))

# "*" or a comma separated list of origins
_cors = os.getenv("RELAY_CORS_ORIGINS", "*").strip()
CORS_ALLOWED_ORIGINS = "*" if _cors == "*" else [o.strip() for o in _cors.split(",") if o.strip()]

# =========================================
#   ROUTING POLICY
# =========================================
# Whether the connection that sent a message also receives
# its own receive_message event.
#   off → client renders its own message locally
#   on  → server echoes it back to the sending connection
ECHO_TO_SENDER = _env_flag("RELAY_ECHO_TO_SENDER", False)

# Store writes run as SocketIO background tasks; off → inline.
ASYNC_PERSIST = _env_flag("RELAY_ASYNC_PERSIST", True)

# =========================================
#   LIMITS
# =========================================
MAX_MESSAGE_LENGTH = int(os.getenv("RELAY_MAX_MESSAGE_LENGTH", "2000"))
MAX_USER_ID_LENGTH = int(os.getenv("RELAY_MAX_USER_ID_LENGTH", "128"))

# Max messages kept by the message store (oldest dropped first), 0 = no cap
HISTORY_LIMIT = int(os.getenv("RELAY_HISTORY_LIMIT", "10000"))

# =========================================
#   MESSAGE ENCRYPTION AT REST
# =========================================
# When set, message text is encrypted in messages.json.
# Losing this key makes stored history unreadable.
SECRET_KEY = os.getenv("RELAY_SECRET_KEY", "")
