# ============================================
#     Relay — Main Application
# ============================================

# -------------------------------------------------
#   EVENTLET PATCH (REQUIRED FOR GUNICORN WORKERS)
# -------------------------------------------------
import eventlet
eventlet.monkey_patch()

# -----------------------------------------
#   ENV VARIABLES (.env / deployment secrets)
# -----------------------------------------
from dotenv import load_dotenv
load_dotenv()

from relay.config import DATA_DIR, HOST, PORT, PERSIST_TO_DISK
from relay.server import create_app
from relay.logger import log_info, log_exception

# =========================================
#   FLASK + SOCKET.IO + RELAY CONTEXT
# =========================================
app, socketio = create_app(async_mode="eventlet")
relay = app.extensions["relay"]

if PERSIST_TO_DISK:
    log_info("app", f"Persistent DATA_DIR: {DATA_DIR}")
else:
    log_info("app", "Running with in-memory stores only.")


@app.route("/health")
def health():
    return {
        "status": "ok",
        "online": len(relay.registry),
        "rooms": len(relay.router),
    }


# =========================================
#   RUN SERVER
# =========================================
if __name__ == "__main__":
    log_info("app", f"Server starting on {HOST}:{PORT}...")
    try:
        socketio.run(app, host=HOST, port=PORT)
    except Exception:
        log_exception("app", "Server stopped with an error")
        raise
    finally:
        relay.close()
