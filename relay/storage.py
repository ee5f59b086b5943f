# ============================================
#   Relay — Account & Message Stores
#   In-memory, optional JSON persistence
#   + message encryption at rest
# ============================================

import os
import json
import time
import uuid
import base64
import hashlib
import threading

from cryptography.fernet import Fernet, InvalidToken

from relay.logger import log_info, log_warning, log_exception


class StorageError(Exception):
    """A store could not persist its state."""


# =====================================================
#   FILESYSTEM HELPERS
# =====================================================

def _safe_read_json(path: str, default):
    """
    Safe JSON reader with fallback.
    Returns `default` on missing file or parse errors.
    """
    if not path or not os.path.exists(path):
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        log_exception("storage", f"Unreadable JSON file, starting empty: {path}")
        return default


def _atomic_write_json(path: str, payload):
    """
    Atomic JSON write to avoid corruption on crash/restart:
    write temp file then os.replace().
    """
    tmp_path = f"{path}.tmp"
    try:
        base = os.path.dirname(path)
        if base:
            os.makedirs(base, exist_ok=True)

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError:
            pass
        raise StorageError(f"Could not write {path}: {e}") from e


# =====================================================
#   ENCRYPTION AT REST
# =====================================================

def make_cipher(secret_key: str):
    """
    Build a Fernet cipher from arbitrary secret material.
    Returns None when no secret is configured.
    """
    if not secret_key:
        return None

    key = base64.urlsafe_b64encode(hashlib.sha256(secret_key.encode("utf-8")).digest())
    return Fernet(key)


# =====================================================
#   MESSAGE NORMALIZATION
# =====================================================

def normalize_message(msg: dict) -> dict:
    """
    Normalize a message before persistence.
    A timestamp is assigned here only if the caller did not set one;
    an existing timestamp is never rewritten.
    """
    m = dict(msg or {})

    m["sender_id"] = str(m.get("sender_id") or "")
    m["receiver_id"] = str(m.get("receiver_id") or "")
    m.setdefault("message", "")
    if m.get("timestamp") is None:
        m["timestamp"] = time.time()

    return m


# =====================================================
#   JSON-BACKED STORE BASE
# =====================================================

class JsonFileStore:
    """
    Keeps its records in a list in memory. When `path` is set, the file is
    loaded at construction and rewritten atomically after each change.

    _records  → readable records, oldest first
    _encoded  → on-disk form of each entry in _records (same order),
                encoded once when the record is added
    _opaque   → on-disk entries this store cannot read; written back as-is

    `limit` caps _records; the oldest entries are dropped first.
    """

    name = "store"

    def __init__(self, path=None, limit=None):
        self.path = path
        self.limit = limit
        self._records = []
        self._encoded = []
        self._opaque = []
        self._lock = threading.Lock()

        if self.path:
            data = _safe_read_json(self.path, [])
            if not isinstance(data, list):
                log_warning("storage", f"{self.path} invalid format (expected list), resetting.")
                data = []

            for raw in data:
                if not isinstance(raw, dict):
                    continue
                record = self._decode(raw)
                if record is None:
                    self._opaque.append(raw)
                    continue
                self._records.append(record)
                self._encoded.append(raw)

            self._trim()
            log_info("storage", f"Loaded {len(self._records)} {self.name} records from {self.path}.")
            if self._opaque:
                log_warning("storage", f"{len(self._opaque)} unreadable {self.name} records kept untouched in {self.path}.")

    def _encode(self, record: dict) -> dict:
        return record

    def _decode(self, record: dict):
        # None marks the record as unreadable.
        return record

    def _trim(self):
        # Caller holds _lock (or is the constructor).
        if self.limit and len(self._records) > self.limit:
            drop = len(self._records) - self.limit
            del self._records[:drop]
            del self._encoded[:drop]

    def _flush(self):
        # Caller holds _lock.
        if not self.path:
            return
        _atomic_write_json(self.path, self._opaque + self._encoded)

    def _append(self, record: dict) -> dict:
        encoded = self._encode(record) if self.path else None
        with self._lock:
            self._records.append(record)
            self._encoded.append(encoded)
            self._trim()
            self._flush()
        return record

    def close(self):
        with self._lock:
            self._flush()

    def __len__(self):
        with self._lock:
            return len(self._records)


# =====================================================
#   ACCOUNTS
# =====================================================

class AccountStore(JsonFileStore):
    """
    Accounts: {"id": str, "name": str, "email": str}
    """

    name = "account"

    def find_by_email(self, email: str):
        with self._lock:
            for account in self._records:
                if account.get("email") == email:
                    return dict(account)
        return None

    def create(self, name: str, email: str) -> dict:
        account = {
            "id": uuid.uuid4().hex,
            "name": name,
            "email": email,
        }
        self._append(account)
        log_info("storage", f"Account created: {account['id']}")
        return dict(account)

    def all(self) -> list:
        with self._lock:
            return [dict(a) for a in self._records]


# =====================================================
#   MESSAGES
# =====================================================

class MessageStore(JsonFileStore):
    """
    Direct messages: {"sender_id", "receiver_id", "message", "timestamp"}

    With a secret key, the "message" field is Fernet-encrypted on disk.
    Records in memory are always plaintext. Encrypted records that cannot
    be decrypted (no key, other key) are left out of queries and written
    back byte-for-byte, so the right key still reads them later.
    """

    name = "message"

    def __init__(self, path=None, secret_key: str = "", limit=None):
        self._cipher = make_cipher(secret_key)
        super().__init__(path, limit=limit)

    def _encode(self, record: dict) -> dict:
        if not self._cipher:
            return dict(record)
        out = dict(record)
        out["message"] = self._cipher.encrypt(str(record.get("message", "")).encode("utf-8")).decode("utf-8")
        out["encrypted"] = True
        return out

    def _decode(self, record: dict):
        out = dict(record)
        if not out.pop("encrypted", False):
            return normalize_message(out)

        if not self._cipher:
            log_warning("storage", "Encrypted message found but no secret key configured.")
            return None

        try:
            out["message"] = self._cipher.decrypt(str(out.get("message", "")).encode("utf-8")).decode("utf-8")
        except InvalidToken:
            log_warning("storage", "Stored message does not decrypt with the configured key.")
            return None
        return normalize_message(out)

    def create(self, message: dict) -> dict:
        record = normalize_message(message)
        self._append(record)
        return dict(record)

    def find_between(self, user_a: str, user_b: str) -> list:
        """
        Every message exchanged between user_a and user_b (either
        direction), oldest first.
        """
        a, b = str(user_a), str(user_b)
        with self._lock:
            found = [
                dict(m) for m in self._records
                if (m["sender_id"] == a and m["receiver_id"] == b)
                or (m["sender_id"] == b and m["receiver_id"] == a)
            ]
        found.sort(key=lambda m: m["timestamp"])
        return found
