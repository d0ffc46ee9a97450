"""
Key-value persistence for Habla.

Values are JSON-compatible objects stored one per key. With Firebase
credentials the store writes to Firestore:

    <collection>/<key>  ->  {"value": <json-compatible value>}

Without a connection it keeps values in a local in-process cache, so the
app keeps working offline (progress is then lost on exit).
"""

import copy
import os
import threading
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from .config import DEFAULT_STORE_COLLECTION
from .logger import logger

MEMORY_KEY = "learning-memory"
PROFILE_KEY = "user-profile"
METRICS_KEY = "progress-metrics"
CHALLENGE_KEY = "daily-challenge"
STREAK_KEY = "challenge-streak"
LAST_CHALLENGE_KEY = "last-challenge-date"


class KeyValueStore:
    """
    Firestore-backed key-value store with a local cache fallback.

    ``get`` and ``set`` always hand out copies, so callers can never mutate
    what the store holds.
    """

    def __init__(self, collection: str = DEFAULT_STORE_COLLECTION, db: Any = None):
        self.collection = collection
        self.db = db
        self._initialized = db is not None
        self._cache: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def initialize(self, credentials_path: Optional[str] = None) -> bool:
        """
        Connect to Firestore.

        Args:
            credentials_path: Path to a Firebase service account JSON.
                              If None, uses FIREBASE_CREDENTIALS_PATH.

        Returns:
            True if connected, False if running on the local cache.
        """
        logger.separator("Store Initialization")

        if self._initialized:
            logger.debug("[KV] Already initialized, skipping")
            return True

        creds_path = credentials_path or os.getenv("FIREBASE_CREDENTIALS_PATH")
        if not creds_path:
            logger.warning("[KV] FIREBASE_CREDENTIALS_PATH not set, using local cache")
            return False

        if not os.path.exists(creds_path):
            logger.error(f"[KV] Credentials file not found at: {creds_path}")
            return False

        try:
            logger.debug("[KV] Loading Firebase credentials...")
            cred = credentials.Certificate(creds_path)
            try:
                firebase_admin.get_app()
            except ValueError:
                firebase_admin.initialize_app(cred)
            self.db = firestore.client()
            self._initialized = True
            logger.success("[KV] Firebase Firestore connected successfully!")
            return True
        except (ValueError, OSError) as e:
            logger.error(f"[KV] Failed to initialize Firebase: {e}", exc_info=True)
            return False

    def is_connected(self) -> bool:
        return self._initialized and self.db is not None

    def _doc(self, key: str):
        return self.db.collection(self.collection).document(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``, or a copy of ``default``."""
        if not self.is_connected():
            with self._lock:
                if key in self._cache:
                    return copy.deepcopy(self._cache[key])
            return copy.deepcopy(default)

        snapshot = self._doc(key).get()
        if not snapshot.exists:
            return copy.deepcopy(default)
        data = snapshot.to_dict() or {}
        logger.debug(f"[KV] Loaded '{key}'")
        return data.get("value", copy.deepcopy(default))

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""
        if not self.is_connected():
            with self._lock:
                self._cache[key] = copy.deepcopy(value)
            return

        self._doc(key).set({"value": value})
        logger.debug(f"[KV] Saved '{key}'")

    def delete(self, key: str) -> None:
        if not self.is_connected():
            with self._lock:
                self._cache.pop(key, None)
            return

        self._doc(key).delete()
        logger.kv(f"Deleted '{key}'")


# ---------------------------------------------------------------------------
# Global store instance
# ---------------------------------------------------------------------------

_store = KeyValueStore()


def initialize_store(credentials_path: Optional[str] = None, collection: Optional[str] = None) -> bool:
    """Initialize the global store."""
    if collection:
        _store.collection = collection
    return _store.initialize(credentials_path)


def get_store() -> KeyValueStore:
    return _store
