"""
Key-Value Store
===============

Persistence backends for wallet records and the active DeviceId.

Backends:
    MemoryStore  - process-local dict, used by tests and ``--ephemeral``
    SqliteStore  - single ``kv_store`` table, JSON-encoded values

Security Notes:
- Wallet records contain the mnemonic and private key in plaintext;
  the database file is created with owner-only permissions on POSIX
- Backend errors are wrapped in PersistenceFailureError (retryable)
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Final, Optional, Protocol, runtime_checkable

from auroraid.core.config import IdentityConfig
from auroraid.core.errors import PersistenceFailureError


logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence contract used by IdentityService."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-memory store. Values are JSON round-tripped like the SQLite backend."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def __repr__(self) -> str:
        return f"MemoryStore(entries={len(self._data)})"


class SqliteStore:
    """
    SQLite-backed store.

    Usage:
        store = SqliteStore(config.store_path)
        store.initialize_db()
        store.set("active_device_id", "a1b2c3d4e5")
    """

    __slots__ = ("_db_path",)

    _SCHEMA: Final[str] = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self._db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize_db(self) -> None:
        """Initialize the database schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = self._get_connection()
            try:
                with conn:
                    conn.executescript(self._SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Failed to initialize store at %s: %s", self._db_path, exc)
            raise PersistenceFailureError(f"Cannot initialize store: {exc}") from exc

        if os.name != "nt":
            try:
                os.chmod(self._db_path, 0o600)
            except OSError as exc:
                logger.warning("Could not restrict store permissions: %s", exc)

    def get(self, key: str) -> Optional[Any]:
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Store read failed for key %s: %s", key, exc)
            raise PersistenceFailureError(f"Cannot read {key!r}: {exc}") from exc

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            # Unparseable values are reported as raw text; record validation rejects them
            logger.warning("Stored value for key %s is not valid JSON", key)
            return row["value"]

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        now = datetime.now(timezone.utc).isoformat()
        try:
            conn = self._get_connection()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (key, encoded, now),
                    )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Store write failed for key %s: %s", key, exc)
            raise PersistenceFailureError(f"Cannot write {key!r}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            conn = self._get_connection()
            try:
                with conn:
                    conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Store delete failed for key %s: %s", key, exc)
            raise PersistenceFailureError(f"Cannot remove {key!r}: {exc}") from exc

    def keys(self) -> list[str]:
        try:
            conn = self._get_connection()
            try:
                rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceFailureError(f"Cannot list keys: {exc}") from exc
        return [row["key"] for row in rows]

    def __repr__(self) -> str:
        return f"SqliteStore(path={str(self._db_path)!r})"


def open_store(config: IdentityConfig) -> KeyValueStore:
    """Create the backend selected by ``config.store.backend``."""
    if config.store.backend == "memory":
        return MemoryStore()
    store = SqliteStore(config.store_path)
    store.initialize_db()
    logger.debug("Opened %r", store)
    return store
