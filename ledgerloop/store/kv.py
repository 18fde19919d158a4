"""Key-value repository used to persist application state.

The definition store only needs three operations: read a key, write a key
and compare-and-swap a key. Anything offering them (SQLite file, remote
API, plain dict) can back the store.
"""

import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from ledgerloop.store.schema import get_db_path


class KeyValueStore(Protocol):
    """Minimal repository interface for string values."""

    def get(self, key: str) -> str | None:
        """Return the value under `key`, or None if absent."""
        ...

    def set(self, key: str, value: str | None) -> None:
        """Store `value` under `key`; None deletes the key."""
        ...

    def compare_and_swap(self, key: str, expected: str | None, new: str | None) -> bool:
        """Atomically replace the value if it still equals `expected`.

        `expected=None` means "key must be absent"; `new=None` deletes.

        Returns:
            True if the swap happened, False if the value had changed.
        """
        ...


class MemoryKeyValueStore:
    """Thread-safe in-memory store, for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str | None) -> None:
        with self._lock:
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def compare_and_swap(self, key: str, expected: str | None, new: str | None) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            if new is None:
                self._data.pop(key, None)
            else:
                self._data[key] = new
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class SqliteKeyValueStore:
    """Key-value store persisted in the `kv_store` table.

    Compare-and-swap runs inside a BEGIN IMMEDIATE transaction, which takes
    the database write lock before reading, so two processes sharing the
    file cannot both succeed.
    """

    def __init__(self, db_path: Path | None = None, timeout: float = 5.0) -> None:
        self.db_path = db_path or get_db_path()
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        """Create an autocommit connection; transactions are explicit."""
        return sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)

    def get(self, key: str) -> str | None:
        """Return the value under `key`.

        Raises:
            sqlite3.Error: If database operation fails.
        """
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str | None) -> None:
        """Store or delete `key` unconditionally.

        Raises:
            sqlite3.Error: If database operation fails.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            self._write(conn, key, value)
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def compare_and_swap(self, key: str, expected: str | None, new: str | None) -> bool:
        """Atomically replace `key` if its value equals `expected`.

        Raises:
            sqlite3.Error: If database operation fails.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            current = row[0] if row else None
            if current != expected:
                conn.execute("ROLLBACK")
                return False
            self._write(conn, key, new)
            conn.execute("COMMIT")
            return True
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def keys(self) -> list[str]:
        """List stored keys in sorted order."""
        conn = self._connect()
        try:
            return [row[0] for row in conn.execute("SELECT key FROM kv_store ORDER BY key")]
        finally:
            conn.close()

    @staticmethod
    def _write(conn: sqlite3.Connection, key: str, value: str | None) -> None:
        if value is None:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        else:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
                (key, value),
            )
