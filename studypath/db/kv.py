"""Key/value stores behind the roadmap repository.

All stores share a common interface: ``get``, ``set``, ``remove`` and
``keys``.  ``SqliteKeyValueStore`` is the durable client-side store;
``InMemoryKeyValueStore`` keeps everything in a dict and is what tests inject.
Both enforce an optional byte quota and raise
:class:`~studypath.errors.StorageQuotaExceeded` when a write would exceed it.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from time import time
from typing import Optional

from studypath.errors import StorageError, StorageQuotaExceeded, StorageUnavailable

logger = logging.getLogger(__name__)

_PROBE_KEY = "__storage_test__"


def _entry_size(key: str, value: str) -> int:
    return len(key) + len(value)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class KeyValueStore(ABC):
    """Abstract base class for a string key/value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for *key*, or ``None`` if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*.

        Raises:
            StorageQuotaExceeded: If the store is full.
            StorageError: For any other write failure.
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*.  A no-op when the key does not exist."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return every stored key."""

    def close(self) -> None:
        """Release any underlying resource.  The default does nothing."""

    def probe(self) -> None:
        """Check the store accepts a write and a delete.

        Raises:
            StorageUnavailable: If the store cannot be used at all.
        """
        try:
            self.set(_PROBE_KEY, _PROBE_KEY)
            self.remove(_PROBE_KEY)
        except StorageError as exc:
            raise StorageUnavailable(f"Storage is not available: {exc}") from exc


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

class SqliteKeyValueStore(KeyValueStore):
    """Key/value pairs in the ``kv_store`` table of an initialised connection."""

    def __init__(self, conn: sqlite3.Connection, max_bytes: Optional[int] = None) -> None:
        self._conn = conn
        self._max_bytes = max_bytes

    def _used_bytes(self, excluding: str) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv_store WHERE key != ?",
            (excluding,),
        ).fetchone()
        return int(row[0])

    def get(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read {key!r}: {exc}") from exc
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            if self._max_bytes is not None:
                needed = self._used_bytes(excluding=key) + _entry_size(key, value)
                if needed > self._max_bytes:
                    raise StorageQuotaExceeded(
                        f"Writing {key!r} needs {needed} bytes; quota is {self._max_bytes}"
                    )
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, int(time())),
                )
        except sqlite3.OperationalError as exc:
            if "full" in str(exc).lower():
                raise StorageQuotaExceeded(f"Database is full: {exc}") from exc
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to remove {key!r}: {exc}") from exc

    def keys(self) -> list[str]:
        rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def close(self) -> None:
        self._conn.close()


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store.  ``available=False`` simulates disabled storage."""

    def __init__(self, max_bytes: Optional[int] = None, available: bool = True) -> None:
        self.data: dict[str, str] = {}
        self._max_bytes = max_bytes
        self._available = available

    def _check_available(self) -> None:
        if not self._available:
            raise StorageUnavailable("In-memory store is disabled")

    def get(self, key: str) -> Optional[str]:
        self._check_available()
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_available()
        if self._max_bytes is not None:
            used = sum(_entry_size(k, v) for k, v in self.data.items() if k != key)
            if used + _entry_size(key, value) > self._max_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key!r} would exceed the {self._max_bytes}-byte quota"
                )
        self.data[key] = value

    def remove(self, key: str) -> None:
        self._check_available()
        self.data.pop(key, None)

    def keys(self) -> list[str]:
        self._check_available()
        return sorted(self.data)
