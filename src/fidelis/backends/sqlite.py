"""SQLite key-value driver.

Stores every value as text in a single ``kv`` table keyed by name.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Literal

import fidelis.backends.base as base
import fidelis.errors as errors


class SqliteKeyValueStore(base.BaseKeyValueStore):
    """SQLite-backed key-value driver.

    Example:
        store = SqliteKeyValueStore(path=".fidelis/store.db")
        store.initialize()
        store.set("fidelis:sync_url", "https://example.com/exec")
    """

    kind: Literal["sqlite"] = "sqlite"
    path: str
    timeout_seconds: float = 5.0

    def _connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        try:
            return sqlite3.connect(self.path, timeout=self.timeout_seconds)
        except sqlite3.Error as e:
            raise self._error("Opening", e) from e

    def _error(self, action: str, e: sqlite3.Error) -> errors.StoreError:
        return errors.StoreError(
            context=f"{action} local store '{self.path}'",
            cause=str(e),
            fix="Check that the store path in fidelis.yaml is writable and not locked by another process",
        )

    def initialize(self) -> None:
        """Create the kv table if it doesn't exist. Idempotent."""
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        except sqlite3.Error as e:
            raise self._error("Initializing", e) from e
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        conn = self._connect()
        try:
            cursor = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.OperationalError as e:
            # Table doesn't exist yet (before initialize)
            if "no such table" not in str(e):
                raise self._error("Reading", e) from e
            row = None
        except sqlite3.Error as e:
            raise self._error("Reading", e) from e
        finally:
            conn.close()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise self._error("Writing", e) from e
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise self._error("Writing", e) from e
        finally:
            conn.close()
