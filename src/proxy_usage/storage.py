"""Client-local key/value storage backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import STORAGE_FILE

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StorageError(Exception):
    """The underlying store could not be read or written."""


class MemoryStorage:
    """Dict-backed storage, used in tests and when nothing durable is available."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def close(self):
        pass


class SQLiteStorage:
    """String values keyed by name in a single SQLite table."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else STORAGE_FILE
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.db_path))
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA)
            self.conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open storage at {self.db_path}: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        try:
            row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                """INSERT OR REPLACE INTO kv (key, value, updated_at)
                   VALUES (?, ?, ?)""",
                (key, value, datetime.now().isoformat()),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def remove_item(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def keys(self) -> list[str]:
        try:
            rows = self.conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        return [row["key"] for row in rows]

    def close(self):
        self.conn.close()


def open_storage(db_path: str | Path | None = None) -> SQLiteStorage | None:
    """Open the durable store, or return None if it is unavailable."""
    try:
        return SQLiteStorage(db_path)
    except StorageError as exc:
        logger.warning("Persistent storage unavailable, prices will not be saved: %s", exc)
        return None
