"""
Key-Value Stores - Shared Contract for Memory, JSON and SQLite Backends
========================================================================

Every backend exposes get / set / remove / items over JSON-serializable
values, so the session store does not care where data lives.

Single-process assumption: there is no cross-process locking.
"""

import json
import logging
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal persistence contract used by SessionStore."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def items(self) -> List[Tuple[str, Any]]:
        ...


class InMemoryStore(KeyValueStore):
    """Process-lifetime dict."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def items(self) -> List[Tuple[str, Any]]:
        return list(self._data.items())


class JsonFileStore(KeyValueStore):
    """
    Whole-document JSON file, read on every call and rewritten on every change.

    Writes go to a temp file in the same directory and are renamed over the
    target, so a crash never leaves a half-written document.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error(f"Failed to read {self.path}: {e}")
            return {}

        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt JSON in {self.path}, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def items(self) -> List[Tuple[str, Any]]:
        return list(self._load().items())


class SqliteStore(KeyValueStore):
    """
    SQLite-backed store.

    Usage:
        store = SqliteStore("links.db")
        store.init()
        store.set("123@g.us", {"sheet_id": "abc"})
    """

    def __init__(self, db_path: str, table: str = "kv"):
        self.db_path = db_path
        self.table = table

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with context manager."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> "SqliteStore":
        """Initialize the key/value table."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        logger.info(f"Key-value table ready: {self.db_path}:{self.table}")
        return self

    def get(self, key: str) -> Optional[Any]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT value FROM {self.table} WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def set(self, key: str, value: Any) -> None:
        with self._get_connection() as conn:
            conn.execute(
                f"""INSERT INTO {self.table} (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP""",
                (key, json.dumps(value, ensure_ascii=False)),
            )

    def remove(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))

    def items(self) -> List[Tuple[str, Any]]:
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT key, value FROM {self.table} ORDER BY key").fetchall()
        return [(key, json.loads(value)) for key, value in rows]


def open_store(path: str) -> KeyValueStore:
    """Pick a backend from the configured path (empty means memory only)."""
    if not path:
        return InMemoryStore()
    if Path(path).suffix.lower() in (".db", ".sqlite", ".sqlite3"):
        return SqliteStore(path).init()
    return JsonFileStore(path)
