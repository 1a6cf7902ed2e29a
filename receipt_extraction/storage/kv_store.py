"""
Key-Value Store Module.

Durable state of the pipeline (fingerprints of processed receipts and
learning entries) is kept behind a minimal key-value contract:

    get(key) -> value | None
    set(key, value)
    get_all(prefix) -> {key: value}

No transactions are required; values are JSON-serializable.

Backends:
    - MemoryKeyValueStore: process-local dictionary (tests, dry runs)
    - SQLiteKeyValueStore: one table in a SQLite database file

Author: ML Engineering Team
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from receipt_extraction.config import get_config
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.helpers import ensure_directory
from receipt_extraction.utils.exceptions import DatabaseError

# Initialize module logger
logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Abstract key-value persistence contract."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def get_all(self, prefix: str = "") -> Dict[str, Any]:
        """Return every entry whose key starts with prefix, ordered by key."""


class MemoryKeyValueStore(KeyValueStore):
    """
    In-memory key-value store.

    Values are stored as JSON text so callers never share mutable state
    with the store, matching the SQLite backend's behavior.

    Example:
        >>> store = MemoryKeyValueStore()
        >>> store.set("fingerprint:a", {"name": "a.jpg"})
        >>> store.get_all("fingerprint:")
        {'fingerprint:a': {'name': 'a.jpg'}}
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def get_all(self, prefix: str = "") -> Dict[str, Any]:
        return {
            key: json.loads(self._data[key])
            for key in sorted(self._data)
            if key.startswith(prefix)
        }

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-backed key-value store.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the key-value table

    Example:
        >>> store = SQLiteKeyValueStore("data/pipeline_state.db")
        >>> store.set("learning:0001", {"original_text": "..."})
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        table_name: Optional[str] = None
    ) -> None:
        """
        Initialize the store and create its table if needed.

        Args:
            db_path: Path to database file. If None, uses configuration.
            table_name: Table name. If None, uses configuration.

        Raises:
            DatabaseError: If the table cannot be created.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            self.db_path = Path(get_config("paths.kv_database", "data/pipeline_state.db"))

        self.table_name = table_name or get_config("storage.kv_table", "kv_store")

        ensure_directory(self.db_path.parent)
        self._create_table()

        logger.info(f"SQLiteKeyValueStore initialized (db: {self.db_path})")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_table(self) -> None:
        create_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.table_name} (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
        try:
            conn = self._connect()
            conn.execute(create_sql)
            conn.commit()
            conn.close()
            logger.debug(f"Key-value table ready: {self.table_name}")
        except sqlite3.Error as e:
            raise DatabaseError("create table", str(e))

    def get(self, key: str) -> Optional[Any]:
        try:
            conn = self._connect()
            row = conn.execute(
                f"SELECT value FROM {self.table_name} WHERE key = ?",
                (key,)
            ).fetchone()
            conn.close()
        except sqlite3.Error as e:
            raise DatabaseError("get", str(e))

        return None if row is None else json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        try:
            conn = self._connect()
            conn.execute(
                f"INSERT OR REPLACE INTO {self.table_name} (key, value, updated_at) "
                f"VALUES (?, ?, CURRENT_TIMESTAMP)",
                (key, json.dumps(value, ensure_ascii=False))
            )
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise DatabaseError("set", str(e))

    def get_all(self, prefix: str = "") -> Dict[str, Any]:
        try:
            conn = self._connect()
            rows = conn.execute(
                f"SELECT key, value FROM {self.table_name} "
                f"WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix)
            ).fetchall()
            conn.close()
        except sqlite3.Error as e:
            raise DatabaseError("get_all", str(e))

        return {key: json.loads(value) for key, value in rows}


def create_kv_store(backend: Optional[str] = None) -> KeyValueStore:
    """
    Build the key-value store selected by configuration.

    Args:
        backend: 'sqlite' or 'memory'. If None, uses storage.backend.

    Returns:
        KeyValueStore instance.
    """
    backend = (backend or get_config("storage.backend", "sqlite")).lower()

    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "sqlite":
        return SQLiteKeyValueStore()

    raise ValueError(f"Unknown storage backend: {backend}")
