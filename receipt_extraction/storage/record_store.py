"""
Record Store Module.

SQLite persistence collaborator for completed extraction records. The
pipeline calls ``save(record)`` once per completed record, fire-and-forget;
failures raise DatabaseError and are logged by the caller, never retried
here.

Features:
    - Automatic schema creation
    - Upsert by record id (re-saving a reprocessed record replaces it)
    - Query helpers

Author: ML Engineering Team
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from receipt_extraction.config import get_config
from receipt_extraction.models.extraction_record import ExtractionRecord
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.helpers import ensure_directory
from receipt_extraction.utils.exceptions import DatabaseError

# Initialize module logger
logger = get_logger(__name__)


class SQLiteRecordStore:
    """
    Stores extraction records in a SQLite database.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the records table

    Example:
        >>> store = SQLiteRecordStore("data/receipts.db")
        >>> store.save(record)
        >>> store.get_count()
        1
    """

    COLUMNS = (
        'id', 'number', 'file_name', 'storage_path', 'status',
        'code', 'sender_name', 'phone_number', 'province', 'price',
        'company_name', 'extracted_text', 'confidence',
        'extraction_method', 'submitted', 'added_at',
    )

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        table_name: Optional[str] = None
    ) -> None:
        """
        Initialize the record store.

        Args:
            db_path: Path to database file. If None, uses configuration.
            table_name: Table name. If None, uses configuration.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            self.db_path = Path(get_config("paths.records_database", "data/receipts.db"))

        self.table_name = table_name or get_config("storage.records_table", "receipts")

        ensure_directory(self.db_path.parent)
        self._create_tables()

        logger.info(f"SQLiteRecordStore initialized (db: {self.db_path})")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_tables(self) -> None:
        """Create the records table."""
        create_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.table_name} (
            id TEXT PRIMARY KEY,
            number INTEGER,
            file_name TEXT,
            storage_path TEXT,
            status TEXT,
            code TEXT,
            sender_name TEXT,
            phone_number TEXT,
            province TEXT,
            price TEXT,
            company_name TEXT,
            extracted_text TEXT,
            confidence INTEGER,
            extraction_method TEXT,
            submitted INTEGER,
            added_at INTEGER,
            saved_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
        index_sql = (
            f"CREATE INDEX IF NOT EXISTS idx_{self.table_name}_code "
            f"ON {self.table_name}(code)"
        )

        try:
            conn = self._connect()
            conn.execute(create_sql)
            conn.execute(index_sql)
            conn.commit()
            conn.close()
            logger.debug("Record tables created/verified")
        except sqlite3.Error as e:
            raise DatabaseError("create tables", str(e))

    def save(self, record: ExtractionRecord) -> bool:
        """
        Insert or replace a record.

        Args:
            record: ExtractionRecord to persist.

        Returns:
            True once written.

        Raises:
            DatabaseError: If the write fails.
        """
        data = record.to_dict()
        values = tuple(
            int(data[column]) if column == 'submitted' else data[column]
            for column in self.COLUMNS
        )
        placeholders = ", ".join("?" for _ in self.COLUMNS)

        try:
            conn = self._connect()
            conn.execute(
                f"INSERT OR REPLACE INTO {self.table_name} "
                f"({', '.join(self.COLUMNS)}) VALUES ({placeholders})",
                values
            )
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise DatabaseError("save", str(e))

        logger.debug(f"Saved record #{record.number} ({record.id})")
        return True

    def get(self, record_id: str) -> Optional[ExtractionRecord]:
        """Load one record by id."""
        rows = self._query(f"SELECT * FROM {self.table_name} WHERE id = ?", (record_id,))
        return ExtractionRecord.from_dict(rows[0]) if rows else None

    def get_all(self, limit: Optional[int] = None) -> List[ExtractionRecord]:
        """Load records ordered by session number."""
        sql = f"SELECT * FROM {self.table_name} ORDER BY number"
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (limit,)
        return [ExtractionRecord.from_dict(row) for row in self._query(sql, params)]

    def get_count(self) -> int:
        rows = self._query(f"SELECT COUNT(*) AS n FROM {self.table_name}")
        return rows[0]['n']

    def _query(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        try:
            conn = self._connect()
            conn.row_factory = sqlite3.Row
            rows = [dict(row) for row in conn.execute(sql, params).fetchall()]
            conn.close()
        except sqlite3.Error as e:
            raise DatabaseError("query", str(e))

        for row in rows:
            row.pop('saved_at', None)
        return rows
