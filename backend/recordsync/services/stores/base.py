"""
Base store class for the client-side sync database
Provides common connection, transaction, and serialization helpers
"""

import os
import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Any
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for store operations"""
    pass


class StoreNotFoundError(StoreError):
    """Resource not found"""
    pass


class StoreValidationError(StoreError):
    """Validation error"""
    pass


class StoreBase:
    """
    Base class for the local stores

    Provides common functionality:
    - Database connection management
    - Transaction support
    - JSON serialization/deserialization
    - Time format conversion
    """

    SCHEMA = ""

    def __init__(self, db_path: str):
        """
        Initialize store with database path

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        parent = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(parent, exist_ok=True)
        if self.SCHEMA:
            self.ensure_schema()

    def ensure_schema(self):
        with self.transaction() as conn:
            conn.executescript(self.SCHEMA)

    @contextmanager
    def get_connection(self):
        """
        Get database connection with proper cleanup

        Usage:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(...)
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, conn: Optional[sqlite3.Connection] = None):
        """
        Execute operations within a transaction

        Commits on success and rolls back on error. When ``conn`` is given
        the caller owns the transaction and it is reused as-is.
        """
        if conn is not None:
            yield conn
            return

        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise

    def serialize_json(self, data: Any) -> Optional[str]:
        """
        Serialize data to JSON string

        Returns:
            JSON string or None if data is None
        """
        if data is None:
            return None
        try:
            return json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize JSON: {e}")
            raise StoreValidationError(f"Invalid JSON data: {e}")

    def deserialize_json(self, data: Optional[str], default: Any = None) -> Any:
        """Deserialize a JSON column, falling back to ``default`` on empty or corrupt data"""
        if data is None or not str(data).strip():
            return default
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to deserialize JSON, using default: {e}")
            return default

    @staticmethod
    def now() -> datetime:
        return datetime.now(timezone.utc)

    def to_isoformat(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    def from_isoformat(self, iso_str: Optional[str]) -> Optional[datetime]:
        """
        Convert ISO format string to a timezone-aware datetime

        Args:
            iso_str: ISO format string or None

        Returns:
            Datetime object or None
        """
        if not iso_str:
            return None
        text = iso_str.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
