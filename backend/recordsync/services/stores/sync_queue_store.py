"""
Sync queue store
Durable, ordered outbox of local mutations waiting to be pushed
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import StoreBase, StoreNotFoundError, StoreValidationError

logger = logging.getLogger(__name__)

OPERATIONS = ("create", "update", "delete")

STATUS_PENDING = "pending"
STATUS_DEAD = "dead"


@dataclass
class SyncQueueItem:
    """One queued mutation; ``id`` order is creation order"""
    id: int
    entity_type: str
    entity_id: str
    operation: str
    payload: Optional[Dict[str, Any]]
    created_at: datetime
    retry_count: int = 0
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    status: str = STATUS_PENDING

    @property
    def entity_key(self):
        return (self.entity_type, self.entity_id)

    def to_envelope(self) -> Dict[str, Any]:
        """Push envelope for this item; delete carries no data"""
        envelope: Dict[str, Any] = {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "operation": self.operation,
        }
        if self.operation != "delete":
            envelope["data"] = self.payload or {}
        return envelope

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "operation": self.operation,
            "createdAt": self.created_at.isoformat(),
            "retryCount": self.retry_count,
            "lastError": self.last_error,
            "nextAttemptAt": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "status": self.status,
        }


class SyncQueueStore(StoreBase):
    """
    sqlite-backed sync queue

    Appends are single INSERTs, so concurrent local mutations serialize on
    the table itself. Items leave the queue only when their push succeeds;
    failures bump ``retry_count`` and may move an item to the dead-letter
    status.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS sync_queue (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            operation TEXT NOT NULL,
            payload TEXT,
            created_at TEXT NOT NULL,
            retry_count INTEGER NOT NULL DEFAULT 0,
            last_error TEXT,
            next_attempt_at TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
        );
        CREATE INDEX IF NOT EXISTS idx_sync_queue_status ON sync_queue (status, id);
        CREATE INDEX IF NOT EXISTS idx_sync_queue_entity ON sync_queue (entity_type, entity_id);
    """

    def _row_to_item(self, row: sqlite3.Row) -> SyncQueueItem:
        return SyncQueueItem(
            id=row["id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            operation=row["operation"],
            payload=self.deserialize_json(row["payload"]),
            created_at=self.from_isoformat(row["created_at"]),
            retry_count=row["retry_count"],
            last_error=row["last_error"],
            next_attempt_at=self.from_isoformat(row["next_attempt_at"]),
            status=row["status"],
        )

    def enqueue(
        self,
        entity_type: str,
        entity_id: str,
        operation: str,
        payload: Optional[Dict[str, Any]] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> SyncQueueItem:
        """
        Append a mutation to the queue

        Args:
            conn: join the caller's transaction instead of opening one
        """
        if operation not in OPERATIONS:
            raise StoreValidationError(f"Unsupported operation: {operation}")
        if operation != "delete" and payload is None:
            raise StoreValidationError(f"{operation} requires a payload")

        created_at = self.now()
        with self.transaction(conn) as tx:
            cursor = tx.execute(
                """
                INSERT INTO sync_queue (entity_type, entity_id, operation, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entity_type,
                    entity_id,
                    operation,
                    self.serialize_json(payload if operation != "delete" else None),
                    self.to_isoformat(created_at),
                ),
            )
            item_id = cursor.lastrowid

        logger.debug(f"Queued {operation} {entity_type}/{entity_id} as item {item_id}")
        return SyncQueueItem(
            id=item_id,
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            payload=payload if operation != "delete" else None,
            created_at=created_at,
        )

    def get(self, item_id: int) -> SyncQueueItem:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM sync_queue WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise StoreNotFoundError(f"Sync queue item not found: {item_id}")
        return self._row_to_item(row)

    def list_pending(self, limit: Optional[int] = None) -> List[SyncQueueItem]:
        """Pending items in creation order (dead letters excluded)"""
        query = "SELECT * FROM sync_queue WHERE status = ? ORDER BY id"
        params: List[Any] = [STATUS_PENDING]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_dead(self) -> List[SyncQueueItem]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM sync_queue WHERE status = ? ORDER BY id", (STATUS_DEAD,)
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_all(self) -> List[SyncQueueItem]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM sync_queue ORDER BY id").fetchall()
        return [self._row_to_item(row) for row in rows]

    def remove(self, item_id: int) -> bool:
        """Drop an item after a successful push"""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))
            return cursor.rowcount > 0

    def record_failure(
        self,
        item_id: int,
        error: str,
        next_attempt_at: Optional[datetime] = None,
        dead: bool = False,
    ) -> SyncQueueItem:
        """Count one failed attempt and keep the item (pending or dead-lettered)"""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE sync_queue
                SET retry_count = retry_count + 1,
                    last_error = ?,
                    next_attempt_at = ?,
                    status = ?
                WHERE id = ?
                """,
                (
                    error,
                    self.to_isoformat(next_attempt_at),
                    STATUS_DEAD if dead else STATUS_PENDING,
                    item_id,
                ),
            )
            if cursor.rowcount == 0:
                raise StoreNotFoundError(f"Sync queue item not found: {item_id}")
        return self.get(item_id)

    def requeue_dead(self) -> int:
        """Give every dead-lettered item a fresh set of attempts"""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE sync_queue
                SET status = ?, retry_count = 0, next_attempt_at = NULL
                WHERE status = ?
                """,
                (STATUS_PENDING, STATUS_DEAD),
            )
            count = cursor.rowcount
        if count:
            logger.info(f"Requeued {count} dead-lettered sync items")
        return count

    def count_pending(self) -> int:
        return self._count(STATUS_PENDING)

    def count_dead(self) -> int:
        return self._count(STATUS_DEAD)

    def _count(self, status: str) -> int:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM sync_queue WHERE status = ?", (status,)
            ).fetchone()
        return row["n"]

    def has_pending_for(self, entity_type: str, entity_id: str) -> bool:
        """True while any unconfirmed local change (pending or dead) exists for the entity"""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM sync_queue WHERE entity_type = ? AND entity_id = ? LIMIT 1",
                (entity_type, entity_id),
            ).fetchone()
        return row is not None

    def clear(self) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM sync_queue")
            return cursor.rowcount
