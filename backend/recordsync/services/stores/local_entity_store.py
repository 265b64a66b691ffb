"""
Local entity store
Client-side cache of synchronized entities plus key/value sync state
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from ...schemas.sync import COLLECTION_BY_ENTITY_TYPE
from .base import StoreBase, StoreValidationError
from .sync_queue_store import SyncQueueItem, SyncQueueStore

logger = logging.getLogger(__name__)

SYNC_STATUS_PENDING = "pending"
SYNC_STATUS_SYNCED = "synced"


class LocalEntityStore(StoreBase):
    """
    Entities are stored as their wire-shaped JSON keyed by (entity type, id)

    ``record_mutation`` is the write path for local edits: the entity change
    and its queue item commit in the same sqlite transaction, so a crash can
    never leave an edit without its outbox entry.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS local_entities (
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            payload TEXT NOT NULL,
            updated_at TEXT,
            sync_status TEXT NOT NULL DEFAULT 'pending',
            PRIMARY KEY (entity_type, entity_id)
        );
        CREATE TABLE IF NOT EXISTS sync_state (
            key TEXT PRIMARY KEY,
            value TEXT
        );
    """

    def _check_type(self, entity_type: str):
        if entity_type not in COLLECTION_BY_ENTITY_TYPE:
            raise StoreValidationError(f"Unknown entity type: {entity_type}")

    def get(self, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM local_entities WHERE entity_type = ? AND entity_id = ?",
                (entity_type, entity_id),
            ).fetchone()
        if row is None:
            return None
        return self.deserialize_json(row["payload"], default={})

    def list(self, entity_type: str) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM local_entities WHERE entity_type = ? ORDER BY entity_id",
                (entity_type,),
            ).fetchall()
        return [self.deserialize_json(row["payload"], default={}) for row in rows]

    def list_all(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every cached entity grouped by entity type"""
        return {entity_type: self.list(entity_type) for entity_type in COLLECTION_BY_ENTITY_TYPE}

    def put(
        self,
        entity_type: str,
        entity_id: str,
        data: Dict[str, Any],
        sync_status: str = SYNC_STATUS_PENDING,
        conn: Optional[sqlite3.Connection] = None,
    ):
        self._check_type(entity_type)
        entity = dict(data)
        entity["id"] = entity_id
        entity["syncStatus"] = sync_status
        with self.transaction(conn) as tx:
            tx.execute(
                """
                INSERT INTO local_entities (entity_type, entity_id, payload, updated_at, sync_status)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (entity_type, entity_id) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at,
                    sync_status = excluded.sync_status
                """,
                (
                    entity_type,
                    entity_id,
                    self.serialize_json(entity),
                    entity.get("updatedAt"),
                    sync_status,
                ),
            )

    def delete(self, entity_type: str, entity_id: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        with self.transaction(conn) as tx:
            cursor = tx.execute(
                "DELETE FROM local_entities WHERE entity_type = ? AND entity_id = ?",
                (entity_type, entity_id),
            )
            return cursor.rowcount > 0

    def record_mutation(
        self,
        queue: SyncQueueStore,
        entity_type: str,
        entity_id: str,
        operation: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> SyncQueueItem:
        """
        Apply a local edit and enqueue it for push atomically

        Update payloads are merged into the cached entity; only the changed
        fields are queued. ``updatedAt`` is stamped when the caller did not
        set it.
        """
        self._check_type(entity_type)
        with self.transaction() as conn:
            if operation == "delete":
                self.delete(entity_type, entity_id, conn=conn)
                return queue.enqueue(entity_type, entity_id, "delete", conn=conn)

            payload = dict(data or {})
            payload.setdefault("updatedAt", self.to_isoformat(self.now()))
            if operation == "update":
                existing = self.get_in(conn, entity_type, entity_id) or {}
                entity = {**existing, **payload}
            else:
                payload.setdefault("createdAt", payload["updatedAt"])
                entity = payload
            self.put(entity_type, entity_id, entity, SYNC_STATUS_PENDING, conn=conn)
            return queue.enqueue(entity_type, entity_id, operation, payload, conn=conn)

    def get_in(self, conn: sqlite3.Connection, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            "SELECT payload FROM local_entities WHERE entity_type = ? AND entity_id = ?",
            (entity_type, entity_id),
        ).fetchone()
        if row is None:
            return None
        return self.deserialize_json(row["payload"], default={})

    def mark_synced(self, entity_type: str, entity_id: str) -> bool:
        """Flag the cached entity as confirmed by the server"""
        entity = self.get(entity_type, entity_id)
        if entity is None:
            return False
        self.put(entity_type, entity_id, entity, SYNC_STATUS_SYNCED)
        return True

    def get_state(self, key: str, default: Any = None) -> Any:
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM sync_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        return self.deserialize_json(row["value"], default=default)

    def set_state(self, key: str, value: Any):
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO sync_state (key, value) VALUES (?, ?)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value
                """,
                (key, self.serialize_json(value)),
            )
