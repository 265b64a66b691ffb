"""
Mutation appliers
One idempotent write per call against the remote store, scoped to the owning user
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel
from sqlalchemy import Date, DateTime, delete, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ...database.models import (
    DeviceModel,
    DocumentModel,
    HouseholdBillModel,
    ReceiptModel,
    ReminderModel,
    SubscriptionModel,
    UserSettingsModel,
)
from ...schemas.sync import EntityData, parse_client_date, parse_client_datetime
from .errors import StorageError

logger = logging.getLogger(__name__)

# Columns the appliers manage themselves; never taken from a payload
BOOKKEEPING_COLUMNS = ("id", "user_id", "created_at", "updated_at", "is_deleted")


class DeletePolicy(str, Enum):
    """How a delete is applied for an entity kind"""
    SOFT = "soft"  # set is_deleted, keep the row
    HARD = "hard"  # remove the row


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MutationApplier:
    """
    Applies create/update/delete for one table

    create: upsert on ``id``; every mutable column is written (defaults fill
        absent fields). The conflict branch only fires for rows owned by the
        same user, so a foreign row is left untouched.
    update: writes only the fields present and non-null in the payload.
    delete: tombstone or row removal depending on ``delete_policy``.

    Every statement is filtered by ``(id, user_id)``; zero affected rows is
    a success, not an error.
    """

    model = None
    delete_policy = DeletePolicy.SOFT

    def __init__(self):
        self.table = self.model.__table__
        self.json_columns = set(getattr(self.model, "__json_columns__", ()))
        self.mutable_columns = [
            column for column in self.table.columns
            if column.name not in BOOKKEEPING_COLUMNS
        ]

    def apply(
        self,
        db: Session,
        user_id: str,
        entity_id: str,
        operation: str,
        data: Optional[EntityData] = None,
    ) -> int:
        """Dispatch one operation. Returns the number of affected rows."""
        if operation == "create":
            return self.create(db, user_id, entity_id, data)
        if operation == "update":
            return self.update(db, user_id, entity_id, data)
        if operation == "delete":
            return self.delete(db, user_id, entity_id)
        raise ValueError(f"Unsupported operation: {operation}")

    def create(self, db: Session, user_id: str, entity_id: str, data: EntityData) -> int:
        now = _utc_now()
        provided = data.provided_fields()

        values: Dict[str, Any] = {}
        for column in self.mutable_columns:
            value = provided.get(column.name)
            if value is None:
                values[column.name] = self._column_default(column)
            else:
                values[column.name] = self._to_column_value(column, value)

        row = dict(values)
        row["id"] = entity_id
        row["user_id"] = user_id
        row["created_at"] = parse_client_datetime(data.created_at) if data.created_at else now
        row["updated_at"] = now
        if self.delete_policy == DeletePolicy.SOFT:
            row["is_deleted"] = False

        stmt = self._insert(db).values(**row)
        set_ = {name: stmt.excluded[name] for name in values}
        set_["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_=set_,
            where=(self.table.c.user_id == stmt.excluded.user_id),
        )
        result = db.execute(stmt)
        return result.rowcount

    def update(self, db: Session, user_id: str, entity_id: str, data: EntityData) -> int:
        provided = data.provided_fields()

        values: Dict[str, Any] = {}
        for column in self.mutable_columns:
            value = provided.get(column.name)
            if value is not None:
                values[column.name] = self._to_column_value(column, value)
        values["updated_at"] = _utc_now()

        stmt = (
            update(self.table)
            .where(self.table.c.id == entity_id, self.table.c.user_id == user_id)
            .values(**values)
        )
        result = db.execute(stmt)
        return result.rowcount

    def delete(self, db: Session, user_id: str, entity_id: str) -> int:
        owned = (self.table.c.id == entity_id, self.table.c.user_id == user_id)
        if self.delete_policy == DeletePolicy.HARD:
            stmt = delete(self.table).where(*owned)
        else:
            stmt = update(self.table).where(*owned).values(is_deleted=True, updated_at=_utc_now())
        result = db.execute(stmt)
        return result.rowcount

    def _insert(self, db: Session):
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(self.table)
        if dialect == "sqlite":
            return sqlite_insert(self.table)
        raise StorageError(f"Unsupported database dialect: {dialect}")

    @staticmethod
    def _column_default(column):
        default = column.default
        if default is not None and default.is_scalar:
            return default.arg
        return None

    @staticmethod
    def _to_json_value(value: Any) -> Any:
        # Nested structures are stored with their wire (camelCase) keys
        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True, exclude_none=True)
        if isinstance(value, list):
            return [MutationApplier._to_json_value(item) for item in value]
        return value

    def _to_column_value(self, column, value: Any) -> Any:
        if column.name in self.json_columns:
            return json.dumps(self._to_json_value(value), ensure_ascii=False)
        if isinstance(column.type, DateTime):
            return parse_client_datetime(value)
        if isinstance(column.type, Date):
            return parse_client_date(value)
        return value


class ReceiptApplier(MutationApplier):
    model = ReceiptModel


class DeviceApplier(MutationApplier):
    model = DeviceModel


class ReminderApplier(MutationApplier):
    model = ReminderModel


class HouseholdBillApplier(MutationApplier):
    model = HouseholdBillModel


class DocumentApplier(MutationApplier):
    model = DocumentModel


class SubscriptionApplier(MutationApplier):
    model = SubscriptionModel


class SettingsApplier(MutationApplier):
    """Settings rows are removed outright on delete (no tombstone column)"""
    model = UserSettingsModel
    delete_policy = DeletePolicy.HARD
