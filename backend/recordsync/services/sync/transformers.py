"""
Row transformers
Convert remote store rows to the client wire shape (camelCase, parsed JSON, ISO dates)
"""

import copy
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from pydantic.alias_generators import to_camel

from .registry import EntityKind

logger = logging.getLogger(__name__)

# Never sent back to clients
HIDDEN_COLUMNS = ("user_id", "is_deleted")


def to_isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 timestamp in UTC; naive values (SQLite) are taken as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _wire_value(kind: EntityKind, column_name: str, value: Any, entity_id: str) -> Any:
    if column_name in kind.model.__json_columns__:
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            logger.warning(f"Unreadable JSON in {kind.token} {entity_id}.{column_name}, omitting field")
            return None
    if isinstance(value, datetime):
        return to_isoformat(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def row_to_wire(kind: EntityKind, row) -> Dict[str, Any]:
    """
    Transform one ORM row into the client shape

    Absent values are omitted rather than sent as null, then the kind's pull
    defaults fill the fields clients rely on. Non-settings kinds are marked
    ``syncStatus: "synced"``; settings carries its ``userId``.
    """
    wire: Dict[str, Any] = {}
    for column in kind.model.__table__.columns:
        if column.name in HIDDEN_COLUMNS:
            continue
        value = getattr(row, column.name)
        if value is None:
            continue
        value = _wire_value(kind, column.name, value, row.id)
        if value is None:
            continue
        wire[to_camel(column.name)] = value

    for key, default in kind.pull_defaults.items():
        if wire.get(key) is None:
            wire[key] = copy.deepcopy(default)

    if kind.include_sync_status:
        wire["syncStatus"] = "synced"
    if kind.singleton:
        wire["userId"] = row.user_id
    return wire
