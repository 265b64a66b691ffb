"""
Pull service
Builds a user's full live snapshot and the per-kind diagnostic summary
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import false, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .appliers import DeletePolicy
from .registry import ENTITY_REGISTRY, EntityKind
from .transformers import row_to_wire, to_isoformat

logger = logging.getLogger(__name__)


class PullService:
    """
    Read side of the sync protocol

    Every query is scoped to one user. Each entity kind is fetched on its
    own: a storage failure for one kind is logged, rolled back and reported
    as an empty result for that kind only.
    """

    def __init__(self, db: Session, registry: Optional[Dict[str, EntityKind]] = None):
        self.db = db
        self.registry = registry if registry is not None else ENTITY_REGISTRY

    def _live_query(self, kind: EntityKind, user_id: str):
        model = kind.model
        query = self.db.query(model).filter(model.user_id == user_id)
        if kind.delete_policy == DeletePolicy.SOFT:
            query = query.filter(or_(model.is_deleted.is_(None), model.is_deleted == false()))
        return query

    def fetch_live_rows(self, kind: EntityKind, user_id: str) -> List[Any]:
        """Non-tombstoned rows of one kind, newest first"""
        query = self._live_query(kind, user_id).order_by(getattr(kind.model, kind.order_by).desc())
        if kind.singleton:
            query = query.limit(1)
        return query.all()

    def pull(self, user_id: str) -> Dict[str, Any]:
        """
        Snapshot of every live entity the user owns

        Returns:
            ``{success, data: {<collection>: [...], settings: {...}|None},
            meta: {pulledAt, counts, failedKinds}}``
        """
        logger.info(f"Pulling data for user {user_id}")
        data: Dict[str, Any] = {}
        counts: Dict[str, int] = {}
        failed_kinds: List[str] = []

        for kind in self.registry.values():
            try:
                rows = self.fetch_live_rows(kind, user_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error fetching {kind.collection} for user {user_id}: {e}")
                failed_kinds.append(kind.collection)
                rows = []

            items = [row_to_wire(kind, row) for row in rows]
            if kind.singleton:
                data[kind.collection] = items[0] if items else None
            else:
                data[kind.collection] = items
                counts[kind.collection] = len(items)

        meta = {
            "pulledAt": to_isoformat(datetime.now(timezone.utc)),
            "counts": counts,
            "failedKinds": failed_kinds,
        }
        logger.info(f"Pulled data for user {user_id}: {counts}")
        return {"success": True, "data": data, "meta": meta}

    def diagnostics(self, user_id: str) -> Dict[str, Any]:
        """
        Per-kind live counts and latest ``updated_at`` (tombstones included)

        A kind whose queries fail reports a zero count and a null timestamp.
        """
        counts: Dict[str, Any] = {}
        latest_updates: Dict[str, Optional[str]] = {}
        failed_kinds: List[str] = []

        for kind in self.registry.values():
            model = kind.model
            try:
                live_count = self._live_query(kind, user_id).count()
                latest = (
                    self.db.query(func.max(model.updated_at))
                    .filter(model.user_id == user_id)
                    .scalar()
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error reading diagnostics for {kind.collection}, user {user_id}: {e}")
                failed_kinds.append(kind.collection)
                live_count, latest = 0, None

            counts[kind.collection] = live_count > 0 if kind.singleton else live_count
            latest_updates[kind.collection] = to_isoformat(latest)

        logger.info(f"Data status for user {user_id}: {counts}")
        return {
            "success": True,
            "userId": user_id,
            "counts": counts,
            "latestUpdates": latest_updates,
            "failedKinds": failed_kinds,
        }
