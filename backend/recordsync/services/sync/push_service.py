"""
Push service
Validates push envelopes and dispatches them to the entity kind's applier
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...schemas.sync import SyncBatchRequest, SyncRequest, SyncResultResponse
from ...shared.error_handler import public_error_message
from .errors import EntityTypeError, PayloadValidationError, StorageError, SyncServiceError
from .registry import ENTITY_REGISTRY, EntityKind, format_validation_errors, validate_entity_data

logger = logging.getLogger(__name__)

MAX_REPORTED_BATCH_ERRORS = 10


class PushService:
    """
    Write side of the sync protocol

    One envelope is one transaction: parsed, resolved to an entity kind,
    validated, applied and committed. Mutations never cross the caller's
    ``user_id``; a target row owned by someone else is left untouched and
    the push still succeeds.
    """

    def __init__(self, db: Session, registry: Optional[Dict[str, EntityKind]] = None):
        self.db = db
        self.registry = registry if registry is not None else ENTITY_REGISTRY

    def parse_envelope(self, body: Any) -> SyncRequest:
        if not isinstance(body, dict):
            raise PayloadValidationError(
                [{"path": "body", "message": "Request body must be a JSON object"}]
            )
        try:
            return SyncRequest.model_validate(body)
        except ValidationError as e:
            raise PayloadValidationError(format_validation_errors(e))

    def resolve(self, entity_type: str) -> EntityKind:
        kind = self.registry.get(entity_type)
        if kind is None:
            logger.warning(f"Rejected push for unknown entity type {entity_type!r}")
            raise EntityTypeError(f"Invalid entity type: {entity_type}")
        return kind

    def push(self, user_id: str, body: Any) -> Dict[str, Any]:
        """
        Apply one push envelope

        Raises:
            PayloadValidationError: malformed envelope or payload
            EntityTypeError: unknown entity type
            StorageError: the remote store rejected or failed the write
        """
        envelope = self.parse_envelope(body)
        kind = self.resolve(envelope.entity_type)

        data = None
        if envelope.operation != "delete":
            data = validate_entity_data(kind, envelope.operation, envelope.data)

        try:
            affected = kind.applier.apply(
                self.db, user_id, envelope.entity_id, envelope.operation, data
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to apply {envelope.operation} {kind.token}/{envelope.entity_id} "
                f"for user {user_id}: {e}",
                exc_info=True,
            )
            raise StorageError(str(e), original=e)

        if affected == 0:
            logger.info(
                f"{envelope.operation} {kind.token}/{envelope.entity_id} for user {user_id} "
                f"matched no owned row"
            )
        else:
            logger.info(
                f"Applied {envelope.operation} {kind.token}/{envelope.entity_id} for user {user_id}"
            )

        return SyncResultResponse(
            operation=envelope.operation,
            entity_type=envelope.entity_type,
            entity_id=envelope.entity_id,
        ).model_dump(by_alias=True, mode="json")

    def push_batch(self, user_id: str, body: Any) -> Dict[str, Any]:
        """
        Apply a list of envelopes in order, each in its own transaction

        A failing item does not stop the batch; the response reports the
        outcome of every item plus the first few error lines.
        """
        if not isinstance(body, dict):
            raise PayloadValidationError(
                [{"path": "body", "message": "Request body must be a JSON object"}],
                message="Invalid batch request",
            )
        try:
            batch = SyncBatchRequest.model_validate(body)
        except ValidationError as e:
            raise PayloadValidationError(format_validation_errors(e), message="Invalid batch request")

        results: List[Dict[str, Any]] = []
        error_lines: List[str] = []
        for item in batch.items:
            entity_type = item.get("entityType")
            entity_id = item.get("entityId")
            result: Dict[str, Any] = {
                "entityType": entity_type,
                "entityId": entity_id,
                "operation": item.get("operation"),
            }
            try:
                self.push(user_id, item)
                result["success"] = True
            except StorageError as e:
                result["success"] = False
                result["error"] = public_error_message(e.original or e)
            except SyncServiceError as e:
                result["success"] = False
                result["error"] = e.message
                if e.errors:
                    result["errors"] = e.errors

            if not result["success"]:
                error_lines.append(f"{entity_type}/{entity_id}: {result['error']}")
            results.append(result)

        succeeded = sum(1 for result in results if result["success"])
        failed = len(results) - succeeded
        logger.info(
            f"Batch push for user {user_id}: {succeeded} succeeded, {failed} failed of {len(results)}"
        )
        return {
            "success": True,
            "total": len(results),
            "succeeded": succeeded,
            "failed": failed,
            "results": results,
            "errors": error_lines[:MAX_REPORTED_BATCH_ERRORS],
        }
