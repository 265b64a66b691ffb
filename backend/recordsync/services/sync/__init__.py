"""
Sync engine: entity registry, mutation appliers, push and pull services
"""

from .errors import SyncServiceError, EntityTypeError, PayloadValidationError, StorageError
from .registry import ENTITY_REGISTRY, EntityKind, resolve_entity_kind, validate_entity_data
from .appliers import DeletePolicy, MutationApplier
from .push_service import PushService
from .pull_service import PullService

__all__ = [
    "SyncServiceError",
    "EntityTypeError",
    "PayloadValidationError",
    "StorageError",
    "ENTITY_REGISTRY",
    "EntityKind",
    "resolve_entity_kind",
    "validate_entity_data",
    "DeletePolicy",
    "MutationApplier",
    "PushService",
    "PullService",
]
