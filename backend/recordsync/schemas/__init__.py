from .sync import (
    COLLECTION_BY_ENTITY_TYPE,
    ENTITY_TYPE_BY_COLLECTION,
    SyncOperation,
    SyncRequest,
    SyncBatchRequest,
    SyncResultResponse,
    EntityData,
)

__all__ = [
    "COLLECTION_BY_ENTITY_TYPE",
    "ENTITY_TYPE_BY_COLLECTION",
    "SyncOperation",
    "SyncRequest",
    "SyncBatchRequest",
    "SyncResultResponse",
    "EntityData",
]
