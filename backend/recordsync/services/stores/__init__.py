"""
Client-side sqlite stores: local entity cache, sync state and the sync queue
"""

from .base import StoreBase, StoreError, StoreNotFoundError, StoreValidationError
from .sync_queue_store import SyncQueueItem, SyncQueueStore
from .local_entity_store import LocalEntityStore

__all__ = [
    "StoreBase",
    "StoreError",
    "StoreNotFoundError",
    "StoreValidationError",
    "SyncQueueItem",
    "SyncQueueStore",
    "LocalEntityStore",
]
