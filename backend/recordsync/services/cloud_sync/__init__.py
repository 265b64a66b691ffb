"""
Cloud Sync Service
Client-side push/pull synchronization against the sync API
"""

from .sync_client import (
    SyncClient,
    SyncError,
    AuthenticationError,
    EndpointError,
    RequestRejectedError,
    ServerError,
    NetworkError,
)
from .offline_mode import ConnectivityMonitor, ConnectivityStatus, OfflineModeManager, PeriodicSync
from .orchestrator import (
    RetryPolicy,
    SyncStatus,
    PushResult,
    PullResult,
    MergeResult,
    FullSyncResult,
    SyncOrchestrator,
)
from .service import (
    CloudSyncService,
    get_cloud_sync_service,
    initialize_cloud_sync_service,
    reset_cloud_sync_service,
)

__all__ = [
    "SyncClient",
    "SyncError",
    "AuthenticationError",
    "EndpointError",
    "RequestRejectedError",
    "ServerError",
    "NetworkError",
    "ConnectivityMonitor",
    "ConnectivityStatus",
    "OfflineModeManager",
    "PeriodicSync",
    "RetryPolicy",
    "SyncStatus",
    "PushResult",
    "PullResult",
    "MergeResult",
    "FullSyncResult",
    "SyncOrchestrator",
    "CloudSyncService",
    "get_cloud_sync_service",
    "initialize_cloud_sync_service",
    "reset_cloud_sync_service",
]
