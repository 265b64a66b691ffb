"""
Cloud Sync Service
Wires the local stores, HTTP client, orchestrator and connectivity monitor
"""

import os
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import httpx

from ..stores import LocalEntityStore, SyncQueueStore
from .offline_mode import ConnectivityMonitor, OfflineModeManager, PeriodicSync
from .orchestrator import RetryPolicy, SyncOrchestrator, SyncStatus
from .sync_client import SyncClient

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_DB_PATH = Path.home() / ".recordsync" / "client.db"


def get_client_db_path() -> str:
    return os.getenv("SYNC_CLIENT_DB_PATH") or str(DEFAULT_CLIENT_DB_PATH)


class CloudSyncService:
    """Client-side sync service that owns every sync component"""

    def __init__(
        self,
        db_path: Optional[str] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        auto_start: bool = True,
    ):
        """
        Initialize cloud sync service

        Args:
            db_path: sqlite file for entities and queue (defaults to SYNC_CLIENT_DB_PATH)
            base_url: Sync API base URL (defaults to SYNC_SERVER_URL env var)
            token: Bearer token (defaults to SYNC_AUTH_TOKEN env var)
            transport: Optional httpx transport
            auto_start: Call ``start`` when the client is configured (needs a running event loop)
        """
        self.db_path = db_path or get_client_db_path()
        self.queue = SyncQueueStore(self.db_path)
        self.entities = LocalEntityStore(self.db_path)

        self.sync_client = SyncClient(base_url=base_url, token=token, transport=transport)
        self.orchestrator = SyncOrchestrator(
            client=self.sync_client,
            entities=self.entities,
            queue=self.queue,
            retry_policy=RetryPolicy(max_retries=int(os.getenv("SYNC_MAX_RETRIES", "10"))),
            max_concurrency=int(os.getenv("SYNC_MAX_CONCURRENCY", "4")),
        )

        self.connectivity_monitor = ConnectivityMonitor(
            self.sync_client,
            check_interval=timedelta(seconds=float(os.getenv("SYNC_HEALTH_INTERVAL_SECONDS", "30"))),
        )
        self.offline_mode_manager = OfflineModeManager(
            self.connectivity_monitor,
            on_reconnect=self.orchestrator.sync_if_changed,
        )
        self.periodic_sync = PeriodicSync(
            self.connectivity_monitor,
            self.orchestrator.sync_if_changed,
            interval=timedelta(seconds=float(os.getenv("SYNC_PULL_INTERVAL_SECONDS", "300"))),
        )

        if auto_start and self.sync_client.is_configured():
            self.start()

        logger.info(f"CloudSyncService initialized (db: {self.db_path})")

    def is_configured(self) -> bool:
        return self.sync_client.is_configured()

    def is_online(self) -> bool:
        return self.connectivity_monitor.is_online()

    def get_status(self) -> SyncStatus:
        return self.orchestrator.get_status()

    def start(self):
        """Start connectivity monitoring and the periodic sync loop (needs a running event loop)"""
        self.connectivity_monitor.start_monitoring()
        self.periodic_sync.start()

    def stop(self):
        """Stop the service and cleanup"""
        self.orchestrator.cancel()
        self.periodic_sync.stop()
        self.connectivity_monitor.stop_monitoring()
        self.offline_mode_manager.close()
        logger.info("CloudSyncService stopped")

    async def aclose(self):
        """Stop and wait for the background tasks to finish"""
        self.stop()
        await self.periodic_sync.wait_stopped()
        await self.connectivity_monitor.wait_stopped()
        await self.offline_mode_manager.wait_idle()


# Global service instance
_cloud_sync_service: Optional[CloudSyncService] = None


def get_cloud_sync_service() -> Optional[CloudSyncService]:
    """Get global cloud sync service instance"""
    return _cloud_sync_service


def initialize_cloud_sync_service(
    db_path: Optional[str] = None,
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    auto_start: bool = True,
) -> CloudSyncService:
    """
    Initialize global cloud sync service

    Returns:
        Initialized CloudSyncService instance
    """
    global _cloud_sync_service

    if _cloud_sync_service is None:
        _cloud_sync_service = CloudSyncService(
            db_path=db_path,
            base_url=base_url,
            token=token,
            transport=transport,
            auto_start=auto_start,
        )

    return _cloud_sync_service


def reset_cloud_sync_service():
    """Stop and drop the global instance"""
    global _cloud_sync_service

    if _cloud_sync_service is not None:
        _cloud_sync_service.stop()
        _cloud_sync_service = None
