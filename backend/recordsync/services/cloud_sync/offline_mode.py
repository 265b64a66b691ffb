"""
Offline Mode
Connectivity detection, reconnect-triggered sync and the periodic sync loop
"""

import asyncio
import logging
from enum import Enum
from datetime import datetime, timedelta, timezone
from typing import Optional, Callable, List
from dataclasses import dataclass

from .sync_client import SyncClient

logger = logging.getLogger(__name__)


def _utc_now():
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class ConnectivityStatus(Enum):
    """Network connectivity status"""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ConnectivityState:
    """Current connectivity state"""
    status: ConnectivityStatus
    last_check: datetime
    consecutive_failures: int
    last_error: Optional[str] = None


StatusCallback = Callable[[ConnectivityStatus, ConnectivityStatus], None]


class ConnectivityMonitor:
    """Polls the sync server's health probe and reports online/offline transitions"""

    def __init__(
        self,
        client: SyncClient,
        check_interval: timedelta = timedelta(seconds=30),
        failure_threshold: int = 2,
    ):
        """
        Initialize connectivity monitor

        Args:
            client: SyncClient whose ``health()`` is probed
            check_interval: Interval between health checks
            failure_threshold: Number of consecutive failures before marking offline
        """
        self.client = client
        self.check_interval = check_interval
        self.failure_threshold = max(1, failure_threshold)

        self.state = ConnectivityState(
            status=ConnectivityStatus.OFFLINE,
            last_check=_utc_now(),
            consecutive_failures=0,
        )

        self._status_callbacks: List[StatusCallback] = []
        self._monitoring_task: Optional[asyncio.Task] = None
        self._stop_monitoring = False

    def add_status_callback(self, callback: StatusCallback):
        """
        Add callback for status changes

        Args:
            callback: Function called when status changes (old_status, new_status)
        """
        self._status_callbacks.append(callback)

    def remove_status_callback(self, callback: StatusCallback):
        """Remove status change callback"""
        if callback in self._status_callbacks:
            self._status_callbacks.remove(callback)

    async def check_connectivity(self) -> ConnectivityStatus:
        """
        Probe the server once and update state

        Returns:
            Current connectivity status
        """
        healthy = await self.client.health()
        old_status = self.state.status
        self.state.last_check = _utc_now()

        if healthy:
            self.state.status = ConnectivityStatus.ONLINE
            self.state.consecutive_failures = 0
            self.state.last_error = None
            if old_status != ConnectivityStatus.ONLINE:
                self._notify_status_change(old_status, ConnectivityStatus.ONLINE)
            return ConnectivityStatus.ONLINE

        self.state.consecutive_failures += 1
        self.state.last_error = "Health check failed"
        if self.state.consecutive_failures >= self.failure_threshold:
            self.state.status = ConnectivityStatus.OFFLINE
            if old_status != ConnectivityStatus.OFFLINE:
                self._notify_status_change(old_status, ConnectivityStatus.OFFLINE)
        return self.state.status

    def get_status(self) -> ConnectivityStatus:
        """Get current connectivity status"""
        return self.state.status

    def is_online(self) -> bool:
        return self.state.status == ConnectivityStatus.ONLINE

    def start_monitoring(self):
        """Start periodic connectivity monitoring"""
        if self._monitoring_task is not None and not self._monitoring_task.done():
            return

        self._stop_monitoring = False
        self._monitoring_task = asyncio.create_task(self._monitoring_loop())

    def stop_monitoring(self):
        """Stop periodic connectivity monitoring"""
        self._stop_monitoring = True
        if self._monitoring_task:
            self._monitoring_task.cancel()

    async def wait_stopped(self):
        """Collect the cancelled monitoring task"""
        task, self._monitoring_task = self._monitoring_task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _monitoring_loop(self):
        while not self._stop_monitoring:
            try:
                await self.check_connectivity()
                await asyncio.sleep(self.check_interval.total_seconds())
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in connectivity monitoring loop: {e}")
                await asyncio.sleep(self.check_interval.total_seconds())

    def _notify_status_change(self, old_status: ConnectivityStatus, new_status: ConnectivityStatus):
        logger.info(f"Connectivity changed: {old_status.value} -> {new_status.value}")
        for callback in self._status_callbacks:
            try:
                callback(old_status, new_status)
            except Exception as e:
                logger.error(f"Error in status change callback: {e}")


class OfflineModeManager:
    """
    Runs a sync action whenever connectivity comes back

    The action is typically ``SyncOrchestrator.sync_if_changed``; a reconnect while
    a previous run is still going does not start a second one.
    """

    def __init__(
        self,
        connectivity_monitor: ConnectivityMonitor,
        on_reconnect: Callable,
    ):
        self.connectivity_monitor = connectivity_monitor
        self.on_reconnect = on_reconnect
        self._reconnect_task: Optional[asyncio.Task] = None

        self.connectivity_monitor.add_status_callback(self._on_connectivity_change)

    def _on_connectivity_change(self, old_status: ConnectivityStatus, new_status: ConnectivityStatus):
        if new_status == ConnectivityStatus.ONLINE and old_status != ConnectivityStatus.ONLINE:
            if self._reconnect_task is not None and not self._reconnect_task.done():
                return
            logger.info("Connectivity restored, syncing")
            self._reconnect_task = asyncio.create_task(self._run_reconnect())

    async def _run_reconnect(self):
        try:
            await self.on_reconnect()
        except Exception as e:
            logger.error(f"Error syncing after reconnect: {e}")

    async def wait_idle(self):
        """Wait for a reconnect-triggered run, if any, to finish"""
        if self._reconnect_task is not None:
            await self._reconnect_task

    def is_offline(self) -> bool:
        return not self.connectivity_monitor.is_online()

    def close(self):
        self.connectivity_monitor.remove_status_callback(self._on_connectivity_change)


class PeriodicSync:
    """
    Runs a sync action on a fixed interval while the server is reachable

    Ticks that find the monitor offline are skipped; the reconnect path of
    ``OfflineModeManager`` catches up once connectivity returns. The first
    run happens one interval after ``start``.
    """

    def __init__(
        self,
        connectivity_monitor: ConnectivityMonitor,
        action: Callable,
        interval: timedelta = timedelta(minutes=5),
    ):
        self.connectivity_monitor = connectivity_monitor
        self.action = action
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> bool:
        """Run the action once if online; returns whether it ran"""
        if not self.connectivity_monitor.is_online():
            logger.debug("Offline, skipping periodic sync")
            return False
        await self.action()
        return True

    def start(self):
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())

    def stop(self):
        """Cancel the loop; ``wait_stopped`` collects it"""
        if self._task is not None:
            self._task.cancel()

    async def wait_stopped(self):
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval.total_seconds())
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in periodic sync: {e}")
