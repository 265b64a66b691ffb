"""
Sync Orchestrator
Drains the sync queue against the push endpoint and merges pulled snapshots
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ...schemas.sync import ENTITY_TYPE_BY_COLLECTION, PULL_ONLY_FIELDS
from ..stores.local_entity_store import LocalEntityStore, SYNC_STATUS_SYNCED
from ..stores.sync_queue_store import SyncQueueItem, SyncQueueStore
from .sync_client import (
    AuthenticationError,
    EndpointError,
    RequestRejectedError,
    SyncClient,
    SyncError,
)

logger = logging.getLogger(__name__)

STATE_LAST_PUSH_AT = "last_push_at"
STATE_LAST_PULL_AT = "last_pull_at"
STATE_LAST_PULL_META = "last_pull_meta"
STATE_LAST_PULL_FINGERPRINT = "last_pull_fingerprint"


def _utc_now():
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class RetryPolicy:
    """
    Exponential backoff with a dead-letter cap

    The n-th failed attempt waits ``base_delay * 2**(n-1)`` seconds (capped
    at ``max_delay``); after ``max_retries`` failures the item is
    dead-lettered.
    """
    base_delay: float = 2.0
    max_delay: float = 15 * 60.0
    max_retries: int = 10

    def delay_for(self, retry_count: int) -> timedelta:
        exponent = max(retry_count - 1, 0)
        return timedelta(seconds=min(self.base_delay * (2 ** exponent), self.max_delay))

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries


@dataclass
class SyncStatus:
    """Snapshot of orchestrator state for the UI layer"""
    last_push_at: Optional[str] = None
    last_pull_at: Optional[str] = None
    is_pushing: bool = False
    is_pulling: bool = False
    push_error: Optional[str] = None
    pull_error: Optional[str] = None
    pending_count: int = 0
    dead_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PushResult:
    pushed: int = 0
    failed: int = 0
    dead_lettered: int = 0
    deferred: int = 0
    aborted: bool = False
    cancelled: bool = False
    error: Optional[str] = None


@dataclass
class MergeResult:
    applied: int = 0
    skipped_pending: int = 0
    skipped_stale: int = 0


@dataclass
class PullResult:
    merge: MergeResult = field(default_factory=MergeResult)
    counts: Dict[str, Any] = field(default_factory=dict)
    pulled_at: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class FullSyncResult:
    push: PushResult
    pull: PullResult


class SyncOrchestrator:
    """
    Coordinates push and pull for one client

    Push: pending items are grouped per entity. Groups drain concurrently
    (bounded by ``max_concurrency``); items of one entity go strictly in
    queue order and a group stops at its first retryable failure so a later
    update can never overtake an earlier create or delete.

    Pull: the snapshot is merged only once no push is in flight, entity by
    entity, last-write-wins on ``updatedAt``. Entities with unconfirmed
    local changes in the queue are never overwritten.
    """

    def __init__(
        self,
        client: SyncClient,
        entities: LocalEntityStore,
        queue: SyncQueueStore,
        retry_policy: Optional[RetryPolicy] = None,
        max_concurrency: int = 4,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.client = client
        self.entities = entities
        self.queue = queue
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_concurrency = max(1, max_concurrency)
        self.clock = clock

        self._push_lock = asyncio.Lock()
        self._pull_lock = asyncio.Lock()
        self._push_idle = asyncio.Event()
        self._push_idle.set()
        self._cancel_requested = asyncio.Event()
        self._listeners: List[Callable[[SyncStatus], None]] = []

        self._status = SyncStatus(
            last_push_at=self.entities.get_state(STATE_LAST_PUSH_AT),
            last_pull_at=self.entities.get_state(STATE_LAST_PULL_AT),
        )
        self._refresh_counts()

    # ────────────────────────────────────────────────────────
    # Status
    # ────────────────────────────────────────────────────────

    def subscribe(self, listener: Callable[[SyncStatus], None]) -> Callable[[], None]:
        """
        Register a status listener; it is called immediately and on every change

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)
        listener(self.get_status())

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_status(self) -> SyncStatus:
        return SyncStatus(**asdict(self._status))

    def _refresh_counts(self):
        self._status.pending_count = self.queue.count_pending()
        self._status.dead_count = self.queue.count_dead()

    def _update_status(self, **changes):
        for key, value in changes.items():
            setattr(self._status, key, value)
        self._refresh_counts()
        snapshot = self.get_status()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Error in sync status listener: {e}")

    def diagnostics(self) -> Dict[str, Any]:
        """Per-item retry/error detail for a diagnostics panel"""
        return {
            "status": self.get_status().to_dict(),
            "items": [item.to_dict() for item in self.queue.list_all()],
            "lastPullMeta": self.entities.get_state(STATE_LAST_PULL_META),
        }

    # ────────────────────────────────────────────────────────
    # Local mutations
    # ────────────────────────────────────────────────────────

    def record_mutation(
        self,
        entity_type: str,
        entity_id: str,
        operation: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> SyncQueueItem:
        """Write a local edit and queue it for push"""
        item = self.entities.record_mutation(self.queue, entity_type, entity_id, operation, data)
        self._update_status()
        return item

    # ────────────────────────────────────────────────────────
    # Push
    # ────────────────────────────────────────────────────────

    def cancel(self):
        """Stop the running drain at the next item boundary"""
        self._cancel_requested.set()

    async def push_all(self) -> PushResult:
        """Drain the queue once; never raises for per-item failures"""
        async with self._push_lock:
            self._cancel_requested.clear()
            self._push_idle.clear()
            self._update_status(is_pushing=True, push_error=None)
            result = PushResult()
            try:
                groups: "OrderedDict[tuple, List[SyncQueueItem]]" = OrderedDict()
                for item in self.queue.list_pending():
                    groups.setdefault(item.entity_key, []).append(item)

                if groups:
                    logger.info(f"Pushing {sum(len(g) for g in groups.values())} queued items "
                                f"for {len(groups)} entities")
                semaphore = asyncio.Semaphore(self.max_concurrency)
                await asyncio.gather(
                    *(self._drain_group(group, semaphore, result) for group in groups.values())
                )
            finally:
                self._push_idle.set()
                changes: Dict[str, Any] = {"is_pushing": False, "push_error": result.error}
                if result.pushed:
                    pushed_at = self.clock().isoformat()
                    self.entities.set_state(STATE_LAST_PUSH_AT, pushed_at)
                    changes["last_push_at"] = pushed_at
                self._update_status(**changes)

            logger.info(
                f"Push finished: {result.pushed} pushed, {result.failed} failed, "
                f"{result.dead_lettered} dead-lettered, {result.deferred} deferred"
            )
            return result

    async def _drain_group(
        self,
        group: List[SyncQueueItem],
        semaphore: asyncio.Semaphore,
        result: PushResult,
    ):
        async with semaphore:
            for position, item in enumerate(group):
                if self._cancel_requested.is_set():
                    result.cancelled = True
                    return
                if result.aborted:
                    return

                if item.next_attempt_at and item.next_attempt_at > self.clock():
                    result.deferred += len(group) - position
                    return

                if not await self._push_item(item, result):
                    return

    async def _push_item(self, item: SyncQueueItem, result: PushResult) -> bool:
        """Push one item; returns False when the rest of its group must wait"""
        label = f"{item.operation} {item.entity_type}/{item.entity_id}"
        try:
            await self.client.push(item.to_envelope())
        except (AuthenticationError, EndpointError) as e:
            self.queue.record_failure(item.id, e.message)
            result.aborted = True
            result.error = e.message
            logger.warning(f"Push of {label} failed with {e.status_code}, aborting drain: {e.message}")
            return False
        except RequestRejectedError as e:
            self.queue.record_failure(item.id, self._describe_rejection(e), dead=True)
            result.dead_lettered += 1
            logger.warning(f"Push of {label} rejected ({e.status_code}), dead-lettered: {e.message}")
            return True
        except SyncError as e:
            retry_count = item.retry_count + 1
            if self.retry_policy.is_exhausted(retry_count):
                self.queue.record_failure(item.id, e.message, dead=True)
                result.dead_lettered += 1
                logger.error(f"Push of {label} failed {retry_count} times, dead-lettered: {e.message}")
            else:
                next_attempt_at = self.clock() + self.retry_policy.delay_for(retry_count)
                self.queue.record_failure(item.id, e.message, next_attempt_at=next_attempt_at)
                result.failed += 1
                logger.warning(f"Push of {label} failed (attempt {retry_count}), "
                               f"retrying after {next_attempt_at.isoformat()}: {e.message}")
            result.error = e.message
            return False

        self.queue.remove(item.id)
        if item.operation != "delete" and not self.queue.has_pending_for(*item.entity_key):
            self.entities.mark_synced(item.entity_type, item.entity_id)
        result.pushed += 1
        return True

    @staticmethod
    def _describe_rejection(error: RequestRejectedError) -> str:
        if not error.errors:
            return error.message
        details = "; ".join(f"{e.get('path')}: {e.get('message')}" for e in error.errors[:5])
        return f"{error.message} ({details})"

    async def retry_dead_letters(self) -> PushResult:
        """Move dead-lettered items back to pending and drain again"""
        self.queue.requeue_dead()
        self._update_status()
        return await self.push_all()

    async def force_push_all(self) -> PushResult:
        """Queue every cached entity as a create and push (repairs a diverged server)"""
        queued = 0
        for entity_type, records in self.entities.list_all().items():
            for record in records:
                entity_id = record.get("id")
                if not entity_id:
                    continue
                payload = {k: v for k, v in record.items() if k not in PULL_ONLY_FIELDS}
                self.queue.enqueue(entity_type, entity_id, "create", payload)
                queued += 1
        logger.info(f"Force push queued {queued} local entities")
        self._update_status()
        return await self.push_all()

    # ────────────────────────────────────────────────────────
    # Pull
    # ────────────────────────────────────────────────────────

    async def pull_all(self) -> PullResult:
        """Fetch the snapshot and merge it once no push is in flight"""
        async with self._pull_lock:
            self._update_status(is_pulling=True, pull_error=None)
            changes: Dict[str, Any] = {"is_pulling": False}
            try:
                snapshot = await self.client.pull()
                await self._push_idle.wait()
                merge = self.merge_snapshot(snapshot)

                meta = snapshot.get("meta") or {}
                pulled_at = meta.get("pulledAt") or self.clock().isoformat()
                self.entities.set_state(STATE_LAST_PULL_AT, pulled_at)
                self.entities.set_state(STATE_LAST_PULL_META, meta)
                changes["last_pull_at"] = pulled_at
            except SyncError as e:
                logger.warning(f"Pull failed: {e.message}")
                changes["pull_error"] = e.message
                return PullResult(error=e.message)
            finally:
                self._update_status(**changes)

            logger.info(
                f"Pull merged {merge.applied} entities "
                f"({merge.skipped_pending} pending locally, {merge.skipped_stale} older than local)"
            )
            return PullResult(merge=merge, counts=meta.get("counts", {}), pulled_at=pulled_at)

    def merge_snapshot(self, snapshot: Dict[str, Any]) -> MergeResult:
        """
        Merge a pull snapshot into the local store

        Entities absent from the snapshot are left alone.
        """
        result = MergeResult()
        data = snapshot.get("data") or {}
        for collection, entity_type in ENTITY_TYPE_BY_COLLECTION.items():
            value = data.get(collection)
            if value is None:
                continue
            records = [value] if isinstance(value, dict) else value
            for remote in records:
                entity_id = remote.get("id")
                if not entity_id:
                    continue
                if self.queue.has_pending_for(entity_type, entity_id):
                    result.skipped_pending += 1
                    continue
                local = self.entities.get(entity_type, entity_id)
                if local is not None and self._local_is_newer(local, remote):
                    result.skipped_stale += 1
                    continue
                self.entities.put(entity_type, entity_id, remote, SYNC_STATUS_SYNCED)
                result.applied += 1
        return result

    @staticmethod
    def _local_is_newer(local: Dict[str, Any], remote: Dict[str, Any]) -> bool:
        local_at = _parse_timestamp(local.get("updatedAt"))
        remote_at = _parse_timestamp(remote.get("updatedAt"))
        if local_at is None or remote_at is None:
            return False
        return local_at > remote_at

    async def pull_if_changed(self) -> PullResult:
        """Pull only when the server's counts or latest updates moved since the last pull"""
        try:
            debug = await self.client.debug()
        except SyncError as e:
            logger.warning(f"Diagnostic check failed, pulling anyway: {e.message}")
            return await self.pull_all()

        fingerprint = {
            "counts": debug.get("counts"),
            "latestUpdates": debug.get("latestUpdates"),
        }
        if fingerprint == self.entities.get_state(STATE_LAST_PULL_FINGERPRINT):
            logger.info("Server state unchanged since last pull, skipping")
            return PullResult(skipped=True, counts=debug.get("counts") or {})

        result = await self.pull_all()
        if result.error is None:
            self.entities.set_state(STATE_LAST_PULL_FINGERPRINT, fingerprint)
        return result

    async def full_sync(self) -> FullSyncResult:
        """Push local changes, then pull authoritative state"""
        push = await self.push_all()
        pull = await self.pull_all()
        return FullSyncResult(push=push, pull=pull)

    async def sync_if_changed(self) -> FullSyncResult:
        """Push local changes, then pull only if the server moved; the periodic and reconnect step"""
        push = await self.push_all()
        pull = await self.pull_if_changed()
        return FullSyncResult(push=push, pull=pull)
