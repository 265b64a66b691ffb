"""
Client sync queue and local entity store tests
"""

from datetime import datetime, timedelta, timezone

import pytest

from recordsync.services.stores import StoreNotFoundError, StoreValidationError
from recordsync.services.stores.local_entity_store import SYNC_STATUS_PENDING, SYNC_STATUS_SYNCED


class TestSyncQueueStore:

    def test_enqueue_preserves_creation_order(self, queue):
        first = queue.enqueue("receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        second = queue.enqueue("receipt", "r1", "update", {"totalAmount": 2})
        third = queue.enqueue("receipt", "r1", "delete")

        pending = queue.list_pending()
        assert [item.id for item in pending] == [first.id, second.id, third.id]
        assert [item.operation for item in pending] == ["create", "update", "delete"]
        assert pending[1].payload == {"totalAmount": 2}
        assert pending[2].payload is None
        assert queue.count_pending() == 3

    def test_envelope_shape(self, queue):
        create = queue.enqueue("device", "d1", "create", {"brand": "LG", "model": "X"})
        delete = queue.enqueue("device", "d1", "delete")

        assert create.to_envelope() == {
            "entityType": "device",
            "entityId": "d1",
            "operation": "create",
            "data": {"brand": "LG", "model": "X"},
        }
        assert "data" not in delete.to_envelope()

    def test_rejects_bad_items(self, queue):
        with pytest.raises(StoreValidationError):
            queue.enqueue("receipt", "r1", "upsert", {})
        with pytest.raises(StoreValidationError):
            queue.enqueue("receipt", "r1", "update")

    def test_record_failure_keeps_item(self, queue):
        item = queue.enqueue("receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        retry_at = datetime(2030, 1, 1, tzinfo=timezone.utc)

        failed = queue.record_failure(item.id, "timeout", next_attempt_at=retry_at)
        assert failed.retry_count == 1
        assert failed.last_error == "timeout"
        assert failed.next_attempt_at == retry_at
        assert failed.status == "pending"

        failed = queue.record_failure(item.id, "HTTP 500")
        assert failed.retry_count == 2
        assert failed.last_error == "HTTP 500"
        assert failed.next_attempt_at is None
        assert queue.count_pending() == 1

    def test_dead_letters_leave_pending_list(self, queue):
        item = queue.enqueue("receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        queue.record_failure(item.id, "rejected", dead=True)

        assert queue.list_pending() == []
        assert [dead.id for dead in queue.list_dead()] == [item.id]
        assert queue.count_dead() == 1
        assert queue.has_pending_for("receipt", "r1") is True

        assert queue.requeue_dead() == 1
        requeued = queue.get(item.id)
        assert requeued.status == "pending"
        assert requeued.retry_count == 0
        assert requeued.last_error == "rejected"

    def test_remove(self, queue):
        item = queue.enqueue("receipt", "r1", "delete")
        assert queue.remove(item.id) is True
        assert queue.remove(item.id) is False
        assert queue.has_pending_for("receipt", "r1") is False
        with pytest.raises(StoreNotFoundError):
            queue.get(item.id)
        with pytest.raises(StoreNotFoundError):
            queue.record_failure(item.id, "gone")

    def test_queue_survives_reopen(self, queue, client_db_path):
        from recordsync.services.stores import SyncQueueStore

        queue.enqueue("receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        reopened = SyncQueueStore(client_db_path)
        assert reopened.count_pending() == 1
        assert reopened.list_pending()[0].payload["merchantName"] == "Maxi"

    def test_to_dict_for_diagnostics(self, queue):
        item = queue.enqueue("receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        queue.record_failure(item.id, "timeout", next_attempt_at=datetime.now(timezone.utc) + timedelta(minutes=1))

        info = queue.list_all()[0].to_dict()
        assert info["entityType"] == "receipt"
        assert info["retryCount"] == 1
        assert info["lastError"] == "timeout"
        assert info["nextAttemptAt"] is not None

    def test_clear(self, queue):
        queue.enqueue("receipt", "r1", "delete")
        queue.enqueue("receipt", "r2", "delete")
        assert queue.clear() == 2
        assert queue.list_all() == []


class TestLocalEntityStore:

    def test_create_writes_entity_and_queue_item(self, entities, queue):
        item = entities.record_mutation(queue, "receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})

        entity = entities.get("receipt", "r1")
        assert entity["id"] == "r1"
        assert entity["merchantName"] == "Maxi"
        assert entity["syncStatus"] == SYNC_STATUS_PENDING
        assert entity["createdAt"] == entity["updatedAt"]

        assert item.operation == "create"
        assert item.payload["merchantName"] == "Maxi"
        assert "id" not in item.payload
        assert queue.count_pending() == 1

    def test_update_merges_and_queues_only_changes(self, entities, queue):
        entities.record_mutation(queue, "receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        item = entities.record_mutation(queue, "receipt", "r1", "update", {"totalAmount": 5})

        entity = entities.get("receipt", "r1")
        assert entity["merchantName"] == "Maxi"
        assert entity["totalAmount"] == 5
        assert set(item.payload) == {"totalAmount", "updatedAt"}

    def test_delete_removes_entity_and_queues_delete(self, entities, queue):
        entities.record_mutation(queue, "receipt", "r1", "create", {"merchantName": "Maxi", "totalAmount": 1})
        item = entities.record_mutation(queue, "receipt", "r1", "delete")

        assert entities.get("receipt", "r1") is None
        assert item.operation == "delete"
        assert item.payload is None
        assert queue.count_pending() == 2

    def test_failed_mutation_writes_nothing(self, entities, queue):
        with pytest.raises(StoreValidationError):
            entities.record_mutation(queue, "receipt", "r1", "create", {"when": datetime.now()})

        assert entities.get("receipt", "r1") is None
        assert queue.count_pending() == 0

    def test_unknown_entity_type(self, entities, queue):
        with pytest.raises(StoreValidationError):
            entities.record_mutation(queue, "invoice", "i1", "create", {})

    def test_mark_synced(self, entities):
        entities.put("device", "d1", {"brand": "LG"})
        assert entities.mark_synced("device", "d1") is True
        assert entities.get("device", "d1")["syncStatus"] == SYNC_STATUS_SYNCED
        assert entities.mark_synced("device", "missing") is False

    def test_list_all_groups_by_type(self, entities):
        entities.put("receipt", "r1", {"merchantName": "A"})
        entities.put("settings", "s1", {"theme": "dark"})

        grouped = entities.list_all()
        assert [entity["id"] for entity in grouped["receipt"]] == ["r1"]
        assert [entity["id"] for entity in grouped["settings"]] == ["s1"]
        assert grouped["device"] == []

    def test_sync_state(self, entities):
        assert entities.get_state("last_pull_at") is None
        assert entities.get_state("missing", default={}) == {}

        entities.set_state("last_pull_meta", {"counts": {"receipts": 2}})
        entities.set_state("last_pull_meta", {"counts": {"receipts": 3}})
        assert entities.get_state("last_pull_meta") == {"counts": {"receipts": 3}}
