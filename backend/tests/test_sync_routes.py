"""
Push endpoint tests (single and batch) through the FastAPI app
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from recordsync.database.models import ReceiptModel
from recordsync.services.sync.appliers import ReceiptApplier
from recordsync.shared.error_handler import RETRY_AFTER_SECONDS, ErrorType, classify_status

RECEIPT_ENVELOPE = {
    "entityType": "receipt",
    "entityId": "r1",
    "operation": "create",
    "data": {"merchantName": "Maxi", "totalAmount": 1250.5, "date": "2024-01-15"},
}


def _receipt_rows(db):
    db.expire_all()
    return db.query(ReceiptModel).all()


def _receipts(pull_body):
    return {receipt["id"]: receipt for receipt in pull_body["data"]["receipts"]}


def test_create_then_pull(client, alice):
    """A pushed receipt comes back in the next pull, marked synced"""
    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "operation": "create",
        "entityType": "receipt",
        "entityId": "r1",
    }
    assert response.headers["cache-control"] == "no-store"

    pulled = client.get("/sync/pull", headers=alice).json()
    receipt = _receipts(pulled)["r1"]
    assert receipt["merchantName"] == "Maxi"
    assert receipt["totalAmount"] == 1250.5
    assert receipt["date"] == "2024-01-15"
    assert receipt["syncStatus"] == "synced"


def test_redelivered_create_is_idempotent(client, alice, db):
    client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    first = client.get("/sync/pull", headers=alice).json()

    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert response.status_code == 200

    second = client.get("/sync/pull", headers=alice).json()
    assert len(_receipt_rows(db)) == 1
    before, after = _receipts(first)["r1"], _receipts(second)["r1"]
    assert after["merchantName"] == before["merchantName"]
    assert after["totalAmount"] == before["totalAmount"]
    assert after["updatedAt"] >= before["updatedAt"]


def test_delete_hides_entity_and_lowers_count(client, alice, db):
    client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert client.get("/sync/debug", headers=alice).json()["counts"]["receipts"] == 1

    response = client.post(
        "/sync",
        json={"operation": "delete", "entityType": "receipt", "entityId": "r1"},
        headers=alice,
    )
    assert response.status_code == 200
    assert response.json()["operation"] == "delete"

    assert "r1" not in _receipts(client.get("/sync/pull", headers=alice).json())
    assert client.get("/sync/debug", headers=alice).json()["counts"]["receipts"] == 0
    assert _receipt_rows(db)[0].is_deleted is True


def test_missing_token_is_rejected(client, db):
    response = client.post("/sync", json=RECEIPT_ENVELOPE)
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized", "code": "UNAUTHORIZED"}
    assert _receipt_rows(db) == []


def test_invalid_token_is_rejected(client):
    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401

    response = client.get("/sync/pull", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


def test_create_without_required_fields(client, alice, db):
    response = client.post(
        "/sync",
        json={"entityType": "receipt", "entityId": "r1", "operation": "create", "data": {}},
        headers=alice,
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    assert {error["path"] for error in body["errors"]} == {"data.merchantName", "data.totalAmount"}
    assert _receipt_rows(db) == []


def test_envelope_missing_entity_id(client, alice):
    envelope = {k: v for k, v in RECEIPT_ENVELOPE.items() if k != "entityId"}
    response = client.post("/sync", json=envelope, headers=alice)
    assert response.status_code == 400
    assert "entityId" in [error["path"] for error in response.json()["errors"]]


def test_create_without_data(client, alice):
    envelope = {k: v for k, v in RECEIPT_ENVELOPE.items() if k != "data"}
    response = client.post("/sync", json=envelope, headers=alice)
    assert response.status_code == 400
    assert response.json()["errors"] == [{"path": "data", "message": "Field required for create"}]


def test_unknown_operation(client, alice):
    response = client.post("/sync", json={**RECEIPT_ENVELOPE, "operation": "merge"}, headers=alice)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_unknown_entity_type(client, alice):
    response = client.post("/sync", json={**RECEIPT_ENVELOPE, "entityType": "invoice"}, headers=alice)
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_ENTITY_TYPE"
    assert body["error"] == "Invalid entity type: invoice"


def test_invalid_json_body(client, alice):
    response = client.post(
        "/sync",
        content=b"{not json",
        headers={**alice, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON body"


def test_non_object_body(client, alice):
    response = client.post("/sync", json=[RECEIPT_ENVELOPE], headers=alice)
    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "body"


def test_wrong_method(client, alice):
    response = client.get("/sync", headers=alice)
    assert response.status_code == 405
    assert response.json()["code"] == "METHOD_NOT_ALLOWED"

    response = client.post("/sync/pull", headers=alice)
    assert response.status_code == 405


def test_update_by_other_user_is_silent_noop(client, alice, bob, db):
    client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)

    response = client.post(
        "/sync",
        json={"entityType": "receipt", "entityId": "r1", "operation": "update",
              "data": {"merchantName": "Hijacked"}},
        headers=bob,
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    rows = _receipt_rows(db)
    assert rows[0].merchant_name == "Maxi"
    assert client.get("/sync/pull", headers=bob).json()["data"]["receipts"] == []


def _break_receipt_writes(monkeypatch):
    def fail(self, db, user_id, entity_id, operation, data=None):
        raise OperationalError("INSERT INTO receipts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ReceiptApplier, "apply", fail)


def test_storage_failure_is_generic_in_production(client, alice, monkeypatch):
    _break_receipt_writes(monkeypatch)

    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert response.status_code == 500
    body = response.json()
    assert body == {"success": False, "error": "Internal Server Error", "code": "INTERNAL_ERROR"}
    assert "disk" not in response.text


def test_storage_failure_is_retryable_and_logged(client, alice, monkeypatch, caplog):
    _break_receipt_writes(monkeypatch)

    with caplog.at_level(logging.ERROR, logger="recordsync.shared.error_handler"):
        response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)

    assert response.status_code == 500
    assert response.headers["retry-after"] == str(RETRY_AFTER_SECONDS)
    logged = [r.getMessage() for r in caplog.records if r.name == "recordsync.shared.error_handler"]
    assert any("storage error 500" in message and "disk I/O error" in message for message in logged)


def test_client_errors_carry_no_retry_hint(client, alice):
    response = client.post("/sync", json={"entityType": "receipt", "operation": "create", "data": {}}, headers=alice)
    assert response.status_code == 400
    assert "retry-after" not in response.headers

    assert "retry-after" not in client.post("/sync", json=RECEIPT_ENVELOPE).headers


def test_status_classification():
    assert classify_status(401).retryable is False
    assert classify_status(404).error_type == ErrorType.VALIDATION
    assert classify_status(503).headers() == {"Retry-After": str(RETRY_AFTER_SECONDS)}
    assert classify_status(405).headers() == {}


def test_storage_failure_detail_in_development(client, alice, monkeypatch):
    _break_receipt_writes(monkeypatch)
    monkeypatch.setenv("ENVIRONMENT", "development")

    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert response.status_code == 500
    assert "disk I/O error" in response.json()["error"]


def test_unexpected_failure_is_generic(client, alice, monkeypatch):
    def explode(self, db, user_id, entity_id, operation, data=None):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(ReceiptApplier, "apply", explode)

    response = client.post("/sync", json=RECEIPT_ENVELOPE, headers=alice)
    assert response.status_code == 500
    assert response.json()["error"] == "Internal Server Error"
    assert "secret" not in response.text


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestBatchPush:
    """POST /sync/batch"""

    def test_items_apply_in_order(self, client, alice):
        response = client.post(
            "/sync/batch",
            json={"items": [
                RECEIPT_ENVELOPE,
                {"entityType": "receipt", "entityId": "r1", "operation": "update",
                 "data": {"totalAmount": 10}},
                {"entityType": "receipt", "entityId": "r2", "operation": "create",
                 "data": {"merchantName": "Idea", "totalAmount": 5}},
                {"entityType": "receipt", "entityId": "r2", "operation": "delete"},
            ]},
            headers=alice,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 4
        assert body["succeeded"] == 4
        assert body["failed"] == 0
        assert body["errors"] == []

        receipts = _receipts(client.get("/sync/pull", headers=alice).json())
        assert list(receipts) == ["r1"]
        assert receipts["r1"]["totalAmount"] == 10

    def test_failed_items_do_not_stop_the_batch(self, client, alice):
        response = client.post(
            "/sync/batch",
            json={"items": [
                {"entityType": "receipt", "entityId": "bad", "operation": "create", "data": {}},
                {"entityType": "invoice", "entityId": "x", "operation": "create", "data": {}},
                RECEIPT_ENVELOPE,
            ]},
            headers=alice,
        )
        body = response.json()
        assert body["succeeded"] == 1
        assert body["failed"] == 2
        assert [result["success"] for result in body["results"]] == [False, False, True]
        assert body["results"][0]["errors"]
        assert body["results"][1]["error"] == "Invalid entity type: invoice"
        assert len(body["errors"]) == 2

    def test_batch_size_limit(self, client, alice):
        items = [dict(RECEIPT_ENVELOPE, entityId=f"r{i}") for i in range(101)]
        response = client.post("/sync/batch", json={"items": items}, headers=alice)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid batch request"

    @pytest.mark.parametrize("body", [{}, {"items": "nope"}, []])
    def test_malformed_batch(self, client, alice, body):
        response = client.post("/sync/batch", json=body, headers=alice)
        assert response.status_code == 400
