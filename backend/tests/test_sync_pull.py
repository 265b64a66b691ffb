"""
Pull snapshot and diagnostic endpoint tests
"""

from recordsync.database.models import DeviceModel


def push(client, headers, entity_type, entity_id, operation="create", data=None):
    envelope = {"entityType": entity_type, "entityId": entity_id, "operation": operation}
    if data is not None:
        envelope["data"] = data
    response = client.post("/sync", json=envelope, headers=headers)
    assert response.status_code == 200, response.text
    return response


def test_empty_snapshot(client, alice):
    response = client.get("/sync/pull", headers=alice)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "receipts": [],
        "devices": [],
        "reminders": [],
        "householdBills": [],
        "documents": [],
        "subscriptions": [],
        "settings": None,
    }
    assert body["meta"]["counts"] == {
        "receipts": 0,
        "devices": 0,
        "reminders": 0,
        "householdBills": 0,
        "documents": 0,
        "subscriptions": 0,
    }
    assert body["meta"]["pulledAt"].endswith("Z")
    assert body["meta"]["failedKinds"] == []


def test_rows_are_transformed_to_wire_shape(client, alice):
    push(client, alice, "device", "d1", data={
        "brand": "Samsung",
        "model": "WW90",
        "purchaseDate": "2024-02-01T09:15:00.000Z",
        "attachments": ["https://files.example.com/warranty.pdf"],
        "tags": ["kitchen"],
    })

    device = client.get("/sync/pull", headers=alice).json()["data"]["devices"][0]
    assert device["id"] == "d1"
    assert device["brand"] == "Samsung"
    assert device["purchaseDate"] == "2024-02-01"
    assert device["attachments"] == ["https://files.example.com/warranty.pdf"]
    assert device["tags"] == ["kitchen"]
    assert device["status"] == "active"
    assert device["warrantyDuration"] == 0
    assert device["reminders"] == []
    assert device["syncStatus"] == "synced"
    assert device["createdAt"].endswith("Z")
    assert device["updatedAt"].endswith("Z")
    assert "serialNumber" not in device
    assert "userId" not in device
    assert "isDeleted" not in device


def test_nested_json_and_amounts(client, alice):
    push(client, alice, "receipt", "r1", data={
        "merchantName": "Lidl",
        "totalAmount": 42,
        "items": [{"name": "Bread", "quantity": 1, "totalPrice": 42}],
    })
    push(client, alice, "householdBill", "b1", data={
        "billType": "electricity",
        "provider": "EPS",
        "amount": 5430.25,
        "dueDate": "2024-03-10",
        "consumption": {"value": 350, "unit": "kWh"},
    })

    data = client.get("/sync/pull", headers=alice).json()["data"]
    receipt = data["receipts"][0]
    assert receipt["totalAmount"] == 42
    assert receipt["items"][0]["name"] == "Bread"
    assert receipt["items"][0]["totalPrice"] == 42

    bill = data["householdBills"][0]
    assert bill["amount"] == 5430.25
    assert bill["dueDate"] == "2024-03-10"
    assert bill["consumption"] == {"value": 350, "unit": "kWh"}


def test_reminder_defaults_and_timestamps(client, alice):
    push(client, alice, "reminder", "rem1", data={
        "deviceId": "d1",
        "daysBeforeExpiry": 14,
        "sentAt": "2024-05-01T12:00:00+02:00",
    })
    reminder = client.get("/sync/pull", headers=alice).json()["data"]["reminders"][0]
    assert reminder["type"] == "warranty"
    assert reminder["status"] == "pending"
    assert reminder["daysBeforeExpiry"] == 14
    assert reminder["sentAt"] == "2024-05-01T10:00:00Z"


def test_settings_is_a_single_object(client, alice):
    push(client, alice, "settings", "settings-1", data={"theme": "dark", "language": "en"})

    settings = client.get("/sync/pull", headers=alice).json()["data"]["settings"]
    assert settings["id"] == "settings-1"
    assert settings["userId"] == "user-alice"
    assert settings["theme"] == "dark"
    assert settings["language"] == "en"
    assert settings["quietHoursStart"] == "22:00"
    assert settings["quietHoursEnd"] == "08:00"
    assert "syncStatus" not in settings

    meta = client.get("/sync/pull", headers=alice).json()["meta"]
    assert "settings" not in meta["counts"]


def test_tombstones_are_excluded(client, alice):
    push(client, alice, "document", "doc1", data={"type": "passport", "name": "Passport"})
    push(client, alice, "document", "doc2", data={"type": "id", "name": "ID card"})
    push(client, alice, "document", "doc1", operation="delete")

    body = client.get("/sync/pull", headers=alice).json()
    assert [doc["id"] for doc in body["data"]["documents"]] == ["doc2"]
    assert body["meta"]["counts"]["documents"] == 1


def test_snapshot_is_scoped_to_caller(client, alice, bob):
    push(client, alice, "subscription", "sub1", data={
        "name": "Netflix", "provider": "Netflix", "amount": 1199, "billingCycle": "monthly",
    })

    assert client.get("/sync/pull", headers=bob).json()["data"]["subscriptions"] == []
    subscription = client.get("/sync/pull", headers=alice).json()["data"]["subscriptions"][0]
    assert subscription["isActive"] is True
    assert subscription["reminderDays"] == 3


def test_receipts_are_ordered_by_date(client, alice):
    push(client, alice, "receipt", "old", data={"merchantName": "A", "totalAmount": 1, "date": "2023-01-01"})
    push(client, alice, "receipt", "new", data={"merchantName": "B", "totalAmount": 1, "date": "2024-06-01"})

    receipts = client.get("/sync/pull", headers=alice).json()["data"]["receipts"]
    assert [receipt["id"] for receipt in receipts] == ["new", "old"]


def test_one_failing_kind_does_not_fail_the_pull(client, alice, engine):
    push(client, alice, "receipt", "r1", data={"merchantName": "Maxi", "totalAmount": 1})
    push(client, alice, "settings", "s1", data={"theme": "dark"})
    DeviceModel.__table__.drop(engine)

    response = client.get("/sync/pull", headers=alice)
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["devices"] == []
    assert [receipt["id"] for receipt in body["data"]["receipts"]] == ["r1"]
    assert body["data"]["settings"]["theme"] == "dark"
    assert body["meta"]["failedKinds"] == ["devices"]

    debug = client.get("/sync/debug", headers=alice).json()
    assert debug["counts"]["devices"] == 0
    assert debug["counts"]["receipts"] == 1
    assert debug["failedKinds"] == ["devices"]


def test_pull_requires_token(client):
    assert client.get("/sync/pull").status_code == 401
    assert client.get("/sync/debug").status_code == 401


class TestDiagnostics:
    """GET /sync/debug"""

    def test_counts_and_latest_updates(self, client, alice):
        push(client, alice, "receipt", "r1", data={"merchantName": "Maxi", "totalAmount": 1})
        push(client, alice, "receipt", "r2", data={"merchantName": "Idea", "totalAmount": 2})
        push(client, alice, "settings", "s1", data={"theme": "dark"})

        body = client.get("/sync/debug", headers=alice).json()
        assert body["success"] is True
        assert body["userId"] == "user-alice"
        assert body["counts"]["receipts"] == 2
        assert body["counts"]["devices"] == 0
        assert body["counts"]["settings"] is True
        assert body["latestUpdates"]["receipts"].endswith("Z")
        assert body["latestUpdates"]["devices"] is None

    def test_latest_update_moves_on_delete(self, client, alice):
        push(client, alice, "receipt", "r1", data={"merchantName": "Maxi", "totalAmount": 1})
        before = client.get("/sync/debug", headers=alice).json()["latestUpdates"]["receipts"]

        push(client, alice, "receipt", "r1", operation="delete")
        body = client.get("/sync/debug", headers=alice).json()
        assert body["counts"]["receipts"] == 0
        assert before is not None
        assert body["latestUpdates"]["receipts"] is not None
