"""
Mutation applier tests: idempotent upserts, partial updates, ownership and delete policies
"""

import json
import time

from recordsync.database.models import DeviceModel, ReceiptModel, UserSettingsModel
from recordsync.services.sync import resolve_entity_kind, validate_entity_data


def apply(db, user_id, entity_type, entity_id, operation, payload=None):
    kind = resolve_entity_kind(entity_type)
    data = None
    if operation != "delete":
        data = validate_entity_data(kind, operation, payload)
    affected = kind.applier.apply(db, user_id, entity_id, operation, data)
    db.commit()
    return affected


def fetch(db, model, entity_id):
    db.expire_all()
    return db.query(model).filter(model.id == entity_id).one_or_none()


RECEIPT = {"merchantName": "Maxi", "totalAmount": 1250.5, "date": "2024-01-15"}


def test_create_inserts_row(db):
    assert apply(db, "u1", "receipt", "r1", "create", RECEIPT) == 1

    row = fetch(db, ReceiptModel, "r1")
    assert row.user_id == "u1"
    assert row.merchant_name == "Maxi"
    assert row.total_amount == 1250.5
    assert row.date.isoformat() == "2024-01-15"
    assert row.is_deleted is False


def test_create_is_idempotent(db):
    apply(db, "u1", "receipt", "r1", "create", RECEIPT)
    first = fetch(db, ReceiptModel, "r1")
    first_updated, first_created = first.updated_at, first.created_at

    time.sleep(0.01)
    apply(db, "u1", "receipt", "r1", "create", RECEIPT)

    assert db.query(ReceiptModel).count() == 1
    second = fetch(db, ReceiptModel, "r1")
    assert second.merchant_name == "Maxi"
    assert second.total_amount == 1250.5
    assert second.created_at == first_created
    assert second.updated_at > first_updated


def test_create_replaces_every_column(db):
    apply(db, "u1", "receipt", "r1", "create", {**RECEIPT, "notes": "first", "category": "food"})
    apply(db, "u1", "receipt", "r1", "create", {"merchantName": "Idea", "totalAmount": 10})

    row = fetch(db, ReceiptModel, "r1")
    assert row.merchant_name == "Idea"
    assert row.total_amount == 10
    assert row.notes is None
    assert row.category is None
    assert row.date is None


def test_create_fills_column_defaults(db):
    apply(db, "u1", "device", "d1", "create", {"brand": "LG", "model": "OLED55"})
    row = fetch(db, DeviceModel, "d1")
    assert row.status == "active"

    apply(db, "u1", "settings", "s1", "create", {"theme": "dark"})
    settings = fetch(db, UserSettingsModel, "s1")
    assert settings.theme == "dark"
    assert settings.language == "sr"
    assert settings.warranty_expiry_threshold == 30


def test_create_keeps_client_created_at(db):
    apply(db, "u1", "receipt", "r1", "create", {**RECEIPT, "createdAt": "2024-01-15T10:00:00Z"})
    row = fetch(db, ReceiptModel, "r1")
    assert row.created_at.replace(tzinfo=None).isoformat() == "2024-01-15T10:00:00"


def test_json_columns_are_serialized(db):
    apply(db, "u1", "receipt", "r1", "create", {
        **RECEIPT,
        "items": [{"name": "Milk", "quantity": 2, "unitPrice": 150}],
        "tags": ["groceries"],
    })
    row = fetch(db, ReceiptModel, "r1")
    assert json.loads(row.items) == [{"name": "Milk", "quantity": 2.0, "unitPrice": 150.0}]
    assert json.loads(row.tags) == ["groceries"]


def test_update_preserves_omitted_fields(db):
    apply(db, "u1", "receipt", "r1", "create", {**RECEIPT, "notes": "keep me"})
    assert apply(db, "u1", "receipt", "r1", "update", {"totalAmount": 99.99}) == 1

    row = fetch(db, ReceiptModel, "r1")
    assert row.total_amount == 99.99
    assert row.notes == "keep me"
    assert row.merchant_name == "Maxi"


def test_update_ignores_explicit_nulls(db):
    apply(db, "u1", "receipt", "r1", "create", {**RECEIPT, "notes": "keep me"})
    apply(db, "u1", "receipt", "r1", "update", {"notes": None})
    assert fetch(db, ReceiptModel, "r1").notes == "keep me"


def test_update_of_missing_row_affects_nothing(db):
    assert apply(db, "u1", "receipt", "ghost", "update", {"notes": "x"}) == 0
    assert db.query(ReceiptModel).count() == 0


def test_foreign_rows_are_never_mutated(db):
    apply(db, "alice", "receipt", "r1", "create", RECEIPT)

    assert apply(db, "bob", "receipt", "r1", "create", {"merchantName": "Bob's", "totalAmount": 1}) == 0
    assert apply(db, "bob", "receipt", "r1", "update", {"merchantName": "Bob's"}) == 0
    assert apply(db, "bob", "receipt", "r1", "delete") == 0

    row = fetch(db, ReceiptModel, "r1")
    assert row.user_id == "alice"
    assert row.merchant_name == "Maxi"
    assert row.is_deleted is False


def test_delete_leaves_tombstone(db):
    apply(db, "u1", "receipt", "r1", "create", RECEIPT)
    before = fetch(db, ReceiptModel, "r1").updated_at

    time.sleep(0.01)
    assert apply(db, "u1", "receipt", "r1", "delete") == 1

    row = fetch(db, ReceiptModel, "r1")
    assert row is not None
    assert row.is_deleted is True
    assert row.updated_at > before


def test_delete_is_idempotent(db):
    apply(db, "u1", "receipt", "r1", "create", RECEIPT)
    apply(db, "u1", "receipt", "r1", "delete")
    apply(db, "u1", "receipt", "r1", "delete")
    assert fetch(db, ReceiptModel, "r1").is_deleted is True


def test_settings_delete_removes_row(db):
    apply(db, "u1", "settings", "s1", "create", {"theme": "light"})
    assert apply(db, "u1", "settings", "s1", "delete") == 1
    assert fetch(db, UserSettingsModel, "s1") is None
    assert apply(db, "u1", "settings", "s1", "delete") == 0
