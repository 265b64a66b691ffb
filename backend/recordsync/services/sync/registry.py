"""
Entity registry
Maps an entity-type token to its table, payload model, applier and pull shape
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from pydantic import ValidationError

from ...schemas.sync import (
    COLLECTION_BY_ENTITY_TYPE,
    DeviceData,
    DocumentData,
    EntityData,
    HouseholdBillData,
    ReceiptData,
    ReminderData,
    SettingsData,
    SubscriptionData,
)
from .appliers import (
    DeletePolicy,
    DeviceApplier,
    DocumentApplier,
    HouseholdBillApplier,
    MutationApplier,
    ReceiptApplier,
    ReminderApplier,
    SettingsApplier,
    SubscriptionApplier,
)
from .errors import EntityTypeError, PayloadValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    """Everything the push and pull paths need to know about one entity kind"""
    token: str
    collection: str
    data_model: Type[EntityData]
    applier: MutationApplier
    order_by: str = "created_at"
    pull_defaults: Dict[str, Any] = field(default_factory=dict)
    include_sync_status: bool = True
    singleton: bool = False

    @property
    def model(self):
        return self.applier.model

    @property
    def delete_policy(self) -> DeletePolicy:
        return self.applier.delete_policy


def _kind(token: str, data_model, applier, **kwargs) -> EntityKind:
    return EntityKind(
        token=token,
        collection=COLLECTION_BY_ENTITY_TYPE[token],
        data_model=data_model,
        applier=applier,
        **kwargs,
    )


ENTITY_REGISTRY: Dict[str, EntityKind] = {
    kind.token: kind
    for kind in (
        _kind("receipt", ReceiptData, ReceiptApplier(), order_by="date"),
        _kind("device", DeviceData, DeviceApplier(),
              pull_defaults={"status": "active", "warrantyDuration": 0, "reminders": []}),
        _kind("reminder", ReminderData, ReminderApplier(),
              pull_defaults={"type": "warranty", "status": "pending", "daysBeforeExpiry": 30}),
        _kind("householdBill", HouseholdBillData, HouseholdBillApplier(), order_by="due_date"),
        _kind("document", DocumentData, DocumentApplier(),
              pull_defaults={"expiryReminderDays": 30}),
        _kind("subscription", SubscriptionData, SubscriptionApplier(),
              pull_defaults={"isActive": True, "reminderDays": 3}),
        _kind("settings", SettingsData, SettingsApplier(), order_by="updated_at",
              include_sync_status=False, singleton=True,
              pull_defaults={
                  "theme": "system",
                  "language": "sr",
                  "notificationsEnabled": True,
                  "emailNotifications": False,
                  "pushNotifications": True,
                  "biometricLock": False,
                  "warrantyExpiryThreshold": 30,
                  "warrantyCriticalThreshold": 7,
                  "quietHoursStart": "22:00",
                  "quietHoursEnd": "08:00",
              }),
    )
}


def resolve_entity_kind(token: str) -> EntityKind:
    """
    Look up an entity kind

    Raises:
        EntityTypeError: token is not registered
    """
    kind = ENTITY_REGISTRY.get(token)
    if kind is None:
        raise EntityTypeError(f"Invalid entity type: {token}")
    return kind


def format_validation_errors(exc: ValidationError, prefix: str = "") -> List[Dict[str, str]]:
    """Flatten pydantic errors into ``[{path, message}]`` using wire field names"""
    errors = []
    for error in exc.errors():
        parts = [str(part) for part in error["loc"]]
        path = ".".join(([prefix] if prefix else []) + parts)
        errors.append({"path": path or prefix or "body", "message": error["msg"]})
    return errors


def validate_entity_data(kind: EntityKind, operation: str, data: Optional[Dict[str, Any]]) -> EntityData:
    """
    Structurally validate a create/update payload

    Every field is type-, range- and enum-checked; fields marked required
    for the kind must be present (and non-null) on create.

    Raises:
        PayloadValidationError: with one ``{path, message}`` per problem
    """
    if not isinstance(data, dict):
        raise PayloadValidationError(
            [{"path": "data", "message": f"Field required for {operation}"}]
        )

    errors: List[Dict[str, str]] = []
    validated = None
    try:
        validated = kind.data_model.model_validate(data)
    except ValidationError as e:
        errors.extend(format_validation_errors(e, prefix="data"))

    if operation == "create":
        for name in kind.data_model.required_on_create:
            alias = kind.data_model.model_fields[name].alias or name
            if data.get(alias) is None and data.get(name) is None:
                path = f"data.{alias}"
                if not any(error["path"] == path for error in errors):
                    errors.append({"path": path, "message": "Field required"})

    if errors:
        raise PayloadValidationError(errors)
    return validated
