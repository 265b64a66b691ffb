"""
Sync wire schemas
Push envelope and per-entity-kind typed payloads (camelCase on the wire)
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


class SyncOperation(str, Enum):
    """Mutation verbs carried by a push envelope"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Entity-type token -> key of the pull snapshot's ``data`` object
COLLECTION_BY_ENTITY_TYPE: Dict[str, str] = {
    "receipt": "receipts",
    "device": "devices",
    "reminder": "reminders",
    "householdBill": "householdBills",
    "document": "documents",
    "subscription": "subscriptions",
    "settings": "settings",
}

ENTITY_TYPE_BY_COLLECTION: Dict[str, str] = {
    collection: token for token, collection in COLLECTION_BY_ENTITY_TYPE.items()
}

# Client-side bookkeeping fields that are never stored remotely
CLIENT_ONLY_FIELDS = ("id", "syncStatus", "userId")

# Derived fields a pull adds that must not be pushed back
PULL_ONLY_FIELDS = CLIENT_ONLY_FIELDS + ("reminders",)


# ────────────────────────────────────────────────────────────
# Value parsing
# ────────────────────────────────────────────────────────────

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CLOCK_TIME = re.compile(r"^\d{2}:\d{2}$")
_URL_ADAPTER = TypeAdapter(AnyUrl)


def parse_client_datetime(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time sent by a client (``Z`` suffix allowed), as UTC"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_client_date(value: str) -> date:
    """Keep only the calendar date of a date or date-time string"""
    return date.fromisoformat(value.strip().split("T")[0])


def _check_date(value: str) -> str:
    if _DATE_ONLY.match(value):
        parse_client_date(value)
        return value
    try:
        parse_client_datetime(value)
    except ValueError:
        raise ValueError("must be a YYYY-MM-DD date or an ISO-8601 date-time")
    return value


def _check_url(value: str) -> str:
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        raise ValueError("must be an absolute URL")
    return value


def _check_clock_time(value: str) -> str:
    if not _CLOCK_TIME.match(value):
        raise ValueError("must be in HH:MM format")
    hours, minutes = (int(part) for part in value.split(":"))
    if hours > 23 or minutes > 59:
        raise ValueError("must be a valid time of day")
    return value


ClientDate = Annotated[str, AfterValidator(_check_date)]
UrlText = Annotated[str, AfterValidator(_check_url)]
ClockTime = Annotated[str, AfterValidator(_check_clock_time)]
NonNegativeAmount = Annotated[float, Field(ge=0)]


def _text(max_length: int, min_length: int = 0):
    return Annotated[str, Field(min_length=min_length, max_length=max_length)]


# ────────────────────────────────────────────────────────────
# Envelope
# ────────────────────────────────────────────────────────────

class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SyncRequest(WireModel):
    """Push envelope: one mutation of one entity"""
    entity_type: Annotated[str, Field(min_length=1, max_length=50)]
    entity_id: Annotated[str, Field(min_length=1, max_length=128)]
    operation: Literal["create", "update", "delete"]
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
        extra="ignore",
    )


class SyncBatchRequest(WireModel):
    """Batch push body"""
    items: Annotated[List[Dict[str, Any]], Field(max_length=100)]


# ────────────────────────────────────────────────────────────
# Entity payloads
# ────────────────────────────────────────────────────────────

class EntityData(BaseModel):
    """
    Base for per-kind payloads

    Every field is optional at the type level so the same model validates
    create and update payloads; ``required_on_create`` lists the fields a
    create must carry. ``model_fields_set`` keeps "absent" and "explicit
    null" apart for the appliers.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        strict=True,
    )

    required_on_create: ClassVar[Tuple[str, ...]] = ()

    created_at: Optional[ClientDate] = None
    updated_at: Optional[ClientDate] = None

    @model_validator(mode="before")
    @classmethod
    def strip_client_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in CLIENT_ONLY_FIELDS}
        return data

    def provided_fields(self) -> Dict[str, Any]:
        """Fields present in the payload, keyed by python/column name"""
        return {name: getattr(self, name) for name in self.model_fields_set}


class ReceiptItem(BaseModel):
    """Receipt line item; extra keys from older clients are kept"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    name: str
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None


class HouseholdConsumption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Optional[float] = None
    unit: Optional[str] = None


class ReceiptData(EntityData):
    required_on_create = ("merchant_name", "total_amount")

    merchant_name: Optional[_text(255, 1)] = None
    pib: Optional[_text(20)] = None
    date: Optional[ClientDate] = None
    time: Optional[_text(10)] = None
    total_amount: Optional[NonNegativeAmount] = None
    vat_amount: Optional[NonNegativeAmount] = None
    items: Optional[List[ReceiptItem]] = None
    category: Optional[_text(50)] = None
    tags: Optional[List[str]] = None
    notes: Optional[_text(1000)] = None
    qr_link: Optional[UrlText] = None
    image_url: Optional[UrlText] = None
    pdf_url: Optional[UrlText] = None


class DeviceData(EntityData):
    required_on_create = ("brand", "model")

    receipt_id: Optional[_text(128, 1)] = None
    brand: Optional[_text(100, 1)] = None
    model: Optional[_text(100, 1)] = None
    category: Optional[_text(50)] = None
    serial_number: Optional[_text(100)] = None
    image_url: Optional[UrlText] = None
    purchase_date: Optional[ClientDate] = None
    warranty_duration: Optional[Annotated[int, Field(ge=0, le=120)]] = None
    warranty_expiry: Optional[ClientDate] = None
    warranty_terms: Optional[_text(2000)] = None
    status: Optional[Literal["active", "expired", "in_service", "in-service"]] = None
    service_center_name: Optional[_text(255)] = None
    service_center_address: Optional[_text(500)] = None
    service_center_phone: Optional[_text(50)] = None
    service_center_hours: Optional[_text(255)] = None
    attachments: Optional[List[UrlText]] = None
    tags: Optional[List[str]] = None


class ReminderData(EntityData):
    required_on_create = ("device_id", "days_before_expiry")

    device_id: Optional[_text(128, 1)] = None
    type: Optional[Literal["warranty", "email", "push", "sms"]] = None
    days_before_expiry: Optional[Annotated[int, Field(ge=1, le=365)]] = None
    status: Optional[Literal["pending", "sent", "failed", "dismissed"]] = None
    sent_at: Optional[ClientDate] = None


class HouseholdBillData(EntityData):
    required_on_create = ("bill_type", "provider", "amount")

    bill_type: Optional[_text(50, 1)] = None
    provider: Optional[_text(255, 1)] = None
    account_number: Optional[_text(50)] = None
    amount: Optional[NonNegativeAmount] = None
    billing_period_start: Optional[ClientDate] = None
    billing_period_end: Optional[ClientDate] = None
    due_date: Optional[ClientDate] = None
    payment_date: Optional[ClientDate] = None
    status: Optional[Literal["pending", "paid", "overdue"]] = None
    consumption: Optional[HouseholdConsumption] = None
    notes: Optional[_text(1000)] = None


class DocumentData(EntityData):
    required_on_create = ("type", "name")

    type: Optional[_text(50, 1)] = None
    name: Optional[_text(255, 1)] = None
    file_url: Optional[UrlText] = None
    thumbnail_url: Optional[UrlText] = None
    expiry_date: Optional[ClientDate] = None
    expiry_reminder_days: Optional[Annotated[int, Field(ge=0, le=365)]] = None
    notes: Optional[_text(1000)] = None
    tags: Optional[List[str]] = None


class SubscriptionData(EntityData):
    required_on_create = ("name", "provider", "amount", "billing_cycle")

    name: Optional[_text(255, 1)] = None
    provider: Optional[_text(255, 1)] = None
    category: Optional[Literal[
        "streaming", "music", "gaming", "fitness", "software",
        "news", "cloud", "education", "other",
    ]] = None
    amount: Optional[NonNegativeAmount] = None
    billing_cycle: Optional[Literal["weekly", "monthly", "quarterly", "yearly"]] = None
    next_billing_date: Optional[ClientDate] = None
    start_date: Optional[ClientDate] = None
    cancel_url: Optional[UrlText] = None
    login_url: Optional[UrlText] = None
    notes: Optional[_text(1000)] = None
    is_active: Optional[bool] = None
    reminder_days: Optional[Annotated[int, Field(ge=0, le=365)]] = None
    logo_url: Optional[UrlText] = None


class SettingsData(EntityData):
    theme: Optional[Literal["light", "dark", "system"]] = None
    language: Optional[Literal["sr", "en", "hr", "sl"]] = None
    notifications_enabled: Optional[bool] = None
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    biometric_lock: Optional[bool] = None
    warranty_expiry_threshold: Optional[Annotated[int, Field(ge=1, le=365)]] = None
    warranty_critical_threshold: Optional[Annotated[int, Field(ge=1, le=30)]] = None
    quiet_hours_start: Optional[ClockTime] = None
    quiet_hours_end: Optional[ClockTime] = None


# ────────────────────────────────────────────────────────────
# Responses
# ────────────────────────────────────────────────────────────

class SyncResultResponse(WireModel):
    """Success envelope returned by ``POST /sync``"""
    success: bool = True
    operation: SyncOperation
    entity_type: str
    entity_id: str
