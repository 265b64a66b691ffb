from .receipt import ReceiptModel
from .device import DeviceModel
from .reminder import ReminderModel
from .household_bill import HouseholdBillModel
from .document import DocumentModel
from .subscription import SubscriptionModel
from .user_settings import UserSettingsModel

__all__ = [
    "ReceiptModel",
    "DeviceModel",
    "ReminderModel",
    "HouseholdBillModel",
    "DocumentModel",
    "SubscriptionModel",
    "UserSettingsModel",
]
