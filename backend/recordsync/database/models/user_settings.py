from sqlalchemy import Column, String, Integer, Boolean

from ..base import Base
from ._mixins import OwnedRowMixin


class UserSettingsModel(OwnedRowMixin, Base):
    """Per-user settings singleton. Has no tombstone: deletes remove the row."""

    __tablename__ = "user_settings"

    theme = Column(String(10), nullable=False, default="system")
    language = Column(String(5), nullable=False, default="sr")
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    email_notifications = Column(Boolean, nullable=False, default=False)
    push_notifications = Column(Boolean, nullable=False, default=True)
    biometric_lock = Column(Boolean, nullable=False, default=False)
    warranty_expiry_threshold = Column(Integer, nullable=False, default=30)
    warranty_critical_threshold = Column(Integer, nullable=False, default=7)
    quiet_hours_start = Column(String(5))
    quiet_hours_end = Column(String(5))
