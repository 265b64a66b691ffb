from sqlalchemy import Column, String, Integer, DateTime, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class ReminderModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "reminders"

    device_id = Column(String(128), nullable=False)
    type = Column(String(20), nullable=False, default="warranty")
    days_before_expiry = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    sent_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_reminders_user_deleted", "user_id", "is_deleted"),
        Index("idx_reminders_user_updated", "user_id", "updated_at"),
        Index("idx_reminders_device", "device_id"),
    )
