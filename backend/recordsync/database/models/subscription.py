from sqlalchemy import Column, String, Date, Integer, Numeric, Boolean, Text, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class SubscriptionModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "subscriptions"

    name = Column(String(255), nullable=False)
    provider = Column(String(255), nullable=False)
    category = Column(String(50))
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    billing_cycle = Column(String(20), nullable=False)
    next_billing_date = Column(Date)
    start_date = Column(Date)
    cancel_url = Column(Text)
    login_url = Column(Text)
    notes = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    reminder_days = Column(Integer, nullable=False, default=3)
    logo_url = Column(Text)

    __table_args__ = (
        Index("idx_subscriptions_user_deleted", "user_id", "is_deleted"),
        Index("idx_subscriptions_user_updated", "user_id", "updated_at"),
    )
