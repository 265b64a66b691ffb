from sqlalchemy import Column, String, Date, Numeric, Text, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class HouseholdBillModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "household_bills"
    __json_columns__ = ("consumption",)

    bill_type = Column(String(50), nullable=False)
    provider = Column(String(255), nullable=False)
    account_number = Column(String(50))
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    billing_period_start = Column(Date)
    billing_period_end = Column(Date)
    due_date = Column(Date)
    payment_date = Column(Date)
    status = Column(String(20), nullable=False, default="pending")
    consumption = Column(Text)  # JSON {value, unit}
    notes = Column(Text)

    __table_args__ = (
        Index("idx_household_bills_user_deleted", "user_id", "is_deleted"),
        Index("idx_household_bills_user_updated", "user_id", "updated_at"),
    )
