from sqlalchemy import Column, String, Date, Numeric, Text, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class ReceiptModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "receipts"
    __json_columns__ = ("items", "tags")

    merchant_name = Column(String(255), nullable=False)
    pib = Column(String(20))
    date = Column(Date)
    time = Column(String(10))
    total_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    vat_amount = Column(Numeric(12, 2, asdecimal=False))
    items = Column(Text)  # JSON list of line items
    category = Column(String(50))
    tags = Column(Text)  # JSON list of tag names
    notes = Column(Text)
    qr_link = Column(Text)
    image_url = Column(Text)
    pdf_url = Column(Text)

    __table_args__ = (
        Index("idx_receipts_user_deleted", "user_id", "is_deleted"),
        Index("idx_receipts_user_updated", "user_id", "updated_at"),
    )
