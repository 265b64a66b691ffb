from sqlalchemy import Column, String, Date, Integer, Text, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class DeviceModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "devices"
    __json_columns__ = ("attachments", "tags")

    receipt_id = Column(String(128))
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    category = Column(String(50))
    serial_number = Column(String(100))
    image_url = Column(Text)
    purchase_date = Column(Date)
    warranty_duration = Column(Integer)  # months
    warranty_expiry = Column(Date)
    warranty_terms = Column(Text)
    status = Column(String(20), nullable=False, default="active")
    service_center_name = Column(String(255))
    service_center_address = Column(String(500))
    service_center_phone = Column(String(50))
    service_center_hours = Column(String(255))
    attachments = Column(Text)  # JSON list of URLs
    tags = Column(Text)

    __table_args__ = (
        Index("idx_devices_user_deleted", "user_id", "is_deleted"),
        Index("idx_devices_user_updated", "user_id", "updated_at"),
        Index("idx_devices_receipt", "receipt_id"),
    )
