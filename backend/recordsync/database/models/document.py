from sqlalchemy import Column, String, Date, Integer, Text, Index

from ..base import Base
from ._mixins import OwnedRowMixin, TombstoneMixin


class DocumentModel(OwnedRowMixin, TombstoneMixin, Base):
    __tablename__ = "documents"
    __json_columns__ = ("tags",)

    type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    file_url = Column(Text)
    thumbnail_url = Column(Text)
    expiry_date = Column(Date)
    expiry_reminder_days = Column(Integer)
    notes = Column(Text)
    tags = Column(Text)

    __table_args__ = (
        Index("idx_documents_user_deleted", "user_id", "is_deleted"),
        Index("idx_documents_user_updated", "user_id", "updated_at"),
    )
