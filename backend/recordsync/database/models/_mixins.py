from sqlalchemy import Column, String, DateTime, Boolean


class OwnedRowMixin:
    """Columns shared by every synchronized table.

    ``id`` is generated on the client and stays stable across devices;
    ``user_id`` is fixed when the row is first inserted.
    """

    __json_columns__ = ()

    id = Column(String(128), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class TombstoneMixin:
    """Soft-delete flag. Tombstoned rows stay in the table but are never pulled."""

    is_deleted = Column(Boolean, nullable=False, default=False)
