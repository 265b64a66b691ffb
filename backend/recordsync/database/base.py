"""SQLAlchemy Base class for the remote store models.

Every synchronized entity table (receipts, devices, reminders, household
bills, documents, subscriptions, user settings) derives from this Base so
that a single ``Base.metadata`` drives both Alembic and ``init-db``.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for remote store SQLAlchemy models.

    Example:
        ```python
        from recordsync.database import Base
        from sqlalchemy import Column, String

        class MyModel(Base):
            __tablename__ = "my_table"
            id = Column(String, primary_key=True)
            user_id = Column(String, nullable=False)
        ```
    """
    pass
