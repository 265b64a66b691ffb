"""Database session management for FastAPI dependency injection."""

import logging
from typing import Generator
from sqlalchemy.orm import Session
from fastapi import HTTPException

from .engine import SessionLocal

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """Get a remote store session for FastAPI dependency injection.

    Yields:
        SQLAlchemy Session object

    Raises:
        HTTPException: 503 if no database is configured

    Example:
        ```python
        from fastapi import Depends
        from recordsync.database import get_db
        from sqlalchemy.orm import Session

        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Receipt).all()
        ```
    """
    if SessionLocal is None:
        raise HTTPException(
            status_code=503,
            detail="Database not configured. Set DATABASE_URL or POSTGRES_HOST.",
        )

    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
