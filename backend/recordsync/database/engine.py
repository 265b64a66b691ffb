"""SQLAlchemy engine and session factory for the remote store."""

import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import get_database_url, get_engine_kwargs

logger = logging.getLogger(__name__)

database_url = get_database_url(required=False)

if not database_url:
    logger.error(
        "No database configured (DATABASE_URL / POSTGRES_URL / POSTGRES_HOST). "
        "Sync endpoints will answer 503 until one is set."
    )
    engine = None
else:
    try:
        engine = create_engine(database_url, **get_engine_kwargs(database_url))
        logger.info("Database engine initialized successfully")
    except Exception as e:
        # Don't raise here - requests report 503 instead
        logger.error(f"Database engine initialization failed: {e}")
        engine = None

if engine is not None:
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
else:
    SessionLocal = None
