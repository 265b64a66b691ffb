"""Remote store database configuration.

The connection URL is read from ``DATABASE_URL`` when it is set, which
allows SQLite for local development. Otherwise PostgreSQL settings are
read from ``POSTGRES_URL`` or the individual ``POSTGRES_*`` variables.
"""

import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def get_database_url(required: bool = True) -> Optional[str]:
    """Get the remote store connection URL.

    Args:
        required: Raise when nothing is configured instead of returning None

    Returns:
        SQLAlchemy-compatible URL or None

    Raises:
        ValueError: If no database configuration is present and ``required`` is set
    """
    # Option 1: explicit SQLAlchemy URL (any dialect)
    database_url = os.getenv("DATABASE_URL", "")
    if database_url:
        logger.info("Using database from DATABASE_URL")
        return database_url

    # Option 2: full PostgreSQL URL
    postgres_url = os.getenv("POSTGRES_URL", "")
    if postgres_url.startswith("postgresql://") or postgres_url.startswith("postgres://"):
        logger.info("Using PostgreSQL from POSTGRES_URL")
        return postgres_url.replace("postgres://", "postgresql://", 1)

    # Option 3: individual environment variables
    host = os.getenv("POSTGRES_HOST")
    if not host:
        if required:
            raise ValueError(
                "Database configuration missing. "
                "Set DATABASE_URL, POSTGRES_URL or POSTGRES_HOST."
            )
        return None

    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "recordsync")
    user = os.getenv("POSTGRES_USER", "recordsync")
    password = os.getenv("POSTGRES_PASSWORD", "recordsync_password")

    url = f"postgresql://{user}:{password}@{host}:{port}/{db}"
    logger.info(f"Using PostgreSQL: {user}@{host}:{port}/{db}")
    return url


def get_engine_kwargs(url: str) -> dict:
    """Get engine keyword arguments for the configured dialect.

    Args:
        url: Database URL the engine will be created for

    Returns:
        Dictionary of keyword arguments for create_engine()
    """
    kwargs = {
        "echo": os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true",
        "pool_pre_ping": True,
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
        kwargs["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    return kwargs
