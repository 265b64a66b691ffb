"""
Initialize the remote store tables
Deploy-time step (``recordsync init-db``); request handling never creates tables
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .database.base import Base
from .database.config import get_database_url, get_engine_kwargs
from .database import models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_sync_tables(engine: Optional[Engine] = None) -> None:
    """Create every synchronized table and index that does not exist yet (idempotent)"""
    if engine is None:
        database_url = get_database_url()
        engine = create_engine(database_url, **get_engine_kwargs(database_url))

    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info(f"Sync tables ensured: {', '.join(sorted(Base.metadata.tables))}")
