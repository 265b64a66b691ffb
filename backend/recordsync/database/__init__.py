"""Remote store ORM layer.

Holds the authoritative copy of every synchronized entity, one table per
entity kind, always scoped by ``user_id``.
"""

from .base import Base
from .engine import engine, SessionLocal
from .session import get_db

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
