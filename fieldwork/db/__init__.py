"""Database bootstrap utilities for the fieldwork service.

Exposes engine construction and the migrations runner that applies SQL files
from the local migrations/ directory. Route handlers never see SQLAlchemy
objects; they go through the document store gateway.
"""

from fieldwork.db.base import get_engine
from fieldwork.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "apply_migrations",
]
