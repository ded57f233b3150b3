"""Database models for Furlong."""

from furlong.models.database import Base, init_db
from furlong.models.store_entry import StoreEntry

__all__ = [
    "Base",
    "init_db",
    "StoreEntry",
]
