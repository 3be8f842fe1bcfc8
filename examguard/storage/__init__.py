"""Record store implementations"""

from .base import RecordStore
from .memory import InMemoryRecordStore


def create_store(db_url: str = "") -> RecordStore:
    """SQL store when a database URL is configured, in-memory otherwise"""
    if db_url:
        from .sql import SqlRecordStore
        return SqlRecordStore(db_url)
    return InMemoryRecordStore()


__all__ = ["RecordStore", "InMemoryRecordStore", "create_store"]
