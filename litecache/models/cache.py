"""SQLite-backed cache model for key-value storage with TTL.

All timestamps are Unix epoch seconds taken from the cache clock.
"""

import time
from sqlalchemy import Index
from sqlmodel import SQLModel, Field


class CacheEntry(SQLModel, table=True):
    """Key-value cache entry with absolute expiry and LRU bookkeeping."""

    __tablename__ = "cache"
    __table_args__ = (
        Index("idx_key_expires_at", "key", "expires_at"),
    )

    key: str = Field(primary_key=True)
    value: bytes
    created_at: float = Field(default_factory=time.time)
    expires_at: float = Field(index=True)
    last_accessed_at: float = Field(default_factory=time.time, index=True)
