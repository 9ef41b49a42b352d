"""Parameterized statements for the cache table.

A CacheQueries instance is bound to one session, so the same statements run
either in a short foreground session or inside a purge transaction.
"""

from typing import Optional

from sqlalchemy import delete, func, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from litecache.models.cache import CacheEntry


class CacheQueries:
    """One statement per cache operation, no business logic."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(self, key: str, value: bytes, expires_at: float, accessed_at: float) -> None:
        """Insert an entry, or replace value, expiry and access time of an existing one."""
        stmt = insert(CacheEntry).values(
            key=key,
            value=value,
            created_at=accessed_at,
            expires_at=expires_at,
            last_accessed_at=accessed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "value": stmt.excluded.value,
                "expires_at": stmt.excluded.expires_at,
                "last_accessed_at": stmt.excluded.last_accessed_at,
            },
        )
        await self.session.execute(stmt)

    async def get_value(self, key: str, now: float) -> Optional[bytes]:
        """Value of an unexpired entry, or None."""
        stmt = select(CacheEntry.value).where(
            CacheEntry.key == key,
            CacheEntry.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, key: str, now: float) -> bool:
        stmt = select(func.count()).select_from(CacheEntry).where(
            CacheEntry.key == key,
            CacheEntry.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def touch(self, key: str, accessed_at: float) -> None:
        stmt = (
            update(CacheEntry)
            .where(CacheEntry.key == key)
            .values(last_accessed_at=accessed_at)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def delete_key(self, key: str) -> int:
        stmt = (
            delete(CacheEntry)
            .where(CacheEntry.key == key)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def count(self) -> int:
        stmt = select(func.count()).select_from(CacheEntry)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_oldest(self, limit: int) -> int:
        """Delete the `limit` least recently accessed entries."""
        oldest = (
            select(CacheEntry.key)
            .order_by(CacheEntry.last_accessed_at.asc())
            .limit(limit)
        )
        stmt = (
            delete(CacheEntry)
            .where(CacheEntry.key.in_(oldest))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_expired(self, now: float) -> int:
        stmt = (
            delete(CacheEntry)
            .where(CacheEntry.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount
