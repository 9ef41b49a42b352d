"""Disk-backed key-value cache with TTL expiry and LRU purge.

Entries live in a single SQLite table. Reads filter out expired rows, a
background sweep deletes them, and when SQLite reports the database is full a
write purges the least recently used fraction of entries and retries once.
"""

import asyncio
import math
import time
from datetime import timedelta
from typing import Optional, Union

import pydantic

from sqlalchemy.exc import SQLAlchemyError

from litecache.core.clock import Clock, SystemClock, timestamp
from litecache.core.config import CacheSettings
from litecache.core.database import Database
from litecache.core.exceptions import (
    CacheClosedError,
    PurgeTimeoutError,
    StorageFullError,
    ValidationError,
    storage_error,
)
from litecache.core.logging import configure_logging, get_logger, log_cache_operation, log_purge
from litecache.core.maintenance import MaintenanceService
from litecache.core.queries import CacheQueries
from litecache.services.scheduler import CronScheduler

TTL = Union[int, float, timedelta]


def ttl_seconds(ttl: TTL) -> float:
    """Normalize a TTL to positive seconds."""
    if isinstance(ttl, timedelta):
        seconds = ttl.total_seconds()
    elif isinstance(ttl, (int, float)) and not isinstance(ttl, bool):
        seconds = float(ttl)
    else:
        raise ValidationError(f"ttl must be a timedelta or seconds, got {type(ttl).__name__}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValidationError(f"ttl must be positive and finite, got {seconds}s")
    return seconds


def validate_fraction(fraction: float) -> float:
    if isinstance(fraction, bool) or not isinstance(fraction, (int, float)):
        raise ValidationError(f"invalid purge fraction: {fraction!r}")
    if not 0 <= fraction <= 1:
        raise ValidationError(f"invalid purge fraction: {fraction}")
    return float(fraction)


class Cache:
    """Async key-value cache over one SQLite file.

    Use Cache.open() to build one; it starts the database and the background
    expiry sweep. Close it with close(), or destroy() to also delete the file.
    """

    def __init__(
        self,
        settings: CacheSettings,
        database: Database,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.database = database
        self.clock: Clock = clock or SystemClock(settings.tzinfo)
        self.logger = get_logger(__name__, cache=settings.name)
        self.maintenance: Optional[MaintenanceService] = None
        self._purge_lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def open(
        cls,
        settings: Optional[CacheSettings] = None,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[CronScheduler] = None,
        **overrides,
    ) -> "Cache":
        """Open (creating if needed) a cache and start its maintenance.

        Args:
            settings: Full settings; defaults and LITECACHE_* env vars apply if omitted
            clock: Time source, the wall clock in the settings timezone by default
            scheduler: Scheduler for the expiry sweep, a new CronScheduler by default
            **overrides: Individual settings fields, applied on top of `settings`
        """
        try:
            if settings is None:
                settings = CacheSettings(**overrides)
            elif overrides:
                settings = CacheSettings(**{**settings.model_dump(), **overrides})
        except pydantic.ValidationError as e:
            raise ValidationError(f"invalid cache settings: {e}") from e

        if settings.configure_logging:
            configure_logging(settings)

        database = Database(settings)
        await database.startup()

        cache = cls(settings, database, clock=clock)
        try:
            cache.maintenance = MaintenanceService(
                scheduler or CronScheduler(settings.tzinfo),
                cache.reclaim_expired,
                settings.sync_interval,
            )
            await cache.maintenance.start()
        except BaseException:
            await database.shutdown()
            raise

        cache.logger.info(
            "Cache opened",
            path=str(database.path),
            sync_interval=settings.sync_interval,
            purge_percent=settings.purge_percent,
        )
        return cache

    async def __aenter__(self) -> "Cache":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise CacheClosedError(operation)

    # ========================================================================
    # Foreground operations
    # ========================================================================

    async def set(self, key: str, value: bytes, ttl: TTL) -> None:
        """Store a value for `ttl`, replacing any existing entry.

        When the database is full, purges settings.purge_percent of the least
        recently used entries and retries exactly once.
        """
        self._ensure_open("setting key")
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise ValidationError(f"value must be bytes, got {type(value).__name__}")
        seconds = ttl_seconds(ttl)
        value = bytes(value)

        try:
            await self._upsert(key, value, seconds)
            log_cache_operation(self.logger, "set", key, ttl=seconds)
            return
        except StorageFullError as e:
            self.logger.warning("Storage full, purging before retry", key=key, error=str(e))

        await self.purge(self.settings.purge_percent)
        await self._upsert(key, value, seconds)
        log_cache_operation(self.logger, "set", key, ttl=seconds, retried=True)

    async def _upsert(self, key: str, value: bytes, seconds: float) -> None:
        now = timestamp(self.clock)
        try:
            async with self.database.get_session() as session:
                await CacheQueries(session).upsert(key, value, now + seconds, now)
                await session.commit()
        except SQLAlchemyError as e:
            raise storage_error("setting key", e) from e

    async def get(self, key: str) -> Optional[bytes]:
        """Value for `key`, or None if it is missing or expired."""
        self._ensure_open("getting key")
        now = timestamp(self.clock)
        try:
            async with self.database.get_session() as session:
                value = await CacheQueries(session).get_value(key, now)
        except SQLAlchemyError as e:
            raise storage_error("getting key", e) from e

        if value is None:
            log_cache_operation(self.logger, "get", key, hit=False)
            return None

        log_cache_operation(self.logger, "get", key, hit=True)
        await self._touch(key)
        return value

    async def _touch(self, key: str) -> None:
        # Bookkeeping only: the read already succeeded
        try:
            async with self.database.get_session() as session:
                await CacheQueries(session).touch(key, timestamp(self.clock))
                await session.commit()
        except SQLAlchemyError as e:
            self.logger.error("Failed to update last accessed time", key=key, error=str(e))

    async def exists(self, key: str) -> bool:
        """Check if key exists and is not expired, without touching it."""
        self._ensure_open("checking key")
        try:
            async with self.database.get_session() as session:
                return await CacheQueries(session).exists(key, timestamp(self.clock))
        except SQLAlchemyError as e:
            raise storage_error("checking key", e) from e

    async def delete(self, key: str) -> None:
        """Delete `key`. Deleting a missing key is not an error."""
        self._ensure_open("deleting key")
        try:
            async with self.database.get_session() as session:
                deleted = await CacheQueries(session).delete_key(key)
                await session.commit()
        except SQLAlchemyError as e:
            raise storage_error("deleting key", e) from e
        log_cache_operation(self.logger, "delete", key, deleted=deleted)

    async def count(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        self._ensure_open("counting entries")
        try:
            async with self.database.get_session() as session:
                return await CacheQueries(session).count()
        except SQLAlchemyError as e:
            raise storage_error("counting entries", e) from e

    # ========================================================================
    # Eviction
    # ========================================================================

    async def purge(self, fraction: float) -> int:
        """Delete the least recently used `fraction` of entries and vacuum.

        Returns the number of deleted entries. Runs under the purge timeout;
        on timeout the transaction is rolled back.
        """
        fraction = validate_fraction(fraction)
        self._ensure_open("purging entries")

        async with self._purge_lock:
            start = time.time()
            try:
                deleted = await asyncio.wait_for(
                    self._purge(fraction), timeout=self.settings.purge_timeout
                )
            except asyncio.TimeoutError as e:
                self.logger.error("Purge timed out", timeout=self.settings.purge_timeout)
                raise PurgeTimeoutError(self.settings.purge_timeout) from e

        log_purge(self.logger, fraction, deleted, start, time.time())
        return deleted

    async def _purge(self, fraction: float) -> int:
        try:
            async with self.database.transaction() as session:
                queries = CacheQueries(session)
                total = await queries.count()
                to_delete = int(total * fraction)
                if to_delete == 0:
                    return 0
                deleted = await queries.delete_oldest(to_delete)
        except SQLAlchemyError as e:
            raise storage_error("purging entries", e) from e

        try:
            await self.database.vacuum()
        except Exception as e:
            raise storage_error("vacuuming database", e) from e
        return deleted

    async def reclaim_expired(self) -> int:
        """Delete every entry whose expiry has passed. Returns the count."""
        self._ensure_open("reclaiming expired entries")
        try:
            async with self.database.get_session() as session:
                deleted = await CacheQueries(session).delete_expired(timestamp(self.clock))
                await session.commit()
        except SQLAlchemyError as e:
            raise storage_error("reclaiming expired entries", e) from e
        return deleted

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def close(self) -> None:
        """Stop maintenance and close the database. Data is kept."""
        if self._closed:
            return
        self._closed = True
        if self.maintenance:
            await self.maintenance.stop()
        await self.database.shutdown()
        self.logger.info("Cache closed", path=str(self.database.path))

    async def destroy(self) -> None:
        """Stop maintenance, close the database and delete its file.

        WARNING: irreversible, all cached data is lost.
        """
        self._closed = True
        if self.maintenance:
            await self.maintenance.stop()
        await self.database.destroy()


open_cache = Cache.open
