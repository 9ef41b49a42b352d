"""Async SQLite storage for the cache, on SQLModel and SQLAlchemy 2.0."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from litecache.core.config import CacheSettings
from litecache.core.exceptions import StorageError, storage_error
from litecache.core.logging import get_logger
from litecache.models.cache import CacheEntry  # noqa: F401  registers the cache table

# Files SQLite keeps next to the database in WAL mode
WAL_SUFFIXES = ("-wal", "-shm")


class Database:
    """Async database service owning the engine for one cache file."""

    def __init__(self, settings: CacheSettings):
        self.settings = settings
        self.path: Path = settings.database_path
        self.logger = get_logger(__name__, cache=settings.name)
        self.engine: Optional[AsyncEngine] = None
        self.async_session: Optional[async_sessionmaker] = None

    async def startup(self):
        """Create the engine, apply pragmas and create the cache table."""
        try:
            self.engine = create_async_engine(
                f"sqlite+aiosqlite:///{self.path}",
                echo=self.settings.database_echo,
                pool_size=self.settings.pool_size,
                max_overflow=self.settings.max_overflow,
            )
            self._install_listeners(self.engine)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            self.logger.info("Database initialized successfully", path=str(self.path))

        except Exception as e:
            self.logger.error("Database startup failed", path=str(self.path), error=str(e))
            if self.engine is not None:
                await self.engine.dispose()
                self.engine = None
            raise storage_error("setting up database", e) from e

    def _install_listeners(self, engine: AsyncEngine) -> None:
        settings = self.settings

        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            # Transactions are begun explicitly in on_begin below
            dbapi_connection.isolation_level = None

            cursor = dbapi_connection.cursor()
            try:
                # page_size only takes effect before the first table exists
                cursor.execute(f"PRAGMA page_size = {settings.page_size}")
                cursor.execute("PRAGMA journal_mode = WAL")
                cursor.execute("PRAGMA synchronous = NORMAL")
                if settings.cache_size:
                    cursor.execute(f"PRAGMA cache_size = {settings.cache_size_pages}")
                if settings.max_db_size:
                    cursor.execute(f"PRAGMA max_page_count = {settings.max_page_count}")
            finally:
                cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def on_begin(conn):
            mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
            conn.exec_driver_sql(f"BEGIN {mode}")

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            self.logger.info("Database connections closed", path=str(self.path))

    async def destroy(self):
        """Close connections and delete the database file.

        WARNING: irreversible, all cached data is lost.
        """
        await self.shutdown()
        try:
            self.path.unlink(missing_ok=True)
            for suffix in WAL_SUFFIXES:
                Path(f"{self.path}{suffix}").unlink(missing_ok=True)
        except OSError as e:
            raise StorageError("removing database file", str(e)) from e
        self.logger.info("Database file removed", path=str(self.path))

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session inside BEGIN IMMEDIATE; commits on success, rolls back on any error.

        IMMEDIATE takes the write lock up front so reads and writes inside the
        block see one snapshot.
        """
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            await session.connection(execution_options={"sqlite_begin": "IMMEDIATE"})
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise
            await session.commit()

    async def vacuum(self) -> None:
        """Rebuild the database file so freed pages return to the filesystem.

        SQLite refuses VACUUM inside a transaction, so this runs on the raw
        driver connection, which is in autocommit mode.
        """
        if not self.engine:
            raise RuntimeError("Database not initialized")

        async with self.engine.connect() as conn:
            raw = await conn.get_raw_connection()
            await raw.driver_connection.execute("VACUUM")

    async def is_healthy(self) -> bool:
        """Run a trivial query to check the connection."""
        if not self.engine:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            self.logger.warning("Database health check failed", error=str(e))
            return False
