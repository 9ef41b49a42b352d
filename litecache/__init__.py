"""Embedded SQLite key-value cache with TTL expiry, LRU purge and background cleanup."""

from litecache.core.cache import Cache, open_cache
from litecache.core.clock import Clock, SystemClock
from litecache.core.config import (
    EVERY_10_MINUTES,
    EVERY_15_MINUTES,
    EVERY_30_MINUTES,
    EVERY_5_MINUTES,
    EVERY_HOUR,
    EVERY_MINUTE,
    CacheSettings,
)
from litecache.core.exceptions import (
    CacheClosedError,
    CacheError,
    MaintenanceError,
    PurgeTimeoutError,
    StorageError,
    StorageFullError,
    ValidationError,
)
from litecache.core.logging import configure_logging
from litecache.services.scheduler import CronScheduler

__version__ = "0.1.0"

__all__ = [
    "Cache",
    "open_cache",
    "CacheSettings",
    "Clock",
    "SystemClock",
    "CronScheduler",
    "configure_logging",
    "CacheError",
    "ValidationError",
    "StorageError",
    "StorageFullError",
    "PurgeTimeoutError",
    "CacheClosedError",
    "MaintenanceError",
    "EVERY_MINUTE",
    "EVERY_5_MINUTES",
    "EVERY_10_MINUTES",
    "EVERY_15_MINUTES",
    "EVERY_30_MINUTES",
    "EVERY_HOUR",
]
