"""Environment-driven cache configuration with Pydantic v2."""

from datetime import timezone, tzinfo
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from litecache.services.scheduler import build_cron_trigger

MB = 1024 * 1024

# Cron presets for the maintenance interval
EVERY_MINUTE = "*/1 * * * *"
EVERY_5_MINUTES = "*/5 * * * *"
EVERY_10_MINUTES = "*/10 * * * *"
EVERY_15_MINUTES = "*/15 * * * *"
EVERY_30_MINUTES = "*/30 * * * *"
EVERY_HOUR = "0 * * * *"


class CacheSettings(BaseSettings):
    """Cache settings, overridable through LITECACHE_* environment variables."""

    # Storage location
    path: str = Field(default="")
    name: str = Field(default="litecache", min_length=1)

    # Maintenance
    sync_interval: str = Field(default=EVERY_MINUTE)
    timezone: str = Field(default="UTC")

    # Purge on storage pressure
    purge_percent: float = Field(default=0.2, ge=0.0, le=1.0)
    purge_timeout: float = Field(default=30.0, gt=0)  # seconds

    # Storage sizing (bytes). Zero leaves the SQLite default in place.
    page_size: int = Field(default=4096)
    cache_size: int = Field(default=64 * MB, ge=0)
    max_db_size: int = Field(default=128 * MB, ge=0)

    # Connection pool
    pool_size: int = Field(default=5, ge=1, le=100)
    max_overflow: int = Field(default=10, ge=0, le=100)
    database_echo: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")
    log_file: Optional[str] = Field(default=None)
    configure_logging: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="LITECACHE_",
        case_sensitive=False,
        extra="forbid",
        frozen=True,
    )

    @field_validator("sync_interval")
    @classmethod
    def validate_sync_interval(cls, v):
        """Accept 5-field or 6-field cron expressions with in-range values."""
        if len(v.split()) not in (5, 6):
            raise ValueError(f"sync_interval must have 5 or 6 cron fields, got {v!r}")
        try:
            build_cron_trigger(v)
        except ValueError as e:
            raise ValueError(f"invalid sync_interval {v!r}: {e}") from e
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v):
        """SQLite page size must be a power of two between 512 and 65536."""
        if v < 512 or v > 65536 or v & (v - 1):
            raise ValueError(f"page_size must be a power of two in [512, 65536], got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return v

    @model_validator(mode="after")
    def validate_sizes(self):
        for field in ("cache_size", "max_db_size"):
            size = getattr(self, field)
            if size and size < self.page_size:
                raise ValueError(f"{field} ({size}) must be 0 or at least page_size ({self.page_size})")
        return self

    @property
    def tzinfo(self) -> tzinfo:
        if self.timezone == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)

    @property
    def database_path(self) -> Path:
        """Database file path; the parent directory is created if missing."""
        directory = Path(self.path) if self.path else Path.cwd()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{self.name}_cache.db"

    @property
    def cache_size_pages(self) -> int:
        return self.cache_size // self.page_size

    @property
    def max_page_count(self) -> int:
        return self.max_db_size // self.page_size
