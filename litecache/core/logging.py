"""Structured logging for cache operations."""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

import structlog

if TYPE_CHECKING:
    from litecache.core.config import CacheSettings

# Driver and scheduler loggers that are noisy at INFO
QUIET_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "sqlalchemy.pool", "apscheduler")


def _handlers(settings: "CacheSettings", level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _renderer(settings: "CacheSettings"):
    if settings.log_format == "json":
        return [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ], structlog.processors.JSONRenderer()
    return [
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    ], structlog.dev.ConsoleRenderer(
        colors=False,
        pad_event=35,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(settings: "CacheSettings") -> None:
    """Route structlog through stdlib logging using the cache's log settings.

    Replaces any handlers already on the root logger.
    """
    level = getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        handlers=_handlers(settings, level),
        format="%(message)s",
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    leading, renderer = _renderer(settings)
    structlog.configure(
        processors=[
            *leading,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **context) -> structlog.BoundLogger:
    """Get a lazily configured logger, with `context` bound to every event.

    Cache instances bind their name here, so several caches in one process
    can be told apart.
    """
    return structlog.get_logger(name, **context)


def log_cache_operation(
    logger: structlog.BoundLogger,
    operation: str,
    key: str,
    *,
    hit: Optional[bool] = None,
    ttl: Optional[float] = None,
    retried: bool = False,
    deleted: Optional[int] = None,
) -> None:
    """Log a foreground cache operation at DEBUG.

    Only the fields that apply to `operation` are emitted: `hit` for reads,
    `ttl_seconds` and `retried` for writes, `deleted` for deletes.
    """
    fields = {"operation": operation, "cache_key": key}
    if hit is not None:
        fields["cache_hit"] = hit
    if ttl is not None:
        fields["ttl_seconds"] = ttl
    if retried:
        fields["retried_after_purge"] = True
    if deleted is not None:
        fields["deleted"] = deleted

    logger.debug("Cache operation", **fields)


def log_purge(logger: structlog.BoundLogger, fraction: float, deleted: int,
              start_time: float, end_time: float) -> None:
    """Log a completed purge with its duration."""
    logger.info(
        "Purge completed",
        fraction=fraction,
        deleted=deleted,
        execution_time_seconds=round(end_time - start_time, 4),
    )
