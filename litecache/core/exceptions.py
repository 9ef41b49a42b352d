"""Exceptions raised by the cache."""

from typing import Optional

# Driver messages that mean SQLite ran out of pages or disk
STORAGE_FULL_MESSAGES = ("database or disk is full", "disk is full")


class CacheError(Exception):
    """Base exception for cache errors."""


class ValidationError(CacheError, ValueError):
    """Raised when an argument or setting is rejected before any I/O."""


class StorageError(CacheError):
    """Raised when the underlying store fails."""

    def __init__(self, operation: str, message: str) -> None:
        """Initialize error.

        Args:
            operation: What the cache was doing, e.g. "setting key"
            message: Driver error message
        """
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class StorageFullError(StorageError):
    """Raised when the store has reached its maximum size."""


class PurgeTimeoutError(StorageError):
    """Raised when a purge runs past the configured purge timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__("purging entries", f"timed out after {timeout}s")


class CacheClosedError(StorageError):
    """Raised when an operation is attempted on a closed cache."""

    def __init__(self, operation: str) -> None:
        super().__init__(operation, "cache is closed")


class MaintenanceError(CacheError):
    """Failure inside a background maintenance tick. Logged, never raised to callers."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


def is_storage_full(error: BaseException) -> bool:
    """Check whether a driver error means the database or disk is full."""
    if error is None:
        return False
    text = str(error).lower()
    return any(message in text for message in STORAGE_FULL_MESSAGES)


def storage_error(operation: str, error: BaseException) -> StorageError:
    """Wrap a driver error, classifying storage-full conditions."""
    message = str(getattr(error, "orig", None) or error)
    if is_storage_full(error):
        return StorageFullError(operation, message)
    return StorageError(operation, message)
