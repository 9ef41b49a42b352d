"""Time source injected into the cache."""

from datetime import datetime, timezone, tzinfo
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current time in the cache timezone."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in a fixed timezone."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


def timestamp(clock: Clock) -> float:
    """Current time from the clock as Unix epoch seconds."""
    return clock.now().timestamp()
