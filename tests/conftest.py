"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict

import pytest
import pytest_asyncio

from litecache.core.cache import Cache
from litecache.core.config import CacheSettings

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = EPOCH):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, **kwargs) -> None:
        self.current += timedelta(seconds=seconds, **kwargs)


class FakeScheduler:
    """In-memory stand-in for CronScheduler whose jobs fire on demand."""

    def __init__(self):
        self.jobs: Dict[str, Callable] = {}
        self.expressions: Dict[str, str] = {}
        self.running = False
        self.start_calls = 0
        self.shutdown_calls = 0

    def start(self) -> None:
        self.start_calls += 1
        self.running = True

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.running = False

    def register_cron_job(self, job_id, cron_expression, callback, **kwargs):
        self.jobs[job_id] = callback
        self.expressions[job_id] = cron_expression
        return job_id

    def remove_cron_job(self, job_id) -> bool:
        return self.jobs.pop(job_id, None) is not None

    def active_task_count(self) -> int:
        return len(self.jobs)

    async def fire(self, callback: Callable = None) -> None:
        """Fire every registered job, or a specific callback even after removal."""
        callbacks = [callback] if callback else list(self.jobs.values())
        for cb in callbacks:
            await cb()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def settings(tmp_path):
    return CacheSettings(path=str(tmp_path), name="test")


@pytest_asyncio.fixture
async def cache(settings, clock, scheduler):
    cache = await Cache.open(settings, clock=clock, scheduler=scheduler)
    yield cache
    await cache.close()
