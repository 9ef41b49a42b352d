"""Periodic expiry sweep for the cache.

The sweep is registered on creation and fires on the scheduler's timer while
the service is running. Failures are logged and never stop the schedule.
"""
from enum import Enum
from typing import Awaitable, Callable, Optional

from litecache.core.exceptions import MaintenanceError
from litecache.core.logging import get_logger
from litecache.services.scheduler import CronScheduler

logger = get_logger(__name__)

RECLAIM_JOB_ID = "reclaim-expired"


class MaintenanceState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class MaintenanceService:
    """Background expiry sweep with a Created -> Running -> Stopped lifecycle."""

    def __init__(
        self,
        scheduler: CronScheduler,
        reclaim: Callable[[], Awaitable[int]],
        interval: str,
        job_id: str = RECLAIM_JOB_ID,
    ):
        self.scheduler = scheduler
        self.reclaim = reclaim
        self.interval = interval
        self.job_id = job_id
        self.state = MaintenanceState.CREATED
        self.last_error: Optional[MaintenanceError] = None

        self.scheduler.register_cron_job(self.job_id, self.interval, self._tick)

    @property
    def running(self) -> bool:
        return self.state is MaintenanceState.RUNNING

    async def start(self) -> None:
        """Start firing the sweep on every tick."""
        if self.state is not MaintenanceState.CREATED:
            return
        self.scheduler.start()
        self.state = MaintenanceState.RUNNING
        logger.info("Maintenance started", interval=self.interval)

    async def stop(self) -> None:
        """Stop the sweep. Safe to call more than once."""
        if self.state is MaintenanceState.STOPPED:
            return
        self.state = MaintenanceState.STOPPED
        self.scheduler.remove_cron_job(self.job_id)
        self.scheduler.shutdown()
        logger.info("Maintenance stopped")

    def active_task_count(self) -> int:
        return self.scheduler.active_task_count()

    async def _tick(self) -> None:
        # The timer may still fire while stopping
        if not self.running:
            return
        try:
            await self.run_once()
        except Exception as e:
            self.last_error = MaintenanceError(f"reclaiming expired entries: {e}", cause=e)
            logger.error("Maintenance tick failed", error=str(self.last_error))

    async def run_once(self) -> int:
        """Run the sweep once and return how many entries were reclaimed."""
        count = await self.reclaim()
        if count:
            logger.info("Reclaimed expired cache entries", count=count)
        return count
