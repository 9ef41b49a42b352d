"""
Cron scheduler using APScheduler.
Runs the recurring maintenance jobs of one cache.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.base import JobLookupError
from datetime import tzinfo
from typing import Callable, Dict, Optional, Union

from litecache.core.logging import get_logger

logger = get_logger(__name__)


def build_cron_trigger(cron_expression: str, timezone: Union[str, tzinfo] = "UTC") -> CronTrigger:
    """
    Build a trigger from a cron expression.

    Args:
        cron_expression: 6-field cron expression (second minute hour day month weekday)
                        or 5-field (minute hour day month weekday)
        timezone: Timezone for schedule

    Returns:
        The CronTrigger
    """
    parts = cron_expression.split()

    if len(parts) >= 6:
        return CronTrigger(
            second=parts[0],
            minute=parts[1],
            hour=parts[2],
            day=parts[3],
            month=parts[4],
            day_of_week=parts[5],
            timezone=timezone
        )

    # 5-field format: minute hour day month weekday (default second=0)
    if len(parts) < 5:
        parts.extend(['*'] * (5 - len(parts)))
    return CronTrigger(
        second='0',
        minute=parts[0],
        hour=parts[1],
        day=parts[2],
        month=parts[3],
        day_of_week=parts[4],
        timezone=timezone
    )


class CronScheduler:
    """One AsyncIOScheduler per cache, so stopping a cache never touches another's jobs."""

    def __init__(self, timezone: Union[str, tzinfo] = "UTC"):
        self.timezone = timezone
        self._scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        # AsyncIOScheduler.running can lag behind shutdown() by a loop iteration
        self._started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        """Start the scheduler once. Needs a running event loop; no-op after shutdown."""
        if self._started or self._stopped:
            return
        self._scheduler.start()
        self._started = True
        logger.info("[Scheduler] Started")

    def shutdown(self) -> None:
        """Shutdown the scheduler without waiting for running jobs. Safe to call twice."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[Scheduler] Shutdown")
        self._stopped = True

    def register_cron_job(
        self,
        job_id: str,
        cron_expression: str,
        callback: Callable,
        **kwargs
    ) -> str:
        """
        Register a cron job with the scheduler.

        Args:
            job_id: Unique identifier for the job
            cron_expression: 5 or 6 field cron expression
            callback: Function or coroutine function to call when the job fires
            **kwargs: Additional arguments passed to the callback

        Returns:
            The job_id
        """
        trigger = build_cron_trigger(cron_expression, self.timezone)

        self._scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            kwargs=kwargs
        )

        logger.info("[Scheduler] Registered cron job", job_id=job_id, expression=cron_expression)
        return job_id

    def remove_cron_job(self, job_id: str) -> bool:
        """
        Remove a cron job from the scheduler.

        Returns:
            True if job was removed, False if not found
        """
        try:
            self._scheduler.remove_job(job_id)
            logger.info("[Scheduler] Removed cron job", job_id=job_id)
            return True
        except JobLookupError:
            logger.warning("[Scheduler] Job not found", job_id=job_id)
            return False

    def get_job_info(self, job_id: str) -> Optional[Dict]:
        """Get information about a scheduled job, or None if not found."""
        job = self._scheduler.get_job(job_id)
        if job:
            next_run_time = getattr(job, "next_run_time", None)
            return {
                "id": job.id,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger)
            }
        return None

    def active_task_count(self) -> int:
        """Number of registered jobs."""
        return len(self._scheduler.get_jobs())
