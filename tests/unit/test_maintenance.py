"""Tests for the background expiry sweep lifecycle."""

import pytest

from litecache.core.exceptions import MaintenanceError
from litecache.core.maintenance import RECLAIM_JOB_ID, MaintenanceService, MaintenanceState


class Reclaimer:
    """Counts sweeps; fails when told to."""

    def __init__(self, result: int = 0):
        self.calls = 0
        self.result = result
        self.error = None

    async def __call__(self) -> int:
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def reclaim():
    return Reclaimer()


@pytest.fixture
def maintenance(scheduler, reclaim):
    return MaintenanceService(scheduler, reclaim, "*/1 * * * *")


class TestLifecycle:

    def test_created_registers_job(self, maintenance, scheduler):
        assert maintenance.state is MaintenanceState.CREATED
        assert scheduler.active_task_count() == 1
        assert scheduler.expressions[RECLAIM_JOB_ID] == "*/1 * * * *"

    @pytest.mark.asyncio
    async def test_tick_before_start_does_nothing(self, maintenance, scheduler, reclaim):
        await scheduler.fire()
        assert reclaim.calls == 0

    @pytest.mark.asyncio
    async def test_running_tick_reclaims(self, maintenance, scheduler, reclaim):
        await maintenance.start()

        assert maintenance.state is MaintenanceState.RUNNING
        assert scheduler.running

        await scheduler.fire()
        await scheduler.fire()
        assert reclaim.calls == 2

    @pytest.mark.asyncio
    async def test_start_twice_starts_scheduler_once(self, maintenance, scheduler):
        await maintenance.start()
        await maintenance.start()
        assert scheduler.start_calls == 1

    @pytest.mark.asyncio
    async def test_no_ticks_after_stop(self, maintenance, scheduler, reclaim):
        await maintenance.start()
        tick = scheduler.jobs[RECLAIM_JOB_ID]

        await maintenance.stop()
        # A timer that still fires internally must not reach the sweep
        await scheduler.fire(tick)

        assert reclaim.calls == 0
        assert maintenance.state is MaintenanceState.STOPPED
        assert maintenance.active_task_count() == 0
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, maintenance, scheduler):
        await maintenance.start()
        await maintenance.stop()
        await maintenance.stop()

        assert scheduler.shutdown_calls == 1

    @pytest.mark.asyncio
    async def test_stop_before_start(self, maintenance, scheduler):
        await maintenance.stop()

        assert maintenance.state is MaintenanceState.STOPPED
        assert scheduler.active_task_count() == 0

    @pytest.mark.asyncio
    async def test_cannot_restart_after_stop(self, maintenance, scheduler):
        await maintenance.start()
        await maintenance.stop()
        await maintenance.start()

        assert maintenance.state is MaintenanceState.STOPPED
        assert scheduler.start_calls == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_error_is_logged_not_raised(self, maintenance, scheduler, reclaim):
        reclaim.error = RuntimeError("database is locked")
        await maintenance.start()

        await scheduler.fire()

        assert isinstance(maintenance.last_error, MaintenanceError)
        assert "database is locked" in str(maintenance.last_error)
        assert maintenance.last_error.cause is reclaim.error

    @pytest.mark.asyncio
    async def test_schedule_survives_errors(self, maintenance, scheduler, reclaim):
        reclaim.error = RuntimeError("boom")
        await maintenance.start()

        await scheduler.fire()
        reclaim.error = None
        await scheduler.fire()

        assert reclaim.calls == 2
        assert maintenance.running

    @pytest.mark.asyncio
    async def test_run_once_returns_count(self, scheduler):
        maintenance = MaintenanceService(scheduler, Reclaimer(result=7), "*/1 * * * *")
        assert await maintenance.run_once() == 7
