"""Tests for the periodic safety-net scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.services import Scheduler


class TestScheduler:
    """Tests for Scheduler ticks and cancellation."""

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            Scheduler(AsyncMock(), interval=0)

    @pytest.mark.asyncio
    async def test_runs_job_periodically(self):
        job = AsyncMock()
        scheduler = Scheduler(job, interval=0.01)

        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert scheduler.ticks >= 2
        assert job.await_count == scheduler.ticks
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_first_run_waits_one_interval(self):
        job = AsyncMock()
        scheduler = Scheduler(job, interval=60)

        await scheduler.start()
        await asyncio.sleep(0)
        assert scheduler.is_running is True
        await scheduler.stop()

        job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_job_error_does_not_stop_loop(self):
        job = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = Scheduler(job, interval=0.01)

        await scheduler.start()
        await asyncio.sleep(0.1)
        still_running = scheduler.is_running
        await scheduler.stop()

        assert still_running is True
        assert job.await_count >= 2

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self):
        scheduler = Scheduler(AsyncMock(), interval=60)

        await scheduler.start()
        task = scheduler._task
        await scheduler.start()

        assert scheduler._task is task
        await scheduler.stop()
