"""Tests for job triggers and the scheduler loop."""

import asyncio
from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

import pytest

from booking_api.scheduler.jobs import JobResult
from booking_api.scheduler.runner import (
    AppointmentScheduler,
    DailyTrigger,
    IntervalTrigger,
    PeriodicJob,
)

BUCHAREST = ZoneInfo("Europe/Bucharest")


class TestDailyTrigger:
    """Next firing time for wall-clock schedules."""

    def test_later_today(self) -> None:
        trigger = DailyTrigger(time(18, 0), BUCHAREST)
        now = datetime(2024, 6, 7, 9, 0, tzinfo=UTC)  # 12:00 local

        assert trigger.next_fire(now) == datetime(2024, 6, 7, 15, 0, tzinfo=UTC)

    def test_already_passed_today(self) -> None:
        trigger = DailyTrigger(time(10, 0), BUCHAREST)
        now = datetime(2024, 6, 7, 9, 0, tzinfo=UTC)

        assert trigger.next_fire(now) == datetime(2024, 6, 8, 7, 0, tzinfo=UTC)

    def test_exactly_now_fires_tomorrow(self) -> None:
        trigger = DailyTrigger(time(12, 0), BUCHAREST)
        now = datetime(2024, 6, 7, 9, 0, tzinfo=UTC)

        assert trigger.next_fire(now) == datetime(2024, 6, 8, 9, 0, tzinfo=UTC)

    def test_follows_local_offset_in_winter(self) -> None:
        trigger = DailyTrigger(time(8, 0), BUCHAREST)
        now = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

        assert trigger.next_fire(now) == datetime(2024, 1, 16, 6, 0, tzinfo=UTC)


class TestIntervalTrigger:
    def test_next_fire(self) -> None:
        now = datetime(2024, 6, 7, 9, 0, tzinfo=UTC)
        assert IntervalTrigger(15).next_fire(now) == datetime(2024, 6, 7, 9, 15, tzinfo=UTC)

    def test_rejects_zero(self) -> None:
        with pytest.raises(ValueError):
            IntervalTrigger(0)


@pytest.mark.asyncio
class TestPeriodicJob:
    """The job loop sleeps until each firing and survives failures."""

    async def test_loop_runs_and_survives_errors(self, job_context) -> None:
        sleeps: list[float] = []
        runs: list[int] = []

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)
            if len(sleeps) > 2:
                await asyncio.Event().wait()

        async def flaky(ctx) -> JobResult:
            runs.append(len(runs))
            if len(runs) == 1:
                raise RuntimeError("boom")
            return JobResult(job="flaky", processed=1)

        job = PeriodicJob("flaky", IntervalTrigger(15), flaky, job_context, sleep=fake_sleep)
        job.start()
        for _ in range(10):
            await asyncio.sleep(0)

        assert job.is_running
        assert len(runs) == 2
        assert sleeps[0] == 900
        assert job.last_result is not None
        assert job.last_result.processed == 1

        await job.stop()
        assert not job.is_running

    async def test_stop_without_start(self, job_context) -> None:
        async def noop(ctx) -> JobResult:
            return JobResult(job="noop")

        job = PeriodicJob("noop", IntervalTrigger(5), noop, job_context)
        await job.stop()
        assert not job.is_running


@pytest.mark.asyncio
class TestAppointmentScheduler:
    """Wiring of the four jobs."""

    async def test_registers_every_job(self, job_context) -> None:
        scheduler = AppointmentScheduler(job_context)

        assert set(scheduler.jobs) == {
            "reminder_24h",
            "follow_up",
            "daily_summary",
            "no_show_sweep",
        }
        assert isinstance(scheduler.jobs["no_show_sweep"].trigger, IntervalTrigger)
        assert scheduler.jobs["reminder_24h"].trigger.at == time(10, 0)

    async def test_start_and_stop(self, job_context) -> None:
        scheduler = AppointmentScheduler(job_context)

        scheduler.start()
        assert scheduler.is_running

        await scheduler.stop()
        assert not scheduler.is_running

    async def test_run_job_now(self, job_context) -> None:
        scheduler = AppointmentScheduler(job_context)

        result = await scheduler.run_job("daily_summary")

        assert result.job == "daily_summary"
        assert result.skipped == 1
        assert scheduler.jobs["daily_summary"].last_result == result

    async def test_run_unknown_job(self, job_context) -> None:
        scheduler = AppointmentScheduler(job_context)

        with pytest.raises(KeyError):
            await scheduler.run_job("cleanup")
