"""Periodic execution of the appointment jobs."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta, tzinfo

import structlog

from booking_api.scheduler.jobs import (
    JobContext,
    JobFunc,
    JobResult,
    mark_no_shows,
    send_24h_reminders,
    send_daily_summary,
    send_follow_up_emails,
)

logger = structlog.get_logger(__name__)


class DailyTrigger:
    """Fires once a day at a wall-clock time in the business timezone."""

    def __init__(self, at: time, tz: tzinfo):
        self.at = at
        self.tz = tz

    def next_fire(self, now: datetime) -> datetime:
        """First firing instant strictly after ``now``."""
        local = now.astimezone(self.tz)
        candidate = datetime.combine(local.date(), self.at, tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=1), self.at, tzinfo=self.tz
            )
        return candidate

    def __repr__(self) -> str:
        return f"DailyTrigger({self.at.strftime('%H:%M')}, {self.tz})"


class IntervalTrigger:
    """Fires every fixed number of minutes."""

    def __init__(self, minutes: int):
        if minutes <= 0:
            raise ValueError("Interval must be positive")
        self.interval = timedelta(minutes=minutes)

    def next_fire(self, now: datetime) -> datetime:
        return now + self.interval

    def __repr__(self) -> str:
        return f"IntervalTrigger({int(self.interval.total_seconds() // 60)}m)"


Trigger = DailyTrigger | IntervalTrigger


class PeriodicJob:
    """One job running on its own trigger in its own task."""

    def __init__(
        self,
        name: str,
        trigger: Trigger,
        func: JobFunc,
        ctx: JobContext,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.trigger = trigger
        self.func = func
        self.ctx = ctx
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self.last_result: JobResult | None = None

    async def run_once(self) -> JobResult:
        """Run the job now."""
        self.last_result = await self.func(self.ctx)
        return self.last_result

    async def _loop(self) -> None:
        while True:
            now = self.ctx.clock()
            fire_at = self.trigger.next_fire(now)
            await self._sleep(max((fire_at - now).total_seconds(), 0))
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("scheduled_job_failed", job=self.name, error=str(e), exc_info=True)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name=f"job:{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()


class AppointmentScheduler:
    """Owns the four appointment jobs and their schedules."""

    def __init__(self, ctx: JobContext):
        """
        Build jobs from settings.

        Args:
            ctx: Collaborators passed to every job run
        """
        settings = ctx.settings
        tz = settings.tz
        self.ctx = ctx
        self.jobs: dict[str, PeriodicJob] = {
            job.name: job
            for job in (
                PeriodicJob(
                    "reminder_24h",
                    DailyTrigger(settings.reminder_job_time, tz),
                    send_24h_reminders,
                    ctx,
                ),
                PeriodicJob(
                    "follow_up",
                    DailyTrigger(settings.follow_up_job_time, tz),
                    send_follow_up_emails,
                    ctx,
                ),
                PeriodicJob(
                    "daily_summary",
                    DailyTrigger(settings.daily_summary_job_time, tz),
                    send_daily_summary,
                    ctx,
                ),
                PeriodicJob(
                    "no_show_sweep",
                    IntervalTrigger(settings.no_show_sweep_interval_minutes),
                    mark_no_shows,
                    ctx,
                ),
            )
        }

    def start(self) -> None:
        """Start every job loop."""
        for job in self.jobs.values():
            job.start()
        logger.info(
            "scheduler_started",
            jobs={name: repr(job.trigger) for name, job in self.jobs.items()},
        )

    async def stop(self) -> None:
        """Cancel every job loop."""
        for job in self.jobs.values():
            await job.stop()
        logger.info("scheduler_stopped")

    async def run_job(self, name: str) -> JobResult:
        """
        Run one job immediately, outside its schedule.

        Raises:
            KeyError: If no job has this name
        """
        job = self.jobs[name]
        logger.info("job_triggered_manually", job=name)
        return await job.run_once()

    @property
    def is_running(self) -> bool:
        return any(job.is_running for job in self.jobs.values())
