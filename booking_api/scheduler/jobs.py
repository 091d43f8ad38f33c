"""
Scheduled appointment jobs.

Each job scans the appointment store and acts on every matching
appointment. A failure on one appointment is logged and the job moves on
to the next one. Notification flags and terminal statuses make every job
safe to run again within the same period.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_api.core.clock import Clock, appointment_end, business_today, utc_now
from booking_api.models.appointments import appointments
from booking_api.schemas.appointments import PENDING_STATUSES, AppointmentStatus
from booking_api.services.appointment_service import SYSTEM_ACTOR, AppointmentService
from booking_api.services.notification_service import EmailNotifier

logger = structlog.get_logger(__name__)

NO_SHOW_NOTES = "Auto-marked as no-show by system"


class JobResult(BaseModel):
    """Counters for one job run."""

    job: str
    selected: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    failed_ids: list[str] = Field(default_factory=list)

    def record_failure(self, appointment_id: Any) -> None:
        self.failed += 1
        self.failed_ids.append(str(appointment_id))


@dataclass
class JobContext:
    """Collaborators shared by every job."""

    session_factory: async_sessionmaker[AsyncSession]
    notifier: EmailNotifier
    settings: Any
    clock: Clock = utc_now

    def store(self, db: AsyncSession) -> AppointmentService:
        return AppointmentService(
            db, self.settings.business_hours, self.settings.tz, self.clock
        )

    def today(self) -> date:
        return business_today(self.clock, self.settings.tz)


async def send_24h_reminders(ctx: JobContext) -> JobResult:
    """
    Email a reminder for every pending appointment tomorrow.

    Only clients who opted into email reminders and have not been
    reminded yet are selected.
    """
    result = JobResult(job="reminder_24h")
    tomorrow = ctx.today() + timedelta(days=1)

    async with ctx.session_factory() as db:
        store = ctx.store(db)
        due = await store.find_appointments(
            date_from=tomorrow,
            date_to=tomorrow,
            statuses=PENDING_STATUSES,
            conditions=[
                appointments.c.reminder_24h_sent.is_(False),
                appointments.c.reminder_email.is_(True),
            ],
        )
        result.selected = len(due)

        for appointment in due:
            try:
                await ctx.notifier.send_reminder(appointment)
                if await store.mark_notification_sent(appointment.id, "reminder_24h"):
                    result.processed += 1
                else:
                    result.skipped += 1
            except Exception as e:
                await db.rollback()
                result.record_failure(appointment.id)
                logger.error(
                    "reminder_failed",
                    appointment_id=str(appointment.id),
                    error=str(e),
                )

    logger.info("reminder_job_completed", date=tomorrow.isoformat(), **result.model_dump())
    return result


async def send_follow_up_emails(ctx: JobContext) -> JobResult:
    """Thank clients whose appointment was completed yesterday."""
    result = JobResult(job="follow_up")
    yesterday = ctx.today() - timedelta(days=1)

    async with ctx.session_factory() as db:
        store = ctx.store(db)
        due = await store.find_appointments(
            date_from=yesterday,
            date_to=yesterday,
            statuses=[AppointmentStatus.COMPLETED],
            conditions=[appointments.c.follow_up_sent.is_(False)],
        )
        result.selected = len(due)

        for appointment in due:
            try:
                await ctx.notifier.send_follow_up(appointment)
                if await store.mark_notification_sent(appointment.id, "follow_up"):
                    result.processed += 1
                else:
                    result.skipped += 1
            except Exception as e:
                await db.rollback()
                result.record_failure(appointment.id)
                logger.error(
                    "follow_up_failed",
                    appointment_id=str(appointment.id),
                    error=str(e),
                )

    logger.info("follow_up_job_completed", date=yesterday.isoformat(), **result.model_dump())
    return result


async def send_daily_summary(ctx: JobContext) -> JobResult:
    """Send the admin one digest of today's appointments, if there are any."""
    result = JobResult(job="daily_summary")
    today = ctx.today()

    async with ctx.session_factory() as db:
        todays = await ctx.store(db).find_appointments(date_from=today, date_to=today)
    result.selected = len(todays)

    if not todays:
        result.skipped = 1
        logger.info("daily_summary_skipped", date=today.isoformat())
        return result

    try:
        await ctx.notifier.send_daily_summary(todays)
        result.processed = 1
    except Exception as e:
        result.failed = 1
        logger.error("daily_summary_failed", date=today.isoformat(), error=str(e))

    logger.info("daily_summary_job_completed", date=today.isoformat(), **result.model_dump())
    return result


async def mark_no_shows(ctx: JobContext) -> JobResult:
    """
    Move pending appointments that ended over the grace period ago to ``no_show``.

    Uses the regular status change path with the system actor, so history is
    recorded and the slot is released. An appointment whose status changed
    in the meantime is left alone.
    """
    result = JobResult(job="no_show_sweep")
    now = ctx.clock()
    tz = ctx.settings.tz
    grace = timedelta(minutes=ctx.settings.no_show_grace_minutes)

    async with ctx.session_factory() as db:
        store = ctx.store(db)
        candidates = await store.find_appointments(
            date_to=ctx.today(), statuses=PENDING_STATUSES
        )
        overdue = [
            a
            for a in candidates
            if appointment_end(
                a.appointment_date, a.appointment_time, a.snapshot.duration_minutes, tz
            )
            + grace
            < now
        ]
        result.selected = len(overdue)

        for appointment in overdue:
            try:
                updated = await store.change_status_from(
                    appointment.id,
                    PENDING_STATUSES,
                    AppointmentStatus.NO_SHOW,
                    SYSTEM_ACTOR,
                    NO_SHOW_NOTES,
                )
                if updated is None:
                    result.skipped += 1
                else:
                    result.processed += 1
            except Exception as e:
                await db.rollback()
                result.record_failure(appointment.id)
                logger.error(
                    "no_show_update_failed",
                    appointment_id=str(appointment.id),
                    error=str(e),
                )

    logger.info("no_show_sweep_completed", **result.model_dump())
    return result


JobFunc = Callable[[JobContext], Awaitable[JobResult]]

JOBS: dict[str, JobFunc] = {
    "reminder_24h": send_24h_reminders,
    "follow_up": send_follow_up_emails,
    "daily_summary": send_daily_summary,
    "no_show_sweep": mark_no_shows,
}
