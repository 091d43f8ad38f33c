"""Tests for the scheduled appointment jobs."""

from datetime import date, time

import pytest

from booking_api.scheduler.jobs import (
    NO_SHOW_NOTES,
    mark_no_shows,
    send_24h_reminders,
    send_daily_summary,
    send_follow_up_emails,
)
from booking_api.schemas.appointments import AppointmentStatus
from booking_api.services.notification_service import EmailNotifier
from tests.conftest import NEXT_MONDAY

SUNDAY = date(2024, 6, 9)
THURSDAY = date(2024, 6, 6)
FRIDAY = date(2024, 6, 7)


@pytest.mark.asyncio
class TestReminderJob:
    """Day-before reminders."""

    @pytest.fixture(autouse=True)
    def _sunday_morning(self, clock, test_settings) -> None:
        clock.set_local(SUNDAY, time(10, 0), test_settings.tz)

    async def test_reminds_pending_appointments_tomorrow(
        self, job_context, make_appointment, notifier, store
    ) -> None:
        new = await make_appointment(at="09:00")
        confirmed = await make_appointment(at="11:00", status=AppointmentStatus.CONFIRMED)
        await make_appointment(at="13:00", status=AppointmentStatus.CANCELLED)
        await make_appointment(at="14:00", reminder_email=False)
        await make_appointment(day=date(2024, 6, 11), at="10:00")

        result = await send_24h_reminders(job_context)

        assert result.selected == 2
        assert result.processed == 2
        assert result.failed == 0
        assert notifier.sent_to("reminder") == [new.id, confirmed.id]

        stored = await store.get_appointment(new.id)
        assert stored.notifications_sent.reminder_24h.sent is True
        assert stored.notifications_sent.reminder_24h.sent_at is not None

    async def test_second_run_sends_nothing(self, job_context, make_appointment, notifier) -> None:
        await make_appointment()

        await send_24h_reminders(job_context)
        again = await send_24h_reminders(job_context)

        assert again.selected == 0
        assert len(notifier.sent_to("reminder")) == 1

    async def test_already_reminded_is_skipped(
        self, job_context, make_appointment, notifier, store
    ) -> None:
        appointment = await make_appointment()
        await store.mark_notification_sent(appointment.id, "reminder_24h")

        result = await send_24h_reminders(job_context)

        assert result.selected == 0
        assert notifier.sent == []

    async def test_one_failure_does_not_stop_the_rest(
        self, job_context, make_appointment, notifier, store
    ) -> None:
        failing = await make_appointment(at="09:00")
        ok = await make_appointment(at="11:00")
        notifier.fail_ids = {failing.id}

        result = await send_24h_reminders(job_context)

        assert result.processed == 1
        assert result.failed == 1
        assert result.failed_ids == [str(failing.id)]
        assert notifier.sent_to("reminder") == [ok.id]
        stored = await store.get_appointment(failing.id)
        assert stored.notifications_sent.reminder_24h.sent is False

        # The failed one is retried on the next run
        notifier.fail_ids = set()
        retry = await send_24h_reminders(job_context)
        assert retry.processed == 1
        assert notifier.sent_to("reminder") == [ok.id, failing.id]

    async def test_unconfigured_smtp_leaves_reminder_pending(
        self, job_context, make_appointment, store, test_settings, clock
    ) -> None:
        appointment = await make_appointment()
        job_context.notifier = EmailNotifier(test_settings, clock)

        result = await send_24h_reminders(job_context)

        assert result.processed == 0
        assert result.failed == 1
        stored = await store.get_appointment(appointment.id)
        assert stored.notifications_sent.reminder_24h.sent is False


@pytest.mark.asyncio
class TestFollowUpJob:
    """Thank-you emails the day after a completed appointment."""

    async def test_sends_for_completed_yesterday(
        self, job_context, make_appointment, notifier
    ) -> None:
        completed = await make_appointment(day=THURSDAY, status=AppointmentStatus.COMPLETED)
        await make_appointment(day=THURSDAY, at="12:00", status=AppointmentStatus.NO_SHOW)
        await make_appointment(day=THURSDAY, at="14:00", status=AppointmentStatus.CONFIRMED)
        await make_appointment(day=FRIDAY, at="14:00", status=AppointmentStatus.COMPLETED)

        result = await send_follow_up_emails(job_context)

        assert result.processed == 1
        assert notifier.sent_to("follow_up") == [completed.id]

    async def test_second_run_sends_nothing(self, job_context, make_appointment, notifier) -> None:
        await make_appointment(day=THURSDAY, status=AppointmentStatus.COMPLETED)

        await send_follow_up_emails(job_context)
        again = await send_follow_up_emails(job_context)

        assert again.selected == 0
        assert len(notifier.sent_to("follow_up")) == 1


@pytest.mark.asyncio
class TestDailySummaryJob:
    """Admin digest of today's appointments."""

    async def test_skipped_when_no_appointments(self, job_context, notifier) -> None:
        result = await send_daily_summary(job_context)

        assert result.skipped == 1
        assert notifier.sent == []

    async def test_includes_every_status(self, job_context, make_appointment, notifier) -> None:
        first = await make_appointment(day=FRIDAY, at="14:00")
        second = await make_appointment(
            day=FRIDAY, at="16:00", status=AppointmentStatus.CANCELLED
        )
        await make_appointment(day=NEXT_MONDAY)

        result = await send_daily_summary(job_context)

        assert result.processed == 1
        assert notifier.sent_to("daily_summary") == [[first.id, second.id]]

    async def test_delivery_failure_is_reported(
        self, job_context, make_appointment, notifier
    ) -> None:
        await make_appointment(day=FRIDAY, at="14:00")
        notifier.fail_kinds = {"daily_summary"}

        result = await send_daily_summary(job_context)

        assert result.failed == 1
        assert result.processed == 0


@pytest.mark.asyncio
class TestNoShowSweep:
    """Pending appointments past their grace period become no-shows."""

    async def test_marks_after_grace_period(
        self, job_context, make_appointment, clock, test_settings, store, notifier
    ) -> None:
        appointment = await make_appointment(at="10:00")

        # Ended 11:00, grace runs until 13:00
        clock.set_local(NEXT_MONDAY, time(12, 30), test_settings.tz)
        early = await mark_no_shows(job_context)
        assert early.selected == 0

        clock.set_local(NEXT_MONDAY, time(13, 1), test_settings.tz)
        result = await mark_no_shows(job_context)
        assert result.processed == 1

        stored = await store.get_appointment(appointment.id)
        assert stored.status == AppointmentStatus.NO_SHOW
        last = stored.status_history[-1]
        assert last.status == AppointmentStatus.NO_SHOW
        assert last.changed_by == "system"
        assert last.notes == NO_SHOW_NOTES
        assert stored.notifications_sent == appointment.notifications_sent
        assert notifier.sent == []
        assert await store.booked_intervals(NEXT_MONDAY) == []

    async def test_confirmed_and_earlier_days_are_swept(
        self, job_context, make_appointment
    ) -> None:
        await make_appointment(day=THURSDAY, status=AppointmentStatus.CONFIRMED)
        await make_appointment(day=THURSDAY, at="12:00")

        result = await mark_no_shows(job_context)

        assert result.processed == 2

    async def test_terminal_statuses_untouched(self, job_context, make_appointment, store) -> None:
        completed = await make_appointment(day=THURSDAY, status=AppointmentStatus.COMPLETED)
        cancelled = await make_appointment(
            day=THURSDAY, at="12:00", status=AppointmentStatus.CANCELLED
        )

        result = await mark_no_shows(job_context)

        assert result.selected == 0
        assert (await store.get_appointment(completed.id)).status == AppointmentStatus.COMPLETED
        assert (await store.get_appointment(cancelled.id)).status == AppointmentStatus.CANCELLED

    async def test_rerun_adds_no_history(self, job_context, make_appointment, store) -> None:
        appointment = await make_appointment(day=THURSDAY)

        await mark_no_shows(job_context)
        again = await mark_no_shows(job_context)

        assert again.selected == 0
        stored = await store.get_appointment(appointment.id)
        assert [entry.status for entry in stored.status_history] == [
            AppointmentStatus.NEW,
            AppointmentStatus.NO_SHOW,
        ]

    async def test_future_appointments_untouched(self, job_context, make_appointment) -> None:
        await make_appointment()

        result = await mark_no_shows(job_context)

        assert result.selected == 0
