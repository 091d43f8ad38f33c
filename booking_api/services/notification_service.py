"""Outbound email notifications and their asynchronous dispatch."""

import asyncio
import smtplib
import ssl
from collections.abc import Awaitable, Callable
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_api.core.clock import Clock, utc_now
from booking_api.core.exceptions import NotificationDeliveryFailure
from booking_api.schemas.appointments import AppointmentResponse
from booking_api.services import email_templates
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.calendar_service import generate_ics, ics_filename
from booking_api.services.email_templates import EmailMessage

logger = structlog.get_logger(__name__)

Attachment = tuple[str, str, bytes]


class EmailNotifier:
    """Sends appointment emails over SMTP."""

    def __init__(self, settings: Any, clock: Clock = utc_now):
        """
        Initialize notifier.

        Args:
            settings: Application settings (SMTP and business identity)
            clock: Time source used for calendar stamps
        """
        self.settings = settings
        self.clock = clock

    def _build_mime(
        self,
        to: str,
        message: EmailMessage,
        attachments: list[Attachment],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = message.subject
        msg["From"] = self.settings.email_from
        msg["To"] = to

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.text, "plain", "utf-8"))
        body.attach(MIMEText(message.html, "html", "utf-8"))
        msg.attach(body)

        for filename, content_type, payload in attachments:
            maintype, subtype = content_type.split("/", 1)
            part = MIMEBase(maintype, subtype)
            part.set_payload(payload)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", f'attachment; filename="{filename}"')
            msg.attach(part)

        return msg

    def _deliver(self, to: str, msg: MIMEMultipart) -> None:
        """Blocking SMTP delivery; run in a worker thread."""
        host = self.settings.smtp_host
        port = self.settings.smtp_port
        context = ssl.create_default_context()

        if port == 465:
            server = smtplib.SMTP_SSL(host, port, context=context, timeout=30)
        else:
            server = smtplib.SMTP(host, port, timeout=30)
            if self.settings.smtp_use_tls:
                server.starttls(context=context)

        try:
            if self.settings.smtp_username:
                server.login(self.settings.smtp_username, self.settings.smtp_password)
            server.sendmail(self.settings.email_from, [to], msg.as_string())
        finally:
            server.quit()

    async def _send(
        self,
        kind: str,
        to: str,
        message: EmailMessage,
        attachments: list[Attachment] | None = None,
    ) -> None:
        """
        Send one email.

        Raises:
            NotificationDeliveryFailure: If SMTP is not configured or the
                SMTP exchange fails
        """
        if not self.settings.smtp_host:
            logger.info("email_not_sent_smtp_disabled", kind=kind, to=to, subject=message.subject)
            raise NotificationDeliveryFailure(kind, to, "SMTP is not configured")

        msg = self._build_mime(to, message, attachments or [])
        try:
            await asyncio.to_thread(self._deliver, to, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryFailure(kind, to, str(e)) from e

        logger.info("email_sent", kind=kind, to=to, subject=message.subject)

    async def _send_admin(self, kind: str, message: EmailMessage) -> None:
        if not self.settings.admin_email:
            logger.warning("admin_email_not_configured", kind=kind)
            raise NotificationDeliveryFailure(kind, None, "ADMIN_EMAIL is not configured")
        await self._send(kind, self.settings.admin_email, message)

    async def send_confirmation(self, appointment: AppointmentResponse) -> None:
        """Booking confirmation with a calendar invitation attached."""
        ics = generate_ics(appointment, appointment.service_name or "", self.settings, self.clock())
        await self._send(
            "confirmation",
            appointment.client.email,
            email_templates.confirmation(appointment, self.settings),
            [(ics_filename(appointment), "text/calendar", ics.encode("utf-8"))],
        )

    async def send_reminder(self, appointment: AppointmentResponse) -> None:
        """Day-before reminder."""
        await self._send(
            "reminder_24h",
            appointment.client.email,
            email_templates.reminder(appointment, self.settings),
        )

    async def send_follow_up(self, appointment: AppointmentResponse) -> None:
        """Thank-you after a completed appointment."""
        await self._send(
            "follow_up",
            appointment.client.email,
            email_templates.follow_up(appointment, self.settings),
        )

    async def send_daily_summary(self, appointments: list[AppointmentResponse]) -> None:
        """Digest of today's appointments for the admin."""
        day = appointments[0].appointment_date
        await self._send_admin(
            "daily_summary", email_templates.daily_summary(appointments, day, self.settings)
        )

    async def send_admin_new_appointment_alert(self, appointment: AppointmentResponse) -> None:
        """Notify the admin of a new booking."""
        await self._send_admin(
            "admin_new_appointment",
            email_templates.admin_new_appointment(appointment, self.settings),
        )

    async def send_cancellation_alert(self, appointment: AppointmentResponse) -> None:
        """Notify the admin of a cancellation."""
        await self._send_admin(
            "cancellation_alert",
            email_templates.cancellation_alert(appointment, self.settings),
        )

    async def send_status_confirmed(self, appointment: AppointmentResponse) -> None:
        """Tell the client the admin confirmed the booking."""
        await self._send(
            "status_confirmed",
            appointment.client.email,
            email_templates.status_confirmed(appointment, self.settings),
        )

    async def send_cancelled(self, appointment: AppointmentResponse) -> None:
        """Tell the client the appointment was cancelled."""
        await self._send(
            "cancelled",
            appointment.client.email,
            email_templates.cancelled(appointment, self.settings),
        )

    async def send_rescheduled(self, appointment: AppointmentResponse) -> None:
        """Tell the client the appointment moved."""
        await self._send(
            "rescheduled",
            appointment.client.email,
            email_templates.rescheduled(appointment, self.settings),
        )


class NotificationDispatcher:
    """
    Runs notification sends as background tasks.

    Callers never wait for delivery; a failed send is logged and dropped.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Any,
        clock: Clock = utc_now,
    ):
        """
        Initialize dispatcher.

        Args:
            session_factory: Opens sessions for post-delivery flag updates
            settings: Application settings
            clock: Time source for sent-at stamps
        """
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock
        self._tasks: set[asyncio.Task[None]] = set()

    def dispatch(
        self,
        name: str,
        appointment_id: UUID,
        send: Callable[[], Awaitable[None]],
        flag: str | None = None,
    ) -> asyncio.Task[None]:
        """
        Schedule a send and return immediately.

        Args:
            name: Notification name for logs
            appointment_id: Appointment the notification is about
            send: Coroutine function performing the delivery
            flag: Notification kind to mark as sent once delivery succeeds
        """
        task = asyncio.create_task(self._run(name, appointment_id, send, flag))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        name: str,
        appointment_id: UUID,
        send: Callable[[], Awaitable[None]],
        flag: str | None,
    ) -> None:
        try:
            await send()
        except Exception as e:
            logger.error(
                "notification_failed",
                notification=name,
                appointment_id=str(appointment_id),
                error=str(e),
            )
            return

        if flag is None:
            return

        try:
            async with self.session_factory() as db:
                store = AppointmentService(
                    db, self.settings.business_hours, self.settings.tz, self.clock
                )
                await store.mark_notification_sent(appointment_id, flag)
        except Exception as e:
            logger.error(
                "notification_flag_update_failed",
                notification=name,
                appointment_id=str(appointment_id),
                flag=flag,
                error=str(e),
            )

    @property
    def pending(self) -> int:
        """Number of sends still in flight."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight send to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
