"""Client booking workflow."""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.clock import Clock, appointment_start, business_today, utc_now
from booking_api.core.exceptions import SlotUnavailableException, ValidationException
from booking_api.schemas.appointments import AppointmentResponse, BookingRequest
from booking_api.schemas.services import ServiceSnapshot
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.availability_service import CLOSED_DAY_MESSAGE, AvailabilityService
from booking_api.services.notification_service import EmailNotifier, NotificationDispatcher
from booking_api.services.validation import validate_booking_request

logger = structlog.get_logger(__name__)


class BookingService:
    """Creates appointments from client booking requests."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Any,
        notifier: EmailNotifier,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
    ):
        """
        Initialize service.

        Args:
            db: Database session
            settings: Application settings
            notifier: Notification sender
            dispatcher: Background channel for notification sends
            clock: Time source returning aware instants
        """
        self.settings = settings
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.clock = clock
        self.availability = AvailabilityService(
            db,
            settings.business_hours,
            settings.tz,
            settings.closed_weekdays,
            clock,
        )
        self.store = AppointmentService(db, settings.business_hours, settings.tz, clock)

    async def create_appointment(
        self,
        request: BookingRequest,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AppointmentResponse:
        """
        Validate and persist a booking, then queue its notifications.

        Args:
            request: Raw booking request
            user_agent: Client user agent, stored for audit
            ip_address: Client address, stored for audit

        Returns:
            Created appointment in status ``new``

        Raises:
            ValidationException: If any field is invalid, listing all of them
            ServiceUnavailableException: If the service is unknown or not bookable
            SlotUnavailableException: If the time is not free at write time
        """
        booking, errors = validate_booking_request(request)
        if booking is None:
            raise ValidationException([error.model_dump() for error in errors])

        service = await self.availability.catalog.get_bookable_service(booking.service_id)
        snapshot = ServiceSnapshot.from_service(service)

        tz = self.settings.tz
        if booking.appointment_date < business_today(self.clock, tz):
            raise ValidationException(
                [{"field": "appointment_date", "message": "Appointment date cannot be in the past"}]
            )
        start = appointment_start(booking.appointment_date, booking.appointment_time, tz)
        if start <= self.clock():
            raise ValidationException(
                [{"field": "appointment_time", "message": "Appointment time has already passed"}]
            )

        if self.availability.is_closed(booking.appointment_date):
            raise SlotUnavailableException(CLOSED_DAY_MESSAGE)

        slots = await self.availability.compute_available_slots(
            booking.appointment_date, booking.service_id
        )
        if not any(s.time == booking.appointment_time and s.available for s in slots):
            logger.info(
                "slot_not_available",
                service_id=str(booking.service_id),
                appointment_date=booking.appointment_date.isoformat(),
                appointment_time=booking.appointment_time,
            )
            raise SlotUnavailableException()

        client = booking.client
        appointment_id = await self.store.create(
            {
                "service_id": booking.service_id,
                "appointment_date": booking.appointment_date,
                "appointment_time": booking.appointment_time,
                "duration_minutes": snapshot.duration_minutes,
                "price": snapshot.price,
                "currency": snapshot.currency,
                "client_name": client.name,
                "client_email": client.email,
                "client_phone": client.phone,
                "client_age": client.age,
                "client_gender": client.gender.value if client.gender else None,
                "problem_description": client.problem_description,
                "referral_source": client.referral_source.value if client.referral_source else None,
                "referral_source_other": client.referral_source_other,
                "reminder_email": booking.reminder_email,
                "reminder_sms": booking.reminder_sms,
                "terms_accepted": True,
                "user_agent": user_agent[:500] if user_agent else None,
                "ip_address": ip_address,
            }
        )
        appointment = await self.store.get_appointment(appointment_id)

        logger.info(
            "appointment_created",
            appointment_id=str(appointment_id),
            service_id=str(booking.service_id),
            appointment_date=booking.appointment_date.isoformat(),
            appointment_time=booking.appointment_time,
        )

        self.dispatcher.dispatch(
            "confirmation",
            appointment_id,
            lambda: self.notifier.send_confirmation(appointment),
            flag="confirmation_email",
        )
        self.dispatcher.dispatch(
            "admin_new_appointment",
            appointment_id,
            lambda: self.notifier.send_admin_new_appointment_alert(appointment),
        )
        return appointment
