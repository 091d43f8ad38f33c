"""Slot availability for a date and service."""

from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.clock import Clock, business_today, utc_now
from booking_api.core.exceptions import BadRequestException
from booking_api.schemas.appointments import AvailableSlotsResponse, SlotSchema
from booking_api.schemas.services import ServiceSnapshot
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.service_catalog import ServiceCatalog
from booking_api.services.slot_calculator import BusinessHours, Slot, compute_slots

logger = structlog.get_logger(__name__)

CLOSED_DAY_MESSAGE = "No appointments are available on this day"


class AvailabilityService:
    """Computes which start times can still be booked."""

    def __init__(
        self,
        db: AsyncSession,
        hours: BusinessHours,
        tz: Any,
        closed_weekdays: frozenset[int] = frozenset(),
        clock: Clock = utc_now,
    ):
        """
        Initialize service.

        Args:
            db: Database session
            hours: Business hours grid
            tz: Business timezone
            closed_weekdays: Python weekday numbers with no slots
            clock: Time source returning aware instants
        """
        self.hours = hours
        self.tz = tz
        self.closed_weekdays = closed_weekdays
        self.clock = clock
        self.catalog = ServiceCatalog(db)
        self.appointments = AppointmentService(db, hours, tz, clock)

    def is_closed(self, day: date) -> bool:
        """Whether the business does not operate on this date."""
        return day.weekday() in self.closed_weekdays

    async def compute_available_slots(self, day: date, service_id: UUID) -> list[Slot]:
        """
        Compute every candidate slot for a date and whether it is free.

        Does not apply the past-date or closed-day guards; callers do.

        Raises:
            ServiceNotFoundException: If the service id does not resolve
            ServiceNotBookableException: If the service cannot be booked
        """
        snapshot = ServiceSnapshot.from_service(
            await self.catalog.get_bookable_service(service_id)
        )
        booked = await self.appointments.booked_intervals(day)
        return compute_slots(self.hours, snapshot.duration_minutes, booked)

    async def get_available_slots(self, day: date, service_id: UUID) -> AvailableSlotsResponse:
        """
        Slot listing for the public booking form.

        Returns an empty list with a message on closed days.

        Raises:
            BadRequestException: If the date is before today
        """
        if day < business_today(self.clock, self.tz):
            raise BadRequestException("Cannot list slots for a past date")

        if self.is_closed(day):
            # Still reject unknown or closed services
            await self.catalog.get_bookable_service(service_id)
            return AvailableSlotsResponse(
                date=day, service_id=service_id, slots=[], message=CLOSED_DAY_MESSAGE
            )

        slots = await self.compute_available_slots(day, service_id)
        logger.debug(
            "slots_computed",
            date=day.isoformat(),
            service_id=str(service_id),
            total=len(slots),
            available=sum(1 for slot in slots if slot.available),
        )
        return AvailableSlotsResponse(
            date=day,
            service_id=service_id,
            slots=[SlotSchema(time=slot.time, available=slot.available) for slot in slots],
        )
