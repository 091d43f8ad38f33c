"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.config import Settings, get_settings
from booking_api.core.clock import Clock, utc_now
from booking_api.core.exceptions import AuthorizationException, UnauthorizedException
from booking_api.core.security import ADMIN_ROLE, decode_access_token
from booking_api.database import get_db
from booking_api.scheduler.runner import AppointmentScheduler
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.availability_service import AvailabilityService
from booking_api.services.booking_service import BookingService
from booking_api.services.notification_service import EmailNotifier, NotificationDispatcher

# Security
security = HTTPBearer(auto_error=False)


def get_clock(request: Request) -> Clock:
    """Time source configured on the application."""
    return getattr(request.app.state, "clock", utc_now)


def get_notifier(request: Request) -> EmailNotifier:
    """Notification sender configured on the application."""
    return request.app.state.notifier


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Background notification channel configured on the application."""
    return request.app.state.dispatcher


def get_scheduler(request: Request) -> AppointmentScheduler:
    """Job scheduler configured on the application."""
    return request.app.state.scheduler


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """
    Validate an admin bearer token.

    Returns:
        Admin actor id from the ``sub`` claim

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
        AuthorizationException: If the token does not carry the admin role
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Could not validate credentials")

    actor_id = payload.get("sub")
    if not actor_id or not isinstance(actor_id, str):
        raise UnauthorizedException("Could not validate credentials")

    if payload.get("role") != ADMIN_ROLE:
        raise AuthorizationException("Admin access required")

    return actor_id


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
ClockDep = Annotated[Clock, Depends(get_clock)]
NotifierDep = Annotated[EmailNotifier, Depends(get_notifier)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
SchedulerDep = Annotated[AppointmentScheduler, Depends(get_scheduler)]
CurrentAdmin = Annotated[str, Depends(get_current_admin)]


def get_appointment_service(
    db: DatabaseSession,
    settings: AppSettings,
    clock: ClockDep,
) -> AppointmentService:
    """Appointment store bound to the request session."""
    return AppointmentService(db, settings.business_hours, settings.tz, clock)


def get_availability_service(
    db: DatabaseSession,
    settings: AppSettings,
    clock: ClockDep,
) -> AvailabilityService:
    """Slot availability bound to the request session."""
    return AvailabilityService(
        db, settings.business_hours, settings.tz, settings.closed_weekdays, clock
    )


def get_booking_service(
    db: DatabaseSession,
    settings: AppSettings,
    notifier: NotifierDep,
    dispatcher: DispatcherDep,
    clock: ClockDep,
) -> BookingService:
    """Booking workflow bound to the request session."""
    return BookingService(db, settings, notifier, dispatcher, clock)


AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
AvailabilityServiceDep = Annotated[AvailabilityService, Depends(get_availability_service)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
