"""Public appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status

from booking_api.core.exceptions import AuthorizationException, BadRequestException
from booking_api.dependencies import (
    AppointmentServiceDep,
    AppSettings,
    AvailabilityServiceDep,
    BookingServiceDep,
    ClockDep,
    DispatcherDep,
    NotifierDep,
)
from booking_api.schemas.appointments import (
    AppointmentCancelRequest,
    AvailableSlotsResponse,
    BookingConfirmation,
    BookingRequest,
    CancelResponse,
)
from booking_api.services.calendar_service import generate_ics, ics_filename

router = APIRouter()

BOOKING_SUCCESS_MESSAGE = (
    "Programarea a fost înregistrată cu succes! Vei primi un email de confirmare."
)


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get(
    "/available-slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="List slots for a date and service",
)
async def get_available_slots(
    availability: AvailabilityServiceDep,
    date_str: str = Query(..., alias="date", description="Date as YYYY-MM-DD"),
    service_id_str: str = Query(..., alias="service_id"),
) -> AvailableSlotsResponse:
    """
    Every candidate start time for the date, each flagged available or not.

    Args:
        availability: Availability service
        date_str: Requested date
        service_id_str: Service to book

    Returns:
        Slots in chronological order; empty with a message on closed days
    """
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        raise BadRequestException("Date must be in YYYY-MM-DD format") from None
    try:
        service_id = UUID(service_id_str)
    except ValueError:
        raise BadRequestException("Service id is not valid") from None

    return await availability.get_available_slots(day, service_id)


@router.post(
    "",
    response_model=BookingConfirmation,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: BookingRequest,
    request: Request,
    booking: BookingServiceDep,
) -> BookingConfirmation:
    """
    Book an appointment.

    Responds once the appointment is stored; confirmation emails are sent in
    the background.
    """
    appointment = await booking.create_appointment(
        data,
        user_agent=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    return BookingConfirmation(
        id=appointment.id,
        service=appointment.service_name or "",
        date=appointment.appointment_date,
        time=appointment.appointment_time,
        status=appointment.status,
        message=BOOKING_SUCCESS_MESSAGE,
    )


@router.post(
    "/{appointment_id}/cancel",
    response_model=CancelResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel an appointment as the client",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancelRequest,
    store: AppointmentServiceDep,
    notifier: NotifierDep,
    dispatcher: DispatcherDep,
) -> CancelResponse:
    """
    Cancel an upcoming appointment.

    The email must match the one used when booking.
    """
    appointment = await store.cancel_by_client(appointment_id, data.email, data.reason)

    dispatcher.dispatch(
        "cancelled", appointment.id, lambda: notifier.send_cancelled(appointment)
    )
    dispatcher.dispatch(
        "cancellation_alert",
        appointment.id,
        lambda: notifier.send_cancellation_alert(appointment),
    )
    return CancelResponse(success=True, message="Programarea a fost anulată cu succes.")


@router.get(
    "/{appointment_id}/export",
    status_code=status.HTTP_200_OK,
    summary="Download an appointment as an iCalendar file",
    response_class=Response,
)
async def export_appointment(
    appointment_id: UUID,
    store: AppointmentServiceDep,
    settings: AppSettings,
    clock: ClockDep,
    email: str | None = Query(None),
) -> Response:
    """Calendar invitation for an appointment."""
    appointment = await store.get_appointment(appointment_id)
    if email is not None and email.strip().lower() != appointment.client.email.lower():
        raise AuthorizationException("Email does not match this appointment")

    ics = generate_ics(appointment, appointment.service_name or "", settings, clock())
    return Response(
        content=ics,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{ics_filename(appointment)}"'
        },
    )
