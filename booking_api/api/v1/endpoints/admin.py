"""Admin appointment management endpoints."""

from datetime import UTC, date, datetime, time
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, Response, status

from booking_api.core.exceptions import NotFoundException
from booking_api.dependencies import (
    AppointmentServiceDep,
    CurrentAdmin,
    DispatcherDep,
    NotifierDep,
    SchedulerDep,
)
from booking_api.scheduler.jobs import JOBS, JobResult
from booking_api.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatistics,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    CancelledBy,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin")


@router.get(
    "/appointments",
    response_model=AppointmentListResponse,
    summary="List appointments (admin only)",
)
async def list_appointments(
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    service_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
) -> AppointmentListResponse:
    """
    List appointments ordered by date and time.

    Args:
        admin_id: Authenticated admin
        store: Appointment store
        status_filter: Filter by status
        service_id: Filter by service
        from_date: First appointment date to include
        to_date: Last appointment date to include
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        service_id=service_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await store.list_appointments(filters)


@router.get(
    "/appointments/stats",
    response_model=AppointmentStatistics,
    summary="Appointment statistics (admin only)",
)
async def get_statistics(
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
    from_date: date | None = Query(None, description="Created on or after"),
    to_date: date | None = Query(None, description="Created on or before"),
) -> AppointmentStatistics:
    """Totals by status and service, no-show and conversion rates, paid revenue."""
    return await store.get_statistics(
        from_date=datetime.combine(from_date, time.min, tzinfo=UTC) if from_date else None,
        to_date=datetime.combine(to_date, time.max, tzinfo=UTC) if to_date else None,
    )


@router.get(
    "/appointments/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Get appointment (admin only)",
)
async def get_appointment(
    appointment_id: UUID,
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
) -> AppointmentResponse:
    """Full appointment including status history and notification flags."""
    return await store.get_appointment(appointment_id)


@router.put(
    "/appointments/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Update appointment (admin only)",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
    notifier: NotifierDep,
    dispatcher: DispatcherDep,
) -> AppointmentResponse:
    """
    Edit notes, payment status, date or time.

    Moving the appointment checks the new time against other bookings and
    emails the client the new details.
    """
    appointment, rescheduled = await store.update_appointment(appointment_id, data)
    if rescheduled:
        dispatcher.dispatch(
            "rescheduled", appointment.id, lambda: notifier.send_rescheduled(appointment)
        )
    logger.info("appointment_updated", appointment_id=str(appointment_id), admin_id=admin_id)
    return appointment


@router.patch(
    "/appointments/{appointment_id}/status",
    response_model=AppointmentResponse,
    summary="Change appointment status (admin only)",
)
async def change_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
    notifier: NotifierDep,
    dispatcher: DispatcherDep,
) -> AppointmentResponse:
    """
    Set any status and record it in the history under the admin's id.

    The client is emailed when the appointment is confirmed or cancelled.
    """
    is_cancel = data.status == AppointmentStatus.CANCELLED
    appointment = await store.change_status(
        appointment_id,
        data.status,
        admin_id,
        data.notes,
        cancelled_by=CancelledBy.ADMIN if is_cancel else None,
    )

    if data.status == AppointmentStatus.CONFIRMED:
        dispatcher.dispatch(
            "status_confirmed",
            appointment.id,
            lambda: notifier.send_status_confirmed(appointment),
        )
    elif is_cancel:
        dispatcher.dispatch(
            "cancelled", appointment.id, lambda: notifier.send_cancelled(appointment)
        )
    return appointment


@router.delete(
    "/appointments/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment (admin only)",
)
async def delete_appointment(
    appointment_id: UUID,
    admin_id: CurrentAdmin,
    store: AppointmentServiceDep,
) -> Response:
    """Soft delete an appointment; its slot becomes bookable again."""
    await store.delete_appointment(appointment_id)
    logger.info("appointment_deleted", appointment_id=str(appointment_id), admin_id=admin_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/scheduler/jobs/{job_name}/run",
    response_model=JobResult,
    summary="Run a scheduled job now (admin only)",
)
async def run_job(
    job_name: str,
    admin_id: CurrentAdmin,
    scheduler: SchedulerDep,
) -> JobResult:
    """
    Run one of ``reminder_24h``, ``follow_up``, ``daily_summary`` or
    ``no_show_sweep`` immediately.
    """
    if job_name not in JOBS:
        raise NotFoundException(f"Unknown job: {job_name}")
    logger.info("job_run_requested", job=job_name, admin_id=admin_id)
    return await scheduler.run_job(job_name)
