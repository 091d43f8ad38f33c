"""Appointment store and status lifecycle."""

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from booking_api.core.clock import Clock, appointment_start, ensure_utc, utc_now
from booking_api.core.exceptions import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    SlotUnavailableException,
)
from booking_api.models.appointments import (
    NOTIFICATION_KINDS,
    appointment_slot_claims,
    appointment_status_history,
    appointments,
)
from booking_api.models.services import services
from booking_api.schemas.appointments import (
    SLOT_RELEASING_STATUSES,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatistics,
    AppointmentStatus,
    AppointmentUpdate,
    CancelledBy,
    ClientInfo,
    NotificationFlag,
    NotificationsSent,
    ServiceStatistics,
    StatusCount,
    StatusHistoryEntry,
)
from booking_api.schemas.services import ServiceSnapshot
from booking_api.services.slot_calculator import (
    BookedInterval,
    BusinessHours,
    compute_slots,
    parse_time,
    slot_claim_keys,
)

logger = structlog.get_logger(__name__)

# Actor recorded for changes made by background jobs
SYSTEM_ACTOR = "system"


class AppointmentService:
    """Service for persisting appointments and applying status changes."""

    def __init__(
        self,
        db: AsyncSession,
        hours: BusinessHours,
        tz: Any,
        clock: Clock = utc_now,
    ):
        """
        Initialize service.

        Args:
            db: Database session
            hours: Business hours grid used for slot claims
            tz: Business timezone
            clock: Time source returning aware instants
        """
        self.db = db
        self.hours = hours
        self.tz = tz
        self.clock = clock

    def _now(self) -> datetime:
        return self.clock().astimezone(UTC)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select(self) -> Any:
        return (
            select(appointments, services.c.name.label("service_name"))
            .select_from(appointments.join(services, appointments.c.service_id == services.c.id))
            .where(appointments.c.deleted_at.is_(None))
        )

    async def _history(self, ids: list[UUID]) -> dict[UUID, list[StatusHistoryEntry]]:
        if not ids:
            return {}
        stmt = (
            select(appointment_status_history)
            .where(appointment_status_history.c.appointment_id.in_(ids))
            .order_by(appointment_status_history.c.id)
        )
        result = await self.db.execute(stmt)

        history: dict[UUID, list[StatusHistoryEntry]] = defaultdict(list)
        for row in result.fetchall():
            history[row.appointment_id].append(
                StatusHistoryEntry(
                    status=row.status,
                    changed_at=ensure_utc(row.changed_at),
                    changed_by=row.changed_by,
                    notes=row.notes or "",
                )
            )
        return history

    @staticmethod
    def _to_response(row: Any, history: list[StatusHistoryEntry]) -> AppointmentResponse:
        data = row._mapping
        return AppointmentResponse(
            id=data["id"],
            service_id=data["service_id"],
            service_name=data["service_name"],
            appointment_date=data["appointment_date"],
            appointment_time=data["appointment_time"],
            snapshot=ServiceSnapshot(
                duration_minutes=data["duration_minutes"],
                price=data["price"],
                currency=data["currency"],
            ),
            client=ClientInfo(
                name=data["client_name"],
                email=data["client_email"],
                phone=data["client_phone"],
                age=data["client_age"],
                gender=data["client_gender"],
                problem_description=data["problem_description"],
                referral_source=data["referral_source"],
                referral_source_other=data["referral_source_other"],
            ),
            status=data["status"],
            status_history=history,
            payment_status=data["payment_status"],
            reminder_email=data["reminder_email"],
            reminder_sms=data["reminder_sms"],
            notifications_sent=NotificationsSent(
                **{
                    kind: NotificationFlag(
                        sent=data[f"{kind}_sent"],
                        sent_at=ensure_utc(data[f"{kind}_sent_at"]),
                    )
                    for kind in NOTIFICATION_KINDS
                }
            ),
            terms_accepted=data["terms_accepted"],
            terms_accepted_at=ensure_utc(data["terms_accepted_at"]),
            internal_notes=data["internal_notes"],
            cancellation_reason=data["cancellation_reason"],
            cancelled_at=ensure_utc(data["cancelled_at"]),
            cancelled_by=data["cancelled_by"],
            created_at=ensure_utc(data["created_at"]),
            updated_at=ensure_utc(data["updated_at"]),
        )

    async def _to_responses(self, rows: list[Any]) -> list[AppointmentResponse]:
        history = await self._history([row.id for row in rows])
        return [self._to_response(row, history.get(row.id, [])) for row in rows]

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.db.execute(self._select().where(appointments.c.id == appointment_id))
        row = result.fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return (await self._to_responses([row]))[0]

    async def find_appointments(
        self,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        statuses: Iterable[AppointmentStatus] | None = None,
        service_id: UUID | None = None,
        conditions: Iterable[ColumnElement[bool]] = (),
    ) -> list[AppointmentResponse]:
        """
        Find appointments by date range (inclusive) and status set.

        Results are ordered by date then time.
        """
        where = [*self._filter_conditions(date_from, date_to, statuses, service_id), *conditions]
        stmt = self._select().where(*where).order_by(
            appointments.c.appointment_date, appointments.c.appointment_time
        )
        result = await self.db.execute(stmt)
        return await self._to_responses(result.fetchall())

    @staticmethod
    def _filter_conditions(
        date_from: date | None,
        date_to: date | None,
        statuses: Iterable[AppointmentStatus] | None,
        service_id: UUID | None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if date_from:
            conditions.append(appointments.c.appointment_date >= date_from)
        if date_to:
            conditions.append(appointments.c.appointment_date <= date_to)
        if statuses is not None:
            conditions.append(appointments.c.status.in_([s.value for s in statuses]))
        if service_id:
            conditions.append(appointments.c.service_id == service_id)
        return conditions

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        conditions = [
            appointments.c.deleted_at.is_(None),
            *self._filter_conditions(
                filters.from_date,
                filters.to_date,
                [filters.status] if filters.status else None,
                filters.service_id,
            ),
        ]

        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            self._select()
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_date, appointments.c.appointment_time)
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        items = await self._to_responses(result.fetchall())

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            total_pages=math.ceil(total / filters.page_size) if total else 0,
            items=items,
        )

    async def booked_intervals(
        self,
        appointment_date: date,
        exclude_id: UUID | None = None,
    ) -> list[BookedInterval]:
        """Intervals held on a date by appointments that still occupy their slot."""
        conditions = [
            appointments.c.appointment_date == appointment_date,
            appointments.c.status.not_in([s.value for s in SLOT_RELEASING_STATUSES]),
            appointments.c.deleted_at.is_(None),
        ]
        if exclude_id:
            conditions.append(appointments.c.id != exclude_id)

        stmt = (
            select(appointments.c.appointment_time, appointments.c.duration_minutes)
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_time)
        )
        result = await self.db.execute(stmt)
        return [
            BookedInterval.from_appointment(row.appointment_time, row.duration_minutes)
            for row in result.fetchall()
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _append_history(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        changed_at: datetime,
        actor_id: str | None,
        notes: str | None,
    ) -> None:
        await self.db.execute(
            insert(appointment_status_history).values(
                appointment_id=appointment_id,
                status=status.value,
                changed_at=changed_at,
                changed_by=actor_id,
                notes=notes or "",
            )
        )

    async def _claim_slot(
        self,
        appointment_id: UUID,
        appointment_date: date,
        appointment_time: str,
        duration_minutes: int,
    ) -> None:
        """
        Insert the grid-cell claims for an appointment.

        Must run inside the transaction that creates or reactivates the
        appointment. A unique violation means another booking holds an
        overlapping cell; the transaction is rolled back.

        Raises:
            SlotUnavailableException: If any cell is already claimed
        """
        keys = slot_claim_keys(self.hours, parse_time(appointment_time), duration_minutes)
        try:
            await self.db.execute(
                insert(appointment_slot_claims),
                [
                    {
                        "appointment_date": appointment_date,
                        "slot_time": key,
                        "appointment_id": appointment_id,
                    }
                    for key in keys
                ],
            )
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "slot_conflict",
                appointment_id=str(appointment_id),
                appointment_date=appointment_date.isoformat(),
                appointment_time=appointment_time,
            )
            raise SlotUnavailableException() from None

    async def _release_slot(self, appointment_id: UUID) -> None:
        await self.db.execute(
            delete(appointment_slot_claims).where(
                appointment_slot_claims.c.appointment_id == appointment_id
            )
        )

    async def create(self, values: dict[str, Any], actor_id: str | None = None) -> UUID:
        """
        Persist a new appointment in status ``new``.

        The appointment row, its first history entry and its slot claims are
        written in a single transaction.

        Args:
            values: Column values for the appointments table
            actor_id: Who created it (None for anonymous clients)

        Returns:
            New appointment id

        Raises:
            SlotUnavailableException: If a concurrent booking took the slot
        """
        now = self._now()
        appointment_id: UUID = values.get("id") or uuid4()
        row = {
            **values,
            "id": appointment_id,
            "status": AppointmentStatus.NEW.value,
            "created_at": now,
            "updated_at": now,
        }
        if row.get("terms_accepted") and not row.get("terms_accepted_at"):
            row["terms_accepted_at"] = now

        await self.db.execute(insert(appointments).values(**row))
        await self._append_history(
            appointment_id, AppointmentStatus.NEW, now, actor_id, "Appointment booked"
        )
        await self._claim_slot(
            appointment_id,
            row["appointment_date"],
            row["appointment_time"],
            row["duration_minutes"],
        )
        await self.db.commit()
        return appointment_id

    async def change_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
        actor_id: str | None,
        notes: str | None = None,
        *,
        cancelled_by: CancelledBy | None = None,
        cancellation_reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Apply a status change and append it to the history.

        Any status may be written; the status update, the history row and any
        slot claim changes commit together. Moving into ``cancelled`` or
        ``no_show`` frees the slot; moving back into an active status
        re-claims it.

        Args:
            appointment_id: Appointment ID
            new_status: Target status
            actor_id: Opaque actor id (admin id or ``SYSTEM_ACTOR``)
            notes: Free-form notes stored with the history entry
            cancelled_by: Recorded when cancelling
            cancellation_reason: Recorded when cancelling

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConflictException: If the status changed concurrently
            SlotUnavailableException: If reactivation collides with another booking
        """
        current = await self.get_appointment(appointment_id)
        updated = await self._apply_status(
            current,
            new_status,
            actor_id,
            notes,
            cancelled_by=cancelled_by,
            cancellation_reason=cancellation_reason,
        )
        if updated is None:
            raise ConflictException("Appointment was modified concurrently, please retry")
        return updated

    async def change_status_from(
        self,
        appointment_id: UUID,
        only_from: Iterable[AppointmentStatus],
        new_status: AppointmentStatus,
        actor_id: str | None,
        notes: str | None = None,
    ) -> AppointmentResponse | None:
        """
        Change the status only while it is still one of ``only_from``.

        Returns:
            Updated appointment, or None when the status did not match or
            changed concurrently; nothing is written in that case
        """
        current = await self.get_appointment(appointment_id)
        if current.status not in set(only_from):
            return None
        return await self._apply_status(current, new_status, actor_id, notes)

    async def _apply_status(
        self,
        current: AppointmentResponse,
        new_status: AppointmentStatus,
        actor_id: str | None,
        notes: str | None,
        *,
        cancelled_by: CancelledBy | None = None,
        cancellation_reason: str | None = None,
    ) -> AppointmentResponse | None:
        """Write the transition from ``current``; None if its status moved meanwhile."""
        appointment_id = current.id
        now = self._now()
        values: dict[str, Any] = {"status": new_status.value, "updated_at": now}
        if new_status == AppointmentStatus.CANCELLED:
            if current.cancelled_at is None:
                values["cancelled_at"] = now
            if cancelled_by is not None:
                values["cancelled_by"] = cancelled_by.value
            if cancellation_reason is not None:
                values["cancellation_reason"] = cancellation_reason

        # Conditional on the status we read so history never interleaves
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == current.status.value,
                    appointments.c.deleted_at.is_(None),
                )
            )
            .values(**values)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            return None

        await self._append_history(appointment_id, new_status, now, actor_id, notes)

        was_holding = current.status not in SLOT_RELEASING_STATUSES
        will_hold = new_status not in SLOT_RELEASING_STATUSES
        if was_holding and not will_hold:
            await self._release_slot(appointment_id)
        elif will_hold and not was_holding:
            await self._claim_slot(
                appointment_id,
                current.appointment_date,
                current.appointment_time,
                current.snapshot.duration_minutes,
            )

        await self.db.commit()

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=current.status.value,
            new_status=new_status.value,
            actor=actor_id,
        )
        return await self.get_appointment(appointment_id)

    async def cancel_by_client(
        self,
        appointment_id: UUID,
        email: str,
        reason: str | None,
    ) -> AppointmentResponse:
        """
        Cancel an appointment on behalf of the client who booked it.

        Raises:
            NotFoundException: If appointment not found
            AuthorizationException: If the email does not match, or the
                appointment has already started
            ConflictException: If it is already cancelled
        """
        appointment = await self.get_appointment(appointment_id)

        if appointment.client.email.lower() != email.strip().lower():
            raise AuthorizationException("Email does not match this appointment")

        if appointment.status == AppointmentStatus.CANCELLED:
            raise ConflictException("Appointment is already cancelled")

        start = appointment_start(
            appointment.appointment_date, appointment.appointment_time, self.tz
        )
        if start < self._now():
            raise AuthorizationException("Past appointments cannot be cancelled")

        return await self.change_status(
            appointment_id,
            AppointmentStatus.CANCELLED,
            None,
            "Cancelled by client",
            cancelled_by=CancelledBy.CLIENT,
            cancellation_reason=reason,
        )

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> tuple[AppointmentResponse, bool]:
        """
        Apply admin edits to an appointment.

        A date or time change is checked against the other appointments on
        the target date and its slot claims are swapped in the same
        transaction.

        Returns:
            Tuple of (updated appointment, whether it was rescheduled)

        Raises:
            NotFoundException: If appointment not found
            SlotUnavailableException: If the new time collides with another booking
        """
        current = await self.get_appointment(appointment_id)
        changes = data.model_dump(exclude_unset=True)

        values: dict[str, Any] = {}
        if "internal_notes" in changes:
            values["internal_notes"] = changes.get("internal_notes")
        if changes.get("payment_status") is not None:
            values["payment_status"] = changes["payment_status"].value

        new_date = changes.get("appointment_date") or current.appointment_date
        new_time = changes.get("appointment_time") or current.appointment_time
        rescheduled = (new_date, new_time) != (
            current.appointment_date,
            current.appointment_time,
        )

        if rescheduled:
            duration = current.snapshot.duration_minutes
            taken = await self.booked_intervals(new_date, exclude_id=appointment_id)
            offered = {
                slot.time: slot.available for slot in compute_slots(self.hours, duration, taken)
            }
            if not offered.get(new_time, False):
                raise SlotUnavailableException()
            values["appointment_date"] = new_date
            values["appointment_time"] = new_time

        if not values:
            return current, False

        values["updated_at"] = self._now()
        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(**values)
        )
        if rescheduled and current.status not in SLOT_RELEASING_STATUSES:
            await self._release_slot(appointment_id)
            await self._claim_slot(
                appointment_id, new_date, new_time, current.snapshot.duration_minutes
            )
        if rescheduled:
            # A moved appointment gets a fresh 24h reminder
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(reminder_24h_sent=False, reminder_24h_sent_at=None)
            )
        await self.db.commit()

        if rescheduled:
            logger.info(
                "appointment_rescheduled",
                appointment_id=str(appointment_id),
                appointment_date=new_date.isoformat(),
                appointment_time=new_time,
            )
        return await self.get_appointment(appointment_id), rescheduled

    async def delete_appointment(self, appointment_id: UUID) -> None:
        """
        Soft delete an appointment and free its slot.

        Raises:
            NotFoundException: If appointment not found
        """
        await self.get_appointment(appointment_id)

        now = self._now()
        await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(deleted_at=now, updated_at=now)
        )
        await self._release_slot(appointment_id)
        await self.db.commit()

    async def mark_notification_sent(self, appointment_id: UUID, kind: str) -> bool:
        """
        Flip a notification flag from unsent to sent.

        Returns:
            True if this call set the flag, False if it was already set
        """
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")

        sent_column = appointments.c[f"{kind}_sent"]
        result = await self.db.execute(
            update(appointments)
            .where(and_(appointments.c.id == appointment_id, sent_column.is_(False)))
            .values({f"{kind}_sent": True, f"{kind}_sent_at": self._now()})
        )
        await self.db.commit()
        return result.rowcount > 0

    async def get_statistics(
        self,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> AppointmentStatistics:
        """
        Aggregate appointment figures, optionally limited to a creation window.

        Returns:
            Totals by status and by service, no-show and conversion rates,
            and revenue from paid appointments
        """
        conditions: list[ColumnElement[bool]] = [appointments.c.deleted_at.is_(None)]
        if from_date:
            conditions.append(appointments.c.created_at >= from_date)
        if to_date:
            conditions.append(appointments.c.created_at <= to_date)
        where = and_(*conditions)

        status_rows = (
            await self.db.execute(
                select(appointments.c.status, func.count().label("count"))
                .where(where)
                .group_by(appointments.c.status)
                .order_by(appointments.c.status)
            )
        ).fetchall()
        by_status = [StatusCount(status=row.status, count=row.count) for row in status_rows]
        counts = {row.status: row.count for row in status_rows}
        total = sum(counts.values())

        service_rows = (
            await self.db.execute(
                select(
                    appointments.c.service_id,
                    services.c.name.label("service_name"),
                    func.count().label("count"),
                    func.coalesce(func.sum(appointments.c.price), 0).label("revenue"),
                )
                .select_from(
                    appointments.join(services, appointments.c.service_id == services.c.id)
                )
                .where(where)
                .group_by(appointments.c.service_id, services.c.name)
                .order_by(func.count().desc())
            )
        ).fetchall()
        by_service = [
            ServiceStatistics(
                service_id=row.service_id,
                service_name=row.service_name,
                count=row.count,
                revenue=float(row.revenue or 0),
            )
            for row in service_rows
        ]

        revenue = (
            await self.db.execute(
                select(func.coalesce(func.sum(appointments.c.price), 0)).where(
                    and_(where, appointments.c.payment_status == "paid")
                )
            )
        ).scalar()

        def rate(count: int) -> float:
            return round(count / total * 100, 2) if total else 0.0

        converted = counts.get(AppointmentStatus.CONFIRMED.value, 0) + counts.get(
            AppointmentStatus.COMPLETED.value, 0
        )
        return AppointmentStatistics(
            total_appointments=total,
            by_status=by_status,
            by_service=by_service,
            no_show_rate=rate(counts.get(AppointmentStatus.NO_SHOW.value, 0)),
            conversion_rate=rate(converted),
            total_revenue=float(revenue or 0),
        )
