"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from booking_api.schemas.services import ServiceSnapshot
from booking_api.services.slot_calculator import TIME_PATTERN, normalize_time


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    NEW = "new"
    CONFIRMED = "confirmed"
    WAITING = "waiting"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that hold their slot
ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.NEW, AppointmentStatus.CONFIRMED, AppointmentStatus.WAITING}
)
# Statuses that free their slot for rebooking
SLOT_RELEASING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
)
# Statuses eligible for reminders and the no-show sweep
PENDING_STATUSES = frozenset({AppointmentStatus.NEW, AppointmentStatus.CONFIRMED})


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class CancelledBy(str, Enum):
    """Who cancelled an appointment."""

    CLIENT = "client"
    ADMIN = "admin"


class Gender(str, Enum):
    """Client gender options offered on the booking form."""

    MALE = "masculin"
    FEMALE = "feminin"
    OTHER = "altul"
    UNDISCLOSED = "prefer_sa_nu_specific"


class ReferralSource(str, Enum):
    """How the client heard about the business."""

    GOOGLE = "google"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    RECOMMENDATION = "recomandare"
    ADVERTISING = "publicitate"
    OTHER = "altul"


class FieldError(BaseModel):
    """A single invalid request field."""

    field: str
    message: str


class BookingRequest(BaseModel):
    """
    Raw booking request.

    Fields are deliberately loose so that every problem can be reported
    together by ``validate_booking_request`` instead of failing on the first.
    """

    service_id: Any = None
    appointment_date: Any = None
    appointment_time: Any = None
    name: Any = None
    email: Any = None
    phone: Any = None
    age: Any = None
    gender: Any = None
    problem_description: Any = None
    referral_source: Any = None
    referral_source_other: Any = None
    reminder_email: Any = True
    reminder_sms: Any = False
    terms_accepted: Any = None


class ClientInfo(BaseModel):
    """Client contact and intake details."""

    name: str
    email: str
    phone: str
    age: int | None = None
    gender: Gender | None = None
    problem_description: str | None = None
    referral_source: ReferralSource | None = None
    referral_source_other: str | None = None


class ValidatedBooking(BaseModel):
    """Booking request that passed field validation."""

    service_id: UUID
    appointment_date: date
    appointment_time: str
    client: ClientInfo
    reminder_email: bool = True
    reminder_sms: bool = False


class SlotSchema(BaseModel):
    """A bookable start time."""

    time: str
    available: bool


class AvailableSlotsResponse(BaseModel):
    """Schema for the available slots endpoint."""

    date: date
    service_id: UUID
    slots: list[SlotSchema]
    message: str | None = None


class NotificationFlag(BaseModel):
    """Whether a notification went out, and when."""

    sent: bool = False
    sent_at: datetime | None = None


class NotificationsSent(BaseModel):
    """Per-kind notification delivery flags."""

    confirmation_email: NotificationFlag = NotificationFlag()
    reminder_24h: NotificationFlag = NotificationFlag()
    reminder_sms: NotificationFlag = NotificationFlag()
    follow_up: NotificationFlag = NotificationFlag()


class StatusHistoryEntry(BaseModel):
    """One recorded status change."""

    status: AppointmentStatus
    changed_at: datetime
    changed_by: str | None = None
    notes: str = ""

    model_config = {"from_attributes": True}


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    service_id: UUID
    service_name: str | None = None
    appointment_date: date
    appointment_time: str
    snapshot: ServiceSnapshot
    client: ClientInfo
    status: AppointmentStatus
    status_history: list[StatusHistoryEntry]
    payment_status: PaymentStatus
    reminder_email: bool
    reminder_sms: bool
    notifications_sent: NotificationsSent
    terms_accepted: bool
    terms_accepted_at: datetime | None = None
    internal_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: CancelledBy | None = None
    created_at: datetime
    updated_at: datetime


class BookingConfirmation(BaseModel):
    """Summary returned to the client after a successful booking."""

    id: UUID
    service: str
    date: date
    time: str
    status: AppointmentStatus
    message: str


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentCancelRequest(BaseModel):
    """Schema for a client-initiated cancellation."""

    email: str = Field(..., min_length=3, max_length=254)
    reason: str | None = Field(None, max_length=500)


class CancelResponse(BaseModel):
    """Schema for cancellation result."""

    success: bool
    message: str


class AppointmentUpdate(BaseModel):
    """Schema for admin edits to an existing appointment."""

    appointment_date: date | None = None
    appointment_time: str | None = None
    internal_notes: str | None = Field(None, max_length=2000)
    payment_status: PaymentStatus | None = None

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        """Validate and zero-pad the time."""
        if v is None:
            return v
        if not TIME_PATTERN.match(v):
            raise ValueError("Time must be in HH:MM format")
        return normalize_time(v)


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    service_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=100)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    total_pages: int
    items: list[AppointmentResponse]


class StatusCount(BaseModel):
    """Appointments per status."""

    status: AppointmentStatus
    count: int


class ServiceStatistics(BaseModel):
    """Appointments and revenue per service."""

    service_id: UUID
    service_name: str
    count: int
    revenue: float


class AppointmentStatistics(BaseModel):
    """Aggregate booking figures for the admin dashboard."""

    total_appointments: int
    by_status: list[StatusCount]
    by_service: list[ServiceStatistics]
    no_show_rate: float
    conversion_rate: float
    total_revenue: float
