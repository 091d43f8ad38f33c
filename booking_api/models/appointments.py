"""Appointment tables using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
    true,
)

from booking_api.models.base import metadata

APPOINTMENT_STATUSES = ("new", "confirmed", "waiting", "cancelled", "completed", "no_show")

# Notification kinds tracked as <kind>_sent / <kind>_sent_at column pairs
NOTIFICATION_KINDS = ("confirmation_email", "reminder_24h", "reminder_sms", "follow_up")


def _notification_columns() -> list[Column]:
    columns: list[Column] = []
    for kind in NOTIFICATION_KINDS:
        columns.append(Column(f"{kind}_sent", Boolean, nullable=False, server_default=false()))
        columns.append(Column(f"{kind}_sent_at", DateTime(timezone=True), nullable=True))
    return columns


appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("service_id", Uuid, ForeignKey("services.id"), nullable=False),
    # Schedule
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", String(5), nullable=False),
    # Snapshot fields copied from the service at booking time
    Column("duration_minutes", Integer, nullable=False),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=True),
    Column("currency", String(3), nullable=False, server_default="RON"),
    # Client
    Column("client_name", Text, nullable=False),
    Column("client_email", String(254), nullable=False),
    Column("client_phone", String(30), nullable=False),
    Column("client_age", Integer, nullable=True),
    Column("client_gender", String(30), nullable=True),
    Column("problem_description", Text, nullable=True),
    Column("referral_source", String(30), nullable=True),
    Column("referral_source_other", Text, nullable=True),
    # Status management
    Column("status", String(20), nullable=False, server_default="new"),
    Column("internal_notes", Text, nullable=True),
    # Payment
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    # Reminder preferences
    Column("reminder_email", Boolean, nullable=False, server_default=true()),
    Column("reminder_sms", Boolean, nullable=False, server_default=false()),
    *_notification_columns(),
    # Terms
    Column("terms_accepted", Boolean, nullable=False),
    Column("terms_accepted_at", DateTime(timezone=True), nullable=True),
    # Cancellation
    Column("cancellation_reason", String(500), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_by", String(10), nullable=True),
    # Request metadata
    Column("user_agent", Text, nullable=True),
    Column("ip_address", String(45), nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('new', 'confirmed', 'waiting', 'cancelled', 'completed', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'refunded')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint(
        "cancelled_by IS NULL OR cancelled_by IN ('client', 'admin')",
        name="appointments_cancelled_by_check",
    ),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    CheckConstraint("terms_accepted", name="appointments_terms_check"),
    Index("ix_appointments_date_time", "appointment_date", "appointment_time"),
    Index("ix_appointments_status_date", "status", "appointment_date"),
    Index("ix_appointments_service_status", "service_id", "status"),
    Index("ix_appointments_client_email", "client_email"),
)

# Append-only audit trail; rows are never updated or deleted
appointment_status_history = Table(
    "appointment_status_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", String(20), nullable=False),
    Column("changed_at", DateTime(timezone=True), nullable=False),
    Column("changed_by", String(100), nullable=True),
    Column("notes", Text, nullable=False, server_default=""),
    Index("ix_status_history_appointment", "appointment_id", "id"),
)

# One row per business-hours grid cell held by an active appointment
appointment_slot_claims = Table(
    "appointment_slot_claims",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("appointment_date", Date, nullable=False),
    Column("slot_time", String(5), nullable=False),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
    ),
    UniqueConstraint("appointment_date", "slot_time", name="uq_slot_claims_date_time"),
    Index("ix_slot_claims_appointment", "appointment_id"),
)
