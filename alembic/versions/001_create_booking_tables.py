"""Create booking tables

Revision ID: 001_create_booking_tables
Revises:
Create Date: 2026-10-19

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

NOTIFICATION_KINDS = ("confirmation_email", "reminder_24h", "reminder_sms", "follow_up")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create service catalog, appointment, status history and slot claim tables."""
    op.create_table(
        "services",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("short_description", sa.String(length=200), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="RON", nullable=False),
        sa.Column("bookable", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("available", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("display_order", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
        sa.CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="services_duration_check",
        ),
        sa.CheckConstraint("price IS NULL OR price >= 0", name="services_price_check"),
    )

    notification_columns = []
    for kind in NOTIFICATION_KINDS:
        notification_columns.append(
            sa.Column(f"{kind}_sent", sa.Boolean(), server_default=sa.false(), nullable=False)
        )
        notification_columns.append(
            sa.Column(f"{kind}_sent_at", sa.DateTime(timezone=True), nullable=True)
        )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.String(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="RON", nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("client_email", sa.String(length=254), nullable=False),
        sa.Column("client_phone", sa.String(length=30), nullable=False),
        sa.Column("client_age", sa.Integer(), nullable=True),
        sa.Column("client_gender", sa.String(length=30), nullable=True),
        sa.Column("problem_description", sa.Text(), nullable=True),
        sa.Column("referral_source", sa.String(length=30), nullable=True),
        sa.Column("referral_source_other", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="new", nullable=False),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column(
            "payment_status", sa.String(length=20), server_default="pending", nullable=False
        ),
        sa.Column("reminder_email", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("reminder_sms", sa.Boolean(), server_default=sa.false(), nullable=False),
        *notification_columns,
        sa.Column("terms_accepted", sa.Boolean(), nullable=False),
        sa.Column("terms_accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=10), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.CheckConstraint(
            "status IN ('new', 'confirmed', 'waiting', 'cancelled', 'completed', 'no_show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="appointments_payment_status_check",
        ),
        sa.CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('client', 'admin')",
            name="appointments_cancelled_by_check",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
        sa.CheckConstraint("terms_accepted", name="appointments_terms_check"),
    )
    op.create_index(
        "ix_appointments_date_time", "appointments", ["appointment_date", "appointment_time"]
    )
    op.create_index("ix_appointments_status_date", "appointments", ["status", "appointment_date"])
    op.create_index("ix_appointments_service_status", "appointments", ["service_id", "status"])
    op.create_index("ix_appointments_client_email", "appointments", ["client_email"])

    op.create_table(
        "appointment_status_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("changed_by", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), server_default="", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_status_history_appointment",
        "appointment_status_history",
        ["appointment_id", "id"],
    )

    op.create_table(
        "appointment_slot_claims",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("slot_time", sa.String(length=5), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("appointment_date", "slot_time", name="uq_slot_claims_date_time"),
    )
    op.create_index(
        "ix_slot_claims_appointment", "appointment_slot_claims", ["appointment_id"]
    )


def downgrade() -> None:
    """Drop booking tables."""
    op.drop_table("appointment_slot_claims")
    op.drop_table("appointment_status_history")
    op.drop_table("appointments")
    op.drop_table("services")
