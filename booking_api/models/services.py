"""Service catalog table using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from booking_api.models.base import metadata

# Owned by the CMS; the booking core only reads it
services = Table(
    "services",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("name", Text, nullable=False),
    Column("slug", String(200), nullable=False, unique=True),
    Column("category", String(50), nullable=True),
    Column("short_description", String(200), nullable=True),
    Column("duration_minutes", Integer, nullable=True),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=True),
    Column("currency", String(3), nullable=False, server_default="RON"),
    Column("bookable", Boolean, nullable=False, server_default=true()),
    Column("available", Boolean, nullable=False, server_default=true()),
    Column("display_order", Integer, nullable=False, server_default="0"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "duration_minutes IS NULL OR duration_minutes > 0",
        name="services_duration_check",
    ),
    CheckConstraint("price IS NULL OR price >= 0", name="services_price_check"),
)
