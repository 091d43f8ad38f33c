"""Database models."""

from booking_api.models.appointments import (
    appointment_slot_claims,
    appointment_status_history,
    appointments,
)
from booking_api.models.base import metadata
from booking_api.models.services import services

__all__ = [
    "appointment_slot_claims",
    "appointment_status_history",
    "appointments",
    "metadata",
    "services",
]
