"""Time source and business-timezone helpers."""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta, tzinfo

from booking_api.services.slot_calculator import parse_time

# Returns a timezone-aware instant
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Production clock."""
    return datetime.now(UTC)


def business_now(clock: Clock, tz: tzinfo) -> datetime:
    """Current instant expressed in the business timezone."""
    return clock().astimezone(tz)


def business_today(clock: Clock, tz: tzinfo) -> date:
    """Current calendar date in the business timezone."""
    return business_now(clock, tz).date()


def appointment_start(appointment_date: date, appointment_time: str, tz: tzinfo) -> datetime:
    """Aware start instant of an appointment held as a date plus ``HH:MM``."""
    minutes = parse_time(appointment_time)
    naive = datetime.combine(appointment_date, datetime.min.time()) + timedelta(minutes=minutes)
    return naive.replace(tzinfo=tz)


def appointment_end(
    appointment_date: date,
    appointment_time: str,
    duration_minutes: int,
    tz: tzinfo,
) -> datetime:
    """Aware end instant of an appointment."""
    return appointment_start(appointment_date, appointment_time, tz) + timedelta(
        minutes=duration_minutes
    )


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.

    Timestamps are always written as UTC; SQLite returns them without an offset.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
