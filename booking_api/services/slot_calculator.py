"""
Slot computation for the daily booking window.

Everything in this module is pure: callers load the existing appointments
for a day and pass them in as ``BookedInterval`` values.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class BusinessHours:
    """Daily window in which slots are generated."""

    start: time
    end: time
    step_minutes: int = 30

    def __post_init__(self) -> None:
        if self.step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        if self.end <= self.start:
            raise ValueError("business hours must end after they start")

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        return self.end.hour * 60 + self.end.minute

    @property
    def length_minutes(self) -> int:
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class BookedInterval:
    """Half-open ``[start, start + duration)`` interval held by an appointment."""

    start_minutes: int
    duration_minutes: int

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    @classmethod
    def from_appointment(cls, appointment_time: str, duration_minutes: int) -> "BookedInterval":
        return cls(parse_time(appointment_time), duration_minutes)


@dataclass(frozen=True)
class Slot:
    """A candidate start time and whether it can still be booked."""

    time: str
    available: bool


def parse_time(value: str) -> int:
    """
    Convert an ``HH:MM`` string into minutes since midnight.

    Single-digit hours (``9:30``) are accepted.

    Raises:
        ValueError: If the value is not a valid wall-clock time
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_time(minutes: int) -> str:
    """Convert minutes since midnight into a zero-padded ``HH:MM`` string."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str) -> str:
    """Return the canonical zero-padded form of an ``HH:MM`` string."""
    return format_time(parse_time(value))


def overlaps(start: int, duration: int, other: BookedInterval) -> bool:
    """Half-open interval overlap using both durations."""
    return start < other.end_minutes and start + duration > other.start_minutes


def compute_slots(
    hours: BusinessHours,
    duration_minutes: int,
    booked: Iterable[BookedInterval],
) -> list[Slot]:
    """
    Generate the ordered slot list for one day.

    Candidates start at ``hours.start`` and advance by ``hours.step_minutes``;
    a candidate is only emitted if it ends no later than ``hours.end``. A
    slot is unavailable when it overlaps any booked interval.

    Args:
        hours: Business hours window
        duration_minutes: Length of the service being booked
        booked: Intervals held by active appointments on the same day

    Returns:
        Slots in chronological order; empty if the service does not fit
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    intervals = list(booked)
    last_start = hours.end_minutes - duration_minutes

    slots = []
    current = hours.start_minutes
    while current <= last_start:
        taken = any(overlaps(current, duration_minutes, interval) for interval in intervals)
        slots.append(Slot(time=format_time(current), available=not taken))
        current += hours.step_minutes

    return slots


def slot_claim_keys(hours: BusinessHours, start_minutes: int, duration_minutes: int) -> list[str]:
    """
    Grid cells touched by ``[start, start + duration)``.

    Cells are ``step_minutes`` wide and anchored at ``hours.start``. Because
    bookable start times always sit on the grid, two appointments overlap
    exactly when their cell sets intersect, which lets a unique index on
    ``(date, cell)`` enforce the no-double-booking rule at write time.
    """
    step = hours.step_minutes
    origin = hours.start_minutes
    first = (start_minutes - origin) // step
    # ceiling division for the exclusive end
    last = -((origin - (start_minutes + duration_minutes)) // step)
    return [format_time(origin + index * step) for index in range(first, last)]
