"""Tests for the pure slot computation."""

from datetime import time

import pytest

from booking_api.services.slot_calculator import (
    BookedInterval,
    BusinessHours,
    compute_slots,
    normalize_time,
    overlaps,
    parse_time,
    slot_claim_keys,
)

HOURS = BusinessHours(start=time(9, 0), end=time(18, 0), step_minutes=30)


def _by_time(slots):
    return {slot.time: slot.available for slot in slots}


class TestComputeSlots:
    """Candidate generation and overlap marking."""

    def test_empty_day_offers_every_start_that_fits(self) -> None:
        slots = compute_slots(HOURS, 60, [])

        assert slots[0].time == "09:00"
        assert slots[-1].time == "17:00"
        assert len(slots) == 17
        assert all(slot.available for slot in slots)

    def test_slots_are_chronological_and_deterministic(self) -> None:
        booked = [BookedInterval.from_appointment("13:00", 90)]

        first = compute_slots(HOURS, 30, booked)
        second = compute_slots(HOURS, 30, booked)

        assert first == second
        times = [slot.time for slot in first]
        assert times == sorted(times)

    def test_existing_hour_blocks_neighbouring_starts(self) -> None:
        """A confirmed 10:00 hour blocks 09:30 and 10:30 for a 60 minute service."""
        slots = _by_time(compute_slots(HOURS, 60, [BookedInterval.from_appointment("10:00", 60)]))

        assert slots["09:00"] is True
        assert slots["09:30"] is False
        assert slots["10:00"] is False
        assert slots["10:30"] is False
        assert slots["11:00"] is True

    def test_earlier_opening_offers_0830(self) -> None:
        early = BusinessHours(start=time(8, 0), end=time(18, 0), step_minutes=30)
        slots = _by_time(compute_slots(early, 60, [BookedInterval.from_appointment("10:00", 60)]))

        assert slots["08:30"] is True
        assert slots["09:30"] is False
        assert slots["11:00"] is True

    def test_0830_is_outside_default_hours(self) -> None:
        slots = _by_time(compute_slots(HOURS, 60, []))
        assert "08:30" not in slots

    def test_overlap_uses_existing_duration(self) -> None:
        """A short candidate inside a long booking is still blocked."""
        slots = _by_time(compute_slots(HOURS, 30, [BookedInterval.from_appointment("14:00", 120)]))

        assert slots["13:30"] is True
        assert slots["14:00"] is False
        assert slots["15:30"] is False
        assert slots["16:00"] is True

    def test_last_slot_ends_at_closing(self) -> None:
        slots = compute_slots(HOURS, 90, [])
        assert slots[-1].time == "16:30"

    def test_duration_not_on_step_boundary(self) -> None:
        slots = compute_slots(HOURS, 45, [])
        # 17:15 would be the exact last start, but it is not on the grid
        assert slots[-1].time == "17:00"

    def test_service_longer_than_day_gives_no_slots(self) -> None:
        assert compute_slots(HOURS, 600, []) == []

    def test_service_exactly_the_day(self) -> None:
        slots = compute_slots(HOURS, 540, [])
        assert [slot.time for slot in slots] == ["09:00"]

    def test_rejects_non_positive_duration(self) -> None:
        with pytest.raises(ValueError):
            compute_slots(HOURS, 0, [])


class TestTimeHelpers:
    """Parsing and formatting of wall-clock times."""

    @pytest.mark.parametrize(
        ("value", "minutes"),
        [("09:00", 540), ("9:30", 570), ("00:00", 0), ("23:59", 1439)],
    )
    def test_parse_time(self, value: str, minutes: int) -> None:
        assert parse_time(value) == minutes

    @pytest.mark.parametrize("value", ["24:00", "12:60", "1200", "", "ab:cd", "12:5"])
    def test_parse_time_rejects_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_time(value)

    def test_normalize_time_pads_hours(self) -> None:
        assert normalize_time("9:00") == "09:00"

    def test_overlap_is_half_open(self) -> None:
        booked = BookedInterval(start_minutes=600, duration_minutes=60)

        assert overlaps(540, 60, booked) is False
        assert overlaps(660, 30, booked) is False
        assert overlaps(630, 60, booked) is True


class TestSlotClaimKeys:
    """Grid cells used for the write-time uniqueness check."""

    def test_hour_on_half_hour_grid(self) -> None:
        assert slot_claim_keys(HOURS, parse_time("10:00"), 60) == ["10:00", "10:30"]

    def test_partial_cell_is_claimed(self) -> None:
        assert slot_claim_keys(HOURS, parse_time("10:00"), 45) == ["10:00", "10:30"]

    def test_overlapping_appointments_share_a_cell(self) -> None:
        first = set(slot_claim_keys(HOURS, parse_time("10:00"), 60))
        second = set(slot_claim_keys(HOURS, parse_time("10:30"), 30))
        assert first & second

    def test_adjacent_appointments_share_no_cell(self) -> None:
        first = set(slot_claim_keys(HOURS, parse_time("10:00"), 60))
        second = set(slot_claim_keys(HOURS, parse_time("11:00"), 60))
        assert not first & second
