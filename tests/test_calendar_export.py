"""Tests for iCalendar export."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from booking_api.services.calendar_service import generate_ics, ics_filename
from tests.conftest import DEFAULT_NOW


def _unfold(ics: str) -> list[str]:
    return ics.replace("\r\n ", "").split("\r\n")


@pytest.mark.asyncio
class TestGenerateIcs:
    """Invitation content."""

    async def test_event_times_are_utc(self, make_appointment, test_settings) -> None:
        appointment = await make_appointment()

        lines = _unfold(generate_ics(appointment, "Consultație", test_settings, DEFAULT_NOW))

        assert "DTSTART:20240610T070000Z" in lines
        assert "DTEND:20240610T080000Z" in lines
        assert "DTSTAMP:20240607T090000Z" in lines

    async def test_identity_and_alarms(self, make_appointment, test_settings) -> None:
        appointment = await make_appointment()

        ics = generate_ics(appointment, "Consultație", test_settings, DEFAULT_NOW)
        lines = _unfold(ics)

        assert lines[0] == "BEGIN:VCALENDAR"
        assert f"UID:appointment-{appointment.id}@casaignat.example" in lines
        assert "PRODID:-//Casa Ignat//Appointment Booking//RO" in lines
        assert "METHOD:REQUEST" in lines
        assert "TRIGGER:-PT24H" in lines
        assert "TRIGGER:-PT1H" in lines
        assert any(line.startswith("ATTENDEE;CN=Ion Ionescu") for line in lines)
        assert ics.endswith("END:VCALENDAR\r\n")

    async def test_lines_are_folded(self, make_appointment, test_settings) -> None:
        appointment = await make_appointment(client_name="Ana-Maria " + "Ionescu-" * 12)

        ics = generate_ics(appointment, "Consultație", test_settings, DEFAULT_NOW)

        assert all(len(line.encode("utf-8")) <= 75 for line in ics.split("\r\n"))
        assert any(line.startswith("ATTENDEE;CN=Ana-Maria") for line in _unfold(ics))

    async def test_text_is_escaped(self, make_appointment, test_settings) -> None:
        appointment = await make_appointment()

        lines = _unfold(generate_ics(appointment, "Dietă; ghid, plan", test_settings, DEFAULT_NOW))

        summary = next(line for line in lines if line.startswith("SUMMARY:"))
        assert summary == "SUMMARY:Dietă\\; ghid\\, plan - Casa Ignat"

    async def test_filename(self, make_appointment) -> None:
        appointment = await make_appointment()
        assert ics_filename(appointment) == "programare-2024-06-10.ics"


@pytest.mark.asyncio
class TestExportEndpoint:
    """Download through the public API."""

    async def test_export(self, client: AsyncClient, make_appointment) -> None:
        appointment = await make_appointment()

        response = await client.get(
            f"/api/v1/appointments/{appointment.id}/export",
            params={"email": "ION@example.com"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert 'filename="programare-2024-06-10.ics"' in response.headers["content-disposition"]
        assert "BEGIN:VEVENT" in response.text

    async def test_export_wrong_email(self, client: AsyncClient, make_appointment) -> None:
        appointment = await make_appointment()

        response = await client.get(
            f"/api/v1/appointments/{appointment.id}/export",
            params={"email": "other@example.com"},
        )

        assert response.status_code == 403

    async def test_export_unknown(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/appointments/{uuid4()}/export")
        assert response.status_code == 404
