"""iCalendar export for appointments."""

from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

from booking_api.core.clock import appointment_end, appointment_start
from booking_api.schemas.appointments import AppointmentResponse

ICS_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


def _escape(value: str) -> str:
    """Escape a TEXT property value."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> str:
    """Fold a content line at 75 octets."""
    encoded = line.encode("utf-8")
    if len(encoded) <= 75:
        return line

    parts = []
    current = b""
    limit = 75
    for char in line:
        chunk = char.encode("utf-8")
        if len(current) + len(chunk) > limit:
            parts.append(current.decode("utf-8"))
            current = b""
            limit = 74  # continuation lines start with a space
        current += chunk
    parts.append(current.decode("utf-8"))
    return "\r\n ".join(parts)


def _utc(value: datetime) -> str:
    return value.astimezone(UTC).strftime(ICS_DATE_FORMAT)


def generate_ics(
    appointment: AppointmentResponse,
    service_name: str,
    settings: Any,
    now: datetime,
) -> str:
    """
    Build an RFC 5545 invitation for an appointment.

    Args:
        appointment: Appointment to export
        service_name: Display name of the booked service
        settings: Application settings (business identity and timezone)
        now: Timestamp for DTSTAMP

    Returns:
        VCALENDAR document with CRLF line endings
    """
    start = appointment_start(
        appointment.appointment_date, appointment.appointment_time, settings.tz
    )
    end = appointment_end(
        appointment.appointment_date,
        appointment.appointment_time,
        appointment.snapshot.duration_minutes,
        settings.tz,
    )
    host = urlparse(settings.site_url).hostname or "localhost"
    business = settings.business_name

    description = (
        f"Programare pentru {service_name}\n\n"
        f"Durată: {appointment.snapshot.duration_minutes} minute\n"
    )
    if appointment.snapshot.price:
        description += f"Preț: {appointment.snapshot.price:g} {appointment.snapshot.currency}\n"
    description += (
        "\nVă rugăm să ajungeți cu 5-10 minute înainte.\n\n"
        "Dacă aveți nevoie să anulați sau să reprogramați, vă rugăm să ne contactați.\n\n"
        f"{business}\nEmail: {settings.contact_email}"
    )

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{business}//Appointment Booking//RO",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:appointment-{appointment.id}@{host}",
        f"DTSTAMP:{_utc(now)}",
        f"DTSTART:{_utc(start)}",
        f"DTEND:{_utc(end)}",
        f"SUMMARY:{_escape(f'{service_name} - {business}')}",
        f"DESCRIPTION:{_escape(description)}",
        f"LOCATION:{_escape(settings.business_address or business)}",
        "STATUS:CONFIRMED",
        f"ORGANIZER;CN={_escape(business)}:MAILTO:{settings.contact_email}",
        f"ATTENDEE;CN={_escape(appointment.client.name)};RSVP=TRUE:"
        f"MAILTO:{appointment.client.email}",
        "BEGIN:VALARM",
        "TRIGGER:-PT24H",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{_escape(f'Reminder: Programare mâine la {business}')}",
        "END:VALARM",
        "BEGIN:VALARM",
        "TRIGGER:-PT1H",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{_escape(f'Reminder: Programare în 1 oră la {business}')}",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"


def ics_filename(appointment: AppointmentResponse) -> str:
    """Download filename for an exported appointment."""
    return f"programare-{appointment.appointment_date.isoformat()}.ics"
