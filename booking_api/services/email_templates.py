"""Email bodies for appointment notifications."""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Any

from booking_api.schemas.appointments import AppointmentResponse, AppointmentStatus

MONTHS_RO = (
    "ianuarie",
    "februarie",
    "martie",
    "aprilie",
    "mai",
    "iunie",
    "iulie",
    "august",
    "septembrie",
    "octombrie",
    "noiembrie",
    "decembrie",
)
WEEKDAYS_RO = ("luni", "marți", "miercuri", "joi", "vineri", "sâmbătă", "duminică")


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email."""

    subject: str
    text: str
    html: str


def format_date_ro(value: date, with_weekday: bool = False) -> str:
    """Format a date as e.g. ``10 iunie 2024``."""
    formatted = f"{value.day:02d} {MONTHS_RO[value.month - 1]} {value.year}"
    if with_weekday:
        return f"{WEEKDAYS_RO[value.weekday()]}, {formatted}"
    return formatted


def _details(appointment: AppointmentResponse) -> list[tuple[str, str]]:
    rows = [
        ("Serviciu", appointment.service_name or ""),
        ("Data", format_date_ro(appointment.appointment_date)),
        ("Ora", appointment.appointment_time),
        ("Durată", f"{appointment.snapshot.duration_minutes} minute"),
    ]
    if appointment.snapshot.price:
        rows.append(("Preț", f"{appointment.snapshot.price:g} {appointment.snapshot.currency}"))
    return rows


def _render(
    subject: str,
    settings: Any,
    paragraphs: list[str],
    details: list[tuple[str, str]] | None = None,
    link: tuple[str, str] | None = None,
) -> EmailMessage:
    text_parts = list(paragraphs)
    html_parts = [f"<p>{escape(p)}</p>" for p in paragraphs]

    if details:
        text_parts.append("\n".join(f"{label}: {value}" for label, value in details))
        rows = "".join(
            f"<tr><td><strong>{escape(label)}:</strong></td><td>{escape(value)}</td></tr>"
            for label, value in details
        )
        html_parts.append(f"<table>{rows}</table>")

    if link:
        label, url = link
        text_parts.append(f"{label}: {url}")
        html_parts.append(f'<p><a href="{escape(url)}">{escape(label)}</a></p>')

    footer = f"{settings.business_name} | {settings.contact_email}"
    text_parts.append(footer)
    html_parts.append(f"<hr><p><small>{escape(footer)}</small></p>")

    return EmailMessage(
        subject=subject,
        text="\n\n".join(text_parts),
        html=f"<html><body><h2>{escape(subject)}</h2>{''.join(html_parts)}</body></html>",
    )


def _site(settings: Any, path: str) -> str:
    return f"{settings.site_url.rstrip('/')}{path}"


def _export_link(appointment: AppointmentResponse, settings: Any) -> tuple[str, str]:
    url = _site(
        settings,
        f"{settings.api_v1_prefix}/appointments/{appointment.id}/export"
        f"?email={appointment.client.email}",
    )
    return "Adaugă în calendar", url


def confirmation(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Booking received, sent to the client."""
    channels = "email și SMS" if appointment.reminder_sms else "email"
    return _render(
        f"Confirmare programare - {appointment.service_name}",
        settings,
        [
            f"Bună {appointment.client.name}!",
            "Programarea ta a fost înregistrată cu succes.",
            f"Vei primi un reminder cu 24h înainte de programare ({channels}).",
            "Te rugăm să ajungi cu 5-10 minute înainte de ora programării.",
            "Dacă trebuie să anulezi programarea, te rugăm să ne anunți cu minim 24h înainte.",
        ],
        _details(appointment),
        _export_link(appointment, settings),
    )


def admin_new_appointment(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """New booking alert for the admin."""
    client = appointment.client
    details = _details(appointment) + [
        ("Client", client.name),
        ("Email", client.email),
        ("Telefon", client.phone),
    ]
    if client.problem_description:
        details.append(("Descriere", client.problem_description))
    return _render(
        f"Programare nouă: {appointment.service_name}",
        settings,
        ["A fost înregistrată o programare nouă."],
        details,
        ("Vezi programarea", _site(settings, f"/admin/programari/{appointment.id}")),
    )


def reminder(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Day-before reminder for the client."""
    return _render(
        f"Reminder: Programare mâine - {appointment.service_name}",
        settings,
        [
            f"Bună {appointment.client.name}!",
            "Îți amintim că ai o programare mâine.",
            "Dacă nu mai poți ajunge, te rugăm să ne anunți cât mai curând.",
        ],
        _details(appointment),
        _export_link(appointment, settings),
    )


def status_confirmed(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Admin confirmed the booking."""
    return _render(
        f"Programare confirmată - {appointment.service_name}",
        settings,
        [f"Bună {appointment.client.name}!", "Programarea ta a fost confirmată."],
        _details(appointment),
    )


def rescheduled(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Appointment moved to a new date or time."""
    return _render(
        f"Programare reprogramată - {appointment.service_name}",
        settings,
        [
            f"Bună {appointment.client.name}!",
            "Programarea ta a fost mutată. Noile detalii sunt mai jos.",
        ],
        _details(appointment),
        _export_link(appointment, settings),
    )


def cancelled(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Cancellation notice for the client."""
    paragraphs = [f"Bună {appointment.client.name}!", "Programarea ta a fost anulată."]
    if appointment.cancellation_reason:
        paragraphs.append(f"Motiv: {appointment.cancellation_reason}")
    return _render(
        f"Programare anulată - {appointment.service_name}",
        settings,
        paragraphs,
        _details(appointment),
        ("Fă o nouă programare", _site(settings, "/programari")),
    )


def cancellation_alert(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Cancellation notice for the admin."""
    details = _details(appointment) + [
        ("Client", appointment.client.name),
        ("Email", appointment.client.email),
        ("Anulată de", appointment.cancelled_by.value if appointment.cancelled_by else "-"),
    ]
    if appointment.cancellation_reason:
        details.append(("Motiv", appointment.cancellation_reason))
    return _render(
        f"Programare anulată: {appointment.service_name}",
        settings,
        ["O programare a fost anulată."],
        details,
    )


def follow_up(appointment: AppointmentResponse, settings: Any) -> EmailMessage:
    """Thank-you email the day after a completed appointment."""
    return _render(
        f"Mulțumim pentru vizită - {appointment.service_name}",
        settings,
        [
            f"Bună {appointment.client.name},",
            "Sperăm că consultația ta cu noi a fost utilă.",
            "Părerea ta este foarte importantă pentru noi.",
        ],
        None,
        ("Lasă un review", _site(settings, f"/feedback?appointment={appointment.id}")),
    )


def daily_summary(
    appointments: list[AppointmentResponse],
    day: date,
    settings: Any,
) -> EmailMessage:
    """Digest of the day's appointments for the admin."""
    done = {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
    upcoming = [a for a in appointments if a.status not in done]
    completed = [a for a in appointments if a.status == AppointmentStatus.COMPLETED]
    cancelled_count = sum(1 for a in appointments if a.status == AppointmentStatus.CANCELLED)

    details = [
        ("Total programări", str(len(appointments))),
        ("Programări active", str(len(upcoming))),
        ("Finalizate", str(len(completed))),
        ("Anulate", str(cancelled_count)),
    ]
    details += [
        (f"{a.appointment_time} - {a.client.name}", a.service_name or "") for a in upcoming
    ]
    return _render(
        f"Rezumat programări - {format_date_ro(day)}",
        settings,
        [f"Programările pentru {format_date_ro(day, with_weekday=True)}."],
        details,
    )
