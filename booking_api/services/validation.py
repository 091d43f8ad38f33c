"""Field-level validation for booking requests."""

import re
from datetime import date
from uuid import UUID

from email_validator import EmailNotValidError, validate_email

from booking_api.schemas.appointments import (
    BookingRequest,
    ClientInfo,
    FieldError,
    Gender,
    ReferralSource,
    ValidatedBooking,
)
from booking_api.services.slot_calculator import TIME_PATTERN, normalize_time

PHONE_SEPARATORS = re.compile(r"[\s\-().+]")

MAX_NAME_LENGTH = 200
MAX_PROBLEM_DESCRIPTION_LENGTH = 1000


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_booking_request(
    request: BookingRequest,
) -> tuple[ValidatedBooking | None, list[FieldError]]:
    """
    Validate every field of a booking request.

    Args:
        request: Raw booking request

    Returns:
        ``(booking, [])`` when valid, otherwise ``(None, errors)`` listing
        every failing field
    """
    errors: list[FieldError] = []

    def fail(field: str, message: str) -> None:
        errors.append(FieldError(field=field, message=message))

    service_id: UUID | None = None
    if _blank(request.service_id):
        fail("service_id", "Service is required")
    else:
        try:
            service_id = UUID(str(request.service_id))
        except ValueError:
            fail("service_id", "Service id is not valid")

    appointment_date: date | None = None
    if _blank(request.appointment_date):
        fail("appointment_date", "Appointment date is required")
    else:
        try:
            appointment_date = date.fromisoformat(str(request.appointment_date))
        except ValueError:
            fail("appointment_date", "Appointment date must be an ISO date (YYYY-MM-DD)")

    appointment_time: str | None = None
    if _blank(request.appointment_time):
        fail("appointment_time", "Appointment time is required")
    elif not isinstance(request.appointment_time, str) or not TIME_PATTERN.match(
        request.appointment_time
    ):
        fail("appointment_time", "Appointment time must be in HH:MM format")
    else:
        appointment_time = normalize_time(request.appointment_time)

    name = request.name.strip() if isinstance(request.name, str) else None
    if not name:
        fail("name", "Name is required")
    elif len(name) > MAX_NAME_LENGTH:
        fail("name", f"Name can have at most {MAX_NAME_LENGTH} characters")

    email: str | None = None
    if _blank(request.email) or not isinstance(request.email, str):
        fail("email", "Email is required")
    else:
        try:
            validated = validate_email(request.email.strip(), check_deliverability=False)
            email = validated.normalized.lower()
        except EmailNotValidError:
            fail("email", "Email address is not valid")

    phone = request.phone.strip() if isinstance(request.phone, str) else None
    if not phone:
        fail("phone", "Phone number is required")
    else:
        digits = PHONE_SEPARATORS.sub("", phone)
        if not digits.isdigit() or len(digits) < 7:
            fail("phone", "Phone number must have at least 7 digits")

    age: int | None = None
    if not _blank(request.age):
        try:
            age = int(request.age)
        except (TypeError, ValueError):
            fail("age", "Age must be a number")
        else:
            if not 0 <= age <= 150:
                fail("age", "Age must be between 0 and 150")

    gender: Gender | None = None
    if not _blank(request.gender):
        try:
            gender = Gender(request.gender)
        except ValueError:
            fail("gender", "Gender is not one of the offered options")

    referral_source: ReferralSource | None = None
    if not _blank(request.referral_source):
        try:
            referral_source = ReferralSource(request.referral_source)
        except ValueError:
            fail("referral_source", "Referral source is not one of the offered options")

    problem_description = request.problem_description
    if problem_description is not None and (
        not isinstance(problem_description, str)
        or len(problem_description) > MAX_PROBLEM_DESCRIPTION_LENGTH
    ):
        fail(
            "problem_description",
            "Problem description must be text of at most "
            f"{MAX_PROBLEM_DESCRIPTION_LENGTH} characters",
        )

    if request.terms_accepted is not True:
        fail("terms_accepted", "Terms and conditions must be accepted")

    if errors:
        return None, errors

    client = ClientInfo(
        name=name,
        email=email,
        phone=phone,
        age=age,
        gender=gender,
        problem_description=problem_description or None,
        referral_source=referral_source,
        referral_source_other=(
            request.referral_source_other.strip()
            if isinstance(request.referral_source_other, str)
            and request.referral_source_other.strip()
            else None
        ),
    )
    return (
        ValidatedBooking(
            service_id=service_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            client=client,
            reminder_email=request.reminder_email is not False,
            reminder_sms=request.reminder_sms is True,
        ),
        [],
    )
