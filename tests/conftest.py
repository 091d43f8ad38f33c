import os
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, time, timedelta
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from booking_api.config import Settings, get_settings
from booking_api.core.exceptions import NotificationDeliveryFailure
from booking_api.core.security import create_admin_token
from booking_api.database import build_engine, get_db
from booking_api.dependencies import get_clock, get_dispatcher, get_notifier, get_scheduler
from booking_api.main import app
from booking_api.models import metadata, services
from booking_api.scheduler.jobs import JobContext
from booking_api.scheduler.runner import AppointmentScheduler
from booking_api.schemas.appointments import AppointmentResponse, AppointmentStatus
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.notification_service import NotificationDispatcher

# Friday 2024-06-07 12:00 in Bucharest (UTC+3 in summer)
DEFAULT_NOW = datetime(2024, 6, 7, 9, 0, tzinfo=UTC)
# Monday after DEFAULT_NOW
NEXT_MONDAY = date(2024, 6, 10)
ADMIN_ID = "admin-1"


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set_local(self, day: date, at: time, tz: Any) -> None:
        self.now = datetime.combine(day, at, tzinfo=tz).astimezone(UTC)


class RecordingNotifier:
    """Notifier double that records every send and can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Any]] = []
        self.fail_kinds: set[str] = set()
        self.fail_ids: set[UUID] = set()

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]

    def sent_to(self, kind: str) -> list[Any]:
        return [payload for k, payload in self.sent if k == kind]

    async def _record(self, kind: str, appointment: AppointmentResponse) -> None:
        if kind in self.fail_kinds or appointment.id in self.fail_ids:
            raise NotificationDeliveryFailure(kind, appointment.client.email, "smtp down")
        self.sent.append((kind, appointment.id))

    async def send_confirmation(self, appointment: AppointmentResponse) -> None:
        await self._record("confirmation", appointment)

    async def send_reminder(self, appointment: AppointmentResponse) -> None:
        await self._record("reminder", appointment)

    async def send_follow_up(self, appointment: AppointmentResponse) -> None:
        await self._record("follow_up", appointment)

    async def send_admin_new_appointment_alert(self, appointment: AppointmentResponse) -> None:
        await self._record("admin_new_appointment", appointment)

    async def send_cancellation_alert(self, appointment: AppointmentResponse) -> None:
        await self._record("cancellation_alert", appointment)

    async def send_status_confirmed(self, appointment: AppointmentResponse) -> None:
        await self._record("status_confirmed", appointment)

    async def send_cancelled(self, appointment: AppointmentResponse) -> None:
        await self._record("cancelled", appointment)

    async def send_rescheduled(self, appointment: AppointmentResponse) -> None:
        await self._record("rescheduled", appointment)

    async def send_daily_summary(self, appointments: list[AppointmentResponse]) -> None:
        if "daily_summary" in self.fail_kinds:
            raise NotificationDeliveryFailure("daily_summary", "admin", "smtp down")
        self.sent.append(("daily_summary", [a.id for a in appointments]))


@pytest.fixture
def test_settings() -> Settings:
    """Settings pinned to the business calendar the tests assume."""
    return get_settings().model_copy(
        update={
            "business_timezone": "Europe/Bucharest",
            "business_hours_start": time(9, 0),
            "business_hours_end": time(18, 0),
            "slot_step_minutes": 30,
            "closed_weekdays_str": "5,6",
            "no_show_grace_minutes": 120,
            "smtp_host": "",
            "admin_email": "admin@example.com",
            "site_url": "https://casaignat.example",
            "contact_email": "contact@casaignat.example",
            "business_name": "Casa Ignat",
        }
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(DEFAULT_NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test; a temporary SQLite file unless TEST_DATABASE_URL is set."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'test.db'}"
    engine = build_engine(url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(
    db_session: AsyncSession,
    test_settings: Settings,
    clock: FixedClock,
) -> AppointmentService:
    return AppointmentService(db_session, test_settings.business_hours, test_settings.tz, clock)


@pytest.fixture
def dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
    clock: FixedClock,
) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, test_settings, clock)


@pytest.fixture
def job_context(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: RecordingNotifier,
    test_settings: Settings,
    clock: FixedClock,
) -> JobContext:
    return JobContext(
        session_factory=session_factory,
        notifier=notifier,  # type: ignore[arg-type]
        settings=test_settings,
        clock=clock,
    )


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
    clock: FixedClock,
    notifier: RecordingNotifier,
    dispatcher: NotificationDispatcher,
    job_context: JobContext,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with every collaborator replaced."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    scheduler = AppointmentScheduler(job_context)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await dispatcher.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Bearer token carrying the admin role."""
    token = create_admin_token(ADMIN_ID, "admin@example.com", expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


async def _insert_service(db: AsyncSession, **values: Any) -> UUID:
    service_id = uuid4()
    row = {
        "id": service_id,
        "name": "Consultație",
        "slug": f"consultatie-{service_id.hex[:8]}",
        "category": "nutritie",
        "duration_minutes": 60,
        "price": 250,
        "currency": "RON",
        "bookable": True,
        "available": True,
        "display_order": 1,
    }
    row.update(values)
    await db.execute(insert(services).values(**row))
    await db.commit()
    return service_id


@pytest_asyncio.fixture
async def service_id(db_session: AsyncSession) -> UUID:
    """The 60 minute "Consultație" service."""
    return await _insert_service(db_session)


@pytest.fixture
def make_service(db_session: AsyncSession):
    async def _make(**values: Any) -> UUID:
        return await _insert_service(db_session, **values)

    return _make


@pytest.fixture
def booking_payload(service_id: UUID) -> dict:
    """Valid booking request for next Monday at 10:00."""
    return {
        "service_id": str(service_id),
        "appointment_date": NEXT_MONDAY.isoformat(),
        "appointment_time": "10:00",
        "name": "Maria Popescu",
        "email": "Maria.Popescu@Example.com",
        "phone": "+40 721 234 567",
        "age": 34,
        "gender": "feminin",
        "problem_description": "Vreau un plan alimentar",
        "referral_source": "google",
        "terms_accepted": True,
    }


@pytest.fixture
def make_appointment(store: AppointmentService, service_id: UUID):
    """Insert an appointment straight into the store, optionally moving its status."""

    async def _make(
        day: date = NEXT_MONDAY,
        at: str = "10:00",
        status: AppointmentStatus = AppointmentStatus.NEW,
        duration: int = 60,
        **values: Any,
    ) -> AppointmentResponse:
        row = {
            "service_id": service_id,
            "appointment_date": day,
            "appointment_time": at,
            "duration_minutes": duration,
            "price": 250,
            "currency": "RON",
            "client_name": "Ion Ionescu",
            "client_email": "ion@example.com",
            "client_phone": "0721234567",
            "terms_accepted": True,
        }
        row.update(values)
        appointment_id = await store.create(row)
        if status != AppointmentStatus.NEW:
            await store.change_status(appointment_id, status, ADMIN_ID, "test setup")
        return await store.get_appointment(appointment_id)

    return _make
