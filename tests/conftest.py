"""Pytest configuration and fixtures."""

import os

# Settings are read once at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from consultdesk.api.deps import get_notification_emitter
from consultdesk.db.base import Base
from consultdesk.db.session import get_db
from consultdesk.main import app
from consultdesk.models.consultation import Consultation, ConsultationPriority, ConsultationStatus
from consultdesk.models.patient import Patient
from consultdesk.models.provider import Provider
from consultdesk.services.exceptions import DependencyFailureError
from consultdesk.services.notifications import NotificationEmitter, NotificationEvent

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed ids so that directory order (by id) is known: A < B < C
PROVIDER_A_ID = "a1111111-1111-4111-8111-111111111111"
PROVIDER_B_ID = "b2222222-2222-4222-8222-222222222222"
PROVIDER_C_ID = "c3333333-3333-4333-8333-333333333333"
PATIENT_ID = "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"
OTHER_PATIENT_ID = "bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb"

VALID_LICENSE = date(2030, 12, 31)


class RecordingEmitter:
    """Emitter that keeps events in memory.

    Provider ids listed in ``fail_for`` raise DependencyFailureError.
    """

    def __init__(self, fail_for: set[str] | None = None):
        self.events: list[NotificationEvent] = []
        self.fail_for = fail_for or set()

    async def emit(self, event: NotificationEvent) -> None:
        if event.provider_id in self.fail_for:
            raise DependencyFailureError(f"Emitter unavailable for {event.provider_id}")
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def recording_emitter() -> RecordingEmitter:
    """In-memory emitter."""
    return RecordingEmitter()


@pytest.fixture
def notification_emitter(session_factory) -> NotificationEmitter:
    """Real emitter writing notifications to the test database."""
    return NotificationEmitter(session_factory)


@pytest.fixture(scope="function")
async def client(
    async_session: AsyncSession,
    recording_emitter: RecordingEmitter,
) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP test client with overridden dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_emitter] = lambda: recording_emitter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_provider(
    provider_id: str,
    name: str,
    specialization: str = "Cardiology",
    license_expiry_date: date = VALID_LICENSE,
) -> Provider:
    """Build a provider with a unique email."""
    return Provider(
        id=provider_id,
        name=name,
        email=f"{name.lower().replace(' ', '.')}@clinic.example",
        specialization=specialization,
        license_number=f"LIC-{provider_id[:4]}",
        license_expiry_date=license_expiry_date,
        state="CA",
    )


@pytest.fixture
async def cardiologists(async_session: AsyncSession) -> list[Provider]:
    """Two Cardiology providers, A before B in directory order."""
    providers = [
        make_provider(PROVIDER_B_ID, "Dr Bell"),
        make_provider(PROVIDER_A_ID, "Dr Adams"),
    ]
    async_session.add_all(providers)
    await async_session.commit()
    return sorted(providers, key=lambda p: p.id)


@pytest.fixture
async def dermatologist(async_session: AsyncSession) -> Provider:
    """One Dermatology provider."""
    provider = make_provider(PROVIDER_C_ID, "Dr Cole", specialization="Dermatology")
    async_session.add(provider)
    await async_session.commit()
    return provider


@pytest.fixture
async def test_patient(async_session: AsyncSession) -> Patient:
    """Create a test patient referred to Cardiology."""
    patient = Patient(
        id=PATIENT_ID,
        name="Pat Jones",
        email="pat@example.com",
        reason_for_consultation="Cardiology",
    )
    async_session.add(patient)
    await async_session.commit()
    return patient


@pytest.fixture
async def other_patient(async_session: AsyncSession) -> Patient:
    """Second Cardiology patient."""
    patient = Patient(
        id=OTHER_PATIENT_ID,
        name="Sam Lee",
        email="sam@example.com",
        reason_for_consultation="Cardiology",
    )
    async_session.add(patient)
    await async_session.commit()
    return patient


def make_consultation(
    provider_id: str | None,
    day: date = date(2024, 1, 10),
    slot_time: str = "10:00",
    status: ConsultationStatus = ConsultationStatus.SCHEDULED,
    patient_id: str = PATIENT_ID,
) -> Consultation:
    """Build a consultation row directly, bypassing the service."""
    return Consultation(
        patient_id=patient_id,
        provider_id=provider_id,
        date=day,
        time=slot_time,
        status=status,
        priority=ConsultationPriority.MEDIUM,
    )
