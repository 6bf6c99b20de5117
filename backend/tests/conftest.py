"""
Test configuration and shared fixtures for the scheduling test suite.

Uses an in-memory SQLite database per test, built from the SQLAlchemy
models, so every test starts from an empty schema.
"""

import os

# Must be set before core.database creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CLINIC_TIMEZONE"] = "UTC"

import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models.clinic import Clinic
from models.patient import Patient
from models.treatment import Treatment
from models.booking import Booking
from services.busy_interval_source import BusyTimeCache
from shared_types.scheduling import BookingKind, BookingOutcome


# Monday; the default working days are Monday to Friday
WORKDAY = date(2026, 3, 2)
SUNDAY = date(2026, 3, 1)


@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory database engine for one test.

    StaticPool keeps the single connection alive so every session sees the
    same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the test's engine."""
    Session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = Session()

    yield session

    session.close()


@pytest.fixture
def clinic(db_session: Session) -> Clinic:
    """A clinic with default scheduling settings and no calendar connected."""
    clinic = Clinic(name="Test Clinic", settings={})
    db_session.add(clinic)
    db_session.commit()
    return clinic


@pytest.fixture
def patient(db_session: Session, clinic: Clinic) -> Patient:
    patient = Patient(
        clinic_id=clinic.id,
        full_name="Test Patient",
        phone_number="+1234567890",
        email="patient@example.com",
    )
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def treatment(db_session: Session, clinic: Clinic) -> Treatment:
    treatment = Treatment(clinic_id=clinic.id, name="Initial assessment", duration_minutes=60)
    db_session.add(treatment)
    db_session.commit()
    return treatment


@pytest.fixture
def busy_time_cache() -> BusyTimeCache:
    """A private cache so tests never share busy times."""
    return BusyTimeCache()


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Clinic-time instant on a day (the test clinic timezone is UTC)."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def fixed_now(value: datetime):
    """now_provider returning a fixed instant."""
    return lambda: value


def make_booking(
    scheduled_at: datetime,
    duration_minutes: int = 30,
    kind: BookingKind = BookingKind.APPOINTMENT,
    outcome: Optional[BookingOutcome] = BookingOutcome.PENDING,
    completed: bool = False,
    completed_at: Optional[datetime] = None,
    external_event_id: Optional[str] = None,
    patient_id: int = 1,
) -> Booking:
    """Build an unsaved booking for pure-logic tests."""
    return Booking(
        clinic_id=1,
        patient_id=patient_id,
        kind=kind.value,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        completed=completed,
        completed_at=completed_at,
        outcome=outcome.value if outcome else None,
        external_event_id=external_event_id,
    )


def completed_booking(completed_at: datetime) -> Booking:
    return make_booking(
        completed_at - timedelta(minutes=30),
        outcome=BookingOutcome.COMPLETED,
        completed=True,
        completed_at=completed_at,
    )
