"""
Unit tests for the booking creation flow.

Covers slot re-validation, persistence failures, calendar mirroring and the
warning channel for mirror failures.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from core.exceptions import ConflictError, InvalidSlotError, PatientNotFoundError, PersistenceError
from models.booking import Booking
from models.clinic import SchedulingSettings, WorkingHours
from services.booking_coordinator import BookingCoordinator
from services.booking_store import BookingStore
from services.busy_interval_source import BusyIntervalSource
from shared_types.availability import BusyTime
from shared_types.scheduling import (
    BookingKind, BookingOutcome, MirroredEvent, PatientContact, PatientStatus,
)
from tests.conftest import SUNDAY, WORKDAY, at, fixed_now


def calendar(connected: bool = True, busy_times=None, mirrored=None):
    integration = Mock()
    integration.is_connected.return_value = connected
    integration.list_busy_times = AsyncMock(return_value=list(busy_times or []))
    integration.create_event = AsyncMock(return_value=mirrored)
    integration.delete_event = AsyncMock()
    return integration


@pytest.fixture
def settings():
    return SchedulingSettings(
        working_hours=WorkingHours(start="09:00", end="12:00", days_of_week=[1, 2, 3, 4, 5]),
        slot_interval_minutes=15,
    )


def coordinator(db_session, clinic, settings, integration, busy_time_cache, now=None):
    store = BookingStore(db_session)
    return BookingCoordinator(
        store,
        clinic.id,
        settings,
        integration,
        BusyIntervalSource(clinic.id, integration, busy_time_cache),
        now_provider=fixed_now(now or at(WORKDAY, 8)),
    )


class TestBookingValidation:

    @pytest.mark.asyncio
    async def test_books_free_slot(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)

        result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30, notes="First visit")

        assert result.booking.id is not None
        assert result.booking.outcome == BookingOutcome.PENDING.value
        assert result.booking.completed is False
        assert result.booking.notes == "First visit"
        assert result.patient_status == PatientStatus.SCHEDULED
        assert result.warnings == []
        assert not result.succeeded_with_warnings

    @pytest.mark.asyncio
    async def test_start_off_the_grid_is_rejected(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)

        with pytest.raises(InvalidSlotError):
            await flow.book(patient.id, at(WORKDAY, 10, 5), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_closed_day_is_rejected(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)

        with pytest.raises(InvalidSlotError):
            await flow.book(patient.id, at(SUNDAY, 10), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_overlapping_local_booking_is_a_conflict(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)
        await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

        with pytest.raises(ConflictError, match="local"):
            await flow.book(patient.id, at(WORKDAY, 9, 45), BookingKind.MEETING, 30)

        assert db_session.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_touching_booking_is_not_a_conflict(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)
        await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

        result = await flow.book(patient.id, at(WORKDAY, 9, 30), BookingKind.APPOINTMENT, 30)

        assert result.booking.scheduled_at == at(WORKDAY, 9, 30)

    @pytest.mark.asyncio
    async def test_external_busy_time_is_a_conflict(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(busy_times=[BusyTime(at(WORKDAY, 11), at(WORKDAY, 12))])
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        with pytest.raises(ConflictError, match="external"):
            await flow.book(patient.id, at(WORKDAY, 11), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_revalidation_ignores_stale_cache(self, db_session, clinic, patient, settings, busy_time_cache):
        """Busy times cached before someone filled the calendar are not trusted."""
        busy_time_cache.put(clinic.id, WORKDAY, [])
        integration = calendar(busy_times=[BusyTime(at(WORKDAY, 10), at(WORKDAY, 10, 30))])
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        with pytest.raises(ConflictError):
            await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_started_slot_is_a_conflict(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache, now=at(WORKDAY, 10, 1))

        with pytest.raises(ConflictError, match="already started"):
            await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_calls_skip_slot_validation(self, db_session, clinic, patient, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)
        await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

        result = await flow.book(patient.id, at(SUNDAY, 20, 7), BookingKind.CALL, 10)

        assert result.booking.kind == "call"
        assert result.booking.outcome is None

    @pytest.mark.asyncio
    async def test_unknown_patient(self, db_session, clinic, settings, busy_time_cache):
        flow = coordinator(db_session, clinic, settings, calendar(connected=False), busy_time_cache)

        with pytest.raises(PatientNotFoundError):
            await flow.book(999, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_nothing_behind(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar()
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        with patch.object(flow.store, 'create_booking', side_effect=PersistenceError("database unavailable")):
            with pytest.raises(PersistenceError):
                await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        integration.create_event.assert_not_called()
        assert db_session.query(Booking).count() == 0


class TestCalendarMirror:

    @pytest.mark.asyncio
    async def test_meeting_is_mirrored(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(mirrored=MirroredEvent("evt-1", "https://meet.google.com/abc"))
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        assert result.warnings == []
        assert result.booking.external_event_id == "evt-1"
        assert result.booking.external_join_link == "https://meet.google.com/abc"
        booking_arg, contact = integration.create_event.call_args[0]
        assert booking_arg.id == result.booking.id
        assert contact == PatientContact(name="Test Patient", phone="+1234567890", email="patient@example.com")

    @pytest.mark.asyncio
    async def test_appointments_are_not_mirrored(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar()
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        await flow.book(patient.id, at(WORKDAY, 10), BookingKind.APPOINTMENT, 30)

        integration.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnected_calendar_is_not_mirrored(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(connected=False)
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        integration.create_event.assert_not_called()
        integration.list_busy_times.assert_not_called()
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_mirror_failure_is_a_warning(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(mirrored=None)
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        assert result.succeeded_with_warnings
        assert result.warnings[0].booking_id == result.booking.id
        assert result.booking.external_event_id is None
        assert db_session.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_mirror_exception_is_a_warning(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar()
        integration.create_event.side_effect = RuntimeError("connection reset")
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        assert len(result.warnings) == 1
        assert "connection reset" in result.warnings[0].message
        assert result.patient_status == PatientStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_mirror_invalidates_cached_busy_times(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(mirrored=MirroredEvent("evt-1"))
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        assert busy_time_cache.get(clinic.id, WORKDAY) is None

    @pytest.mark.asyncio
    async def test_unlinked_event_is_deleted(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(mirrored=MirroredEvent("evt-1"))
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        with patch.object(flow.store, 'set_external_event', side_effect=PersistenceError("database is locked")):
            result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        integration.delete_event.assert_awaited_once_with("evt-1")
        assert len(result.warnings) == 1
        assert "could not be linked" in result.warnings[0].message
        assert result.booking.external_event_id is None
        assert db_session.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_failed_cleanup_of_unlinked_event_still_warns(self, db_session, clinic, patient, settings, busy_time_cache):
        integration = calendar(mirrored=MirroredEvent("evt-1"))
        integration.delete_event.side_effect = RuntimeError("connection reset")
        flow = coordinator(db_session, clinic, settings, integration, busy_time_cache)

        with patch.object(flow.store, 'set_external_event', side_effect=PersistenceError("database is locked")):
            result = await flow.book(patient.id, at(WORKDAY, 10), BookingKind.MEETING, 30)

        assert len(result.warnings) == 1
        assert result.patient_status == PatientStatus.SCHEDULED
