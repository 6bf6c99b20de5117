"""
Scheduling service: the entry point for availability and booking actions.

Composes slot generation, occupancy resolution, booking creation and status
derivation for one clinic. Every collaborator is injected, so each piece can
be replaced in tests.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import ConflictError
from models.booking import Booking
from services.booking_coordinator import BookingCoordinator, local_bookings_for_day
from services.booking_store import BookingStore
from services.busy_interval_source import BusyIntervalSource, BusyTimeCache
from services.calendar_integration import CalendarIntegration, GoogleCalendarIntegration
from services.occupancy_resolver import OccupancyResolver
from services.settings_service import SettingsService
from services.slot_generator import SlotGenerator
from services.status_derivation import StatusDerivationEngine
from shared_types.availability import ConflictReason, TimeSlot
from shared_types.scheduling import (
    OPEN_OUTCOMES, BookingKind, BookingOutcome, BookingResult, CalendarMirrorWarning, PatientStatus,
)
from utils.datetime_utils import clinic_now, ensure_clinic_tz

logger = logging.getLogger(__name__)


class SchedulingService:
    """
    Availability and booking lifecycle for one clinic.

    Args:
        db: Database session
        clinic_id: Clinic ID
        calendar: Calendar integration; built from the clinic's stored
            credentials when omitted
        now_provider: Source of the current instant
        busy_time_cache: Cache for busy ranges; the process-wide cache when omitted
    """

    def __init__(
        self,
        db: Session,
        clinic_id: int,
        calendar: Optional[CalendarIntegration] = None,
        now_provider: Callable[[], datetime] = clinic_now,
        busy_time_cache: Optional[BusyTimeCache] = None
    ) -> None:
        self.db = db
        self.clinic = SettingsService.get_clinic(db, clinic_id)
        self.clinic_id = clinic_id
        self.settings = SettingsService.get_scheduling_settings(db, clinic_id)
        self.calendar = calendar if calendar is not None else GoogleCalendarIntegration.for_clinic(self.clinic)
        self.now_provider = now_provider
        self.store = BookingStore(db)
        self.busy_source = BusyIntervalSource(clinic_id, self.calendar, busy_time_cache)
        self.coordinator = BookingCoordinator(
            self.store, clinic_id, self.settings, self.calendar, self.busy_source, now_provider
        )

    def resolve_duration(self, duration_minutes: Optional[int] = None, treatment_id: Optional[int] = None) -> int:
        """Explicit duration, else the treatment's, else the clinic default."""
        if duration_minutes is not None:
            if duration_minutes <= 0:
                raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
            return duration_minutes
        return SettingsService.get_treatment_duration(
            self.db, self.clinic_id, treatment_id, self.settings.default_duration_minutes
        )

    async def get_slots(
        self,
        day: date,
        duration_minutes: Optional[int] = None,
        treatment_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[TimeSlot]:
        """
        Slots for a day with availability attributed.

        Closed days return an empty list without touching the calendar.
        """
        duration = self.resolve_duration(duration_minutes, treatment_id)
        slots = SlotGenerator.generate(
            day, self.settings.working_hours, duration, self.settings.slot_interval_minutes
        )
        if not slots:
            return []

        busy_times = await self.busy_source.fetch_day(day)
        local_bookings = local_bookings_for_day(self.store, self.clinic_id, day)
        return OccupancyResolver.resolve(slots, local_bookings, busy_times, now or self.now_provider())

    async def book(
        self,
        patient_id: int,
        slot_start: datetime,
        kind: BookingKind,
        duration_minutes: Optional[int] = None,
        notes: Optional[str] = None,
        treatment_id: Optional[int] = None
    ) -> BookingResult:
        """See BookingCoordinator.book."""
        duration = self.resolve_duration(duration_minutes, treatment_id)
        return await self.coordinator.book(
            patient_id, slot_start, kind, duration, notes=notes, treatment_id=treatment_id
        )

    def get_patient_status(self, patient_id: int, now: Optional[datetime] = None) -> PatientStatus:
        """Derive the patient's current lifecycle status."""
        patient = self.store.get_patient(patient_id, self.clinic_id)
        return StatusDerivationEngine.derive(self.store.list_bookings(patient.id), now or self.now_provider())

    def list_patient_bookings(self, patient_id: int) -> List[Booking]:
        patient = self.store.get_patient(patient_id, self.clinic_id)
        return self.store.list_bookings(patient.id)

    def complete_booking(self, booking_id: int) -> BookingResult:
        """Mark a booking completed and re-derive its patient's status."""
        self.store.get_booking(booking_id, clinic_id=self.clinic_id)
        now = self.now_provider()
        booking = self.store.complete_booking(booking_id, completed_at=now)
        return self._result(booking, now)

    async def update_outcome(self, booking_id: int, outcome: BookingOutcome) -> BookingResult:
        """
        Set a booking's outcome and re-derive its patient's status.

        Cancelling a mirrored booking also deletes its calendar event. The
        cancellation stands if that delete fails; the failure comes back as
        a warning and the stale event is ignored by slot queries.

        Reopening a booking that no longer holds its slot (cancelled, no-show
        or completed) checks the slot again first.

        Raises:
            ConflictError: If the reopened booking would overlap another
                active booking or an external busy range
        """
        outcome = BookingOutcome(outcome)
        booking = self.store.get_booking(booking_id, clinic_id=self.clinic_id)
        if outcome.value in OPEN_OUTCOMES and booking.is_calendar_booking and not booking.blocks_calendar:
            await self._ensure_slot_free(booking)
        now = self.now_provider()
        booking = self.store.update_booking_outcome(booking_id, outcome, now=now)

        warnings: List[CalendarMirrorWarning] = []
        if (
            outcome == BookingOutcome.CANCELLED
            and booking.external_event_id
            and self.calendar.is_connected()
        ):
            try:
                await self.calendar.delete_event(booking.external_event_id)
                self.store.set_external_event(booking.id, None)
                self.busy_source.cache.invalidate(self.clinic_id, ensure_clinic_tz(booking.scheduled_at).date())
            except Exception as e:
                logger.warning(f"Booking {booking.id} cancelled but its calendar event was not deleted: {e}")
                warnings.append(CalendarMirrorWarning(
                    booking_id=booking.id,
                    message=f"Calendar event could not be deleted: {e}",
                ))

        return self._result(booking, now, warnings)

    async def _ensure_slot_free(self, booking: Booking) -> None:
        day = ensure_clinic_tz(booking.scheduled_at).date()
        busy_times = await self.busy_source.fetch_day(day, force_refresh=True)
        # The booking itself does not block yet; its own mirrored event is skipped as local
        local_bookings = local_bookings_for_day(self.store, self.clinic_id, day)
        reason = OccupancyResolver.conflict_reason_for(
            booking.scheduled_at, booking.end_at, local_bookings, busy_times
        )
        if reason != ConflictReason.NONE:
            logger.info(f"Booking {booking.id} cannot be reopened: {reason.value} conflict")
            raise ConflictError(booking.scheduled_at, f"{reason.value} conflict")

    def _result(
        self,
        booking: Booking,
        now: datetime,
        warnings: Optional[List[CalendarMirrorWarning]] = None
    ) -> BookingResult:
        status = StatusDerivationEngine.derive(self.store.list_bookings(booking.patient_id), now)
        return BookingResult(booking=booking, patient_status=status, warnings=warnings or [])
