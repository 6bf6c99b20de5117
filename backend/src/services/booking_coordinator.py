"""
Booking coordinator: the booking creation flow.

Steps run strictly in order and are never retried:
1. re-validate the chosen slot against fresh local and external occupancy
2. persist the booking (durability boundary)
3. mirror meetings to the connected calendar; failures become warnings
4. re-derive the patient's status

Failures in steps 1 and 2 raise and leave nothing behind. Once step 2 has
committed, the booking stands even if the mirror is missing.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from core.exceptions import ConflictError, InvalidSlotError, SchedulingError
from models.booking import Booking
from models.clinic import SchedulingSettings
from models.patient import Patient
from services.booking_store import BookingStore
from services.busy_interval_source import BusyIntervalSource
from services.calendar_integration import CalendarIntegration
from services.occupancy_resolver import OccupancyResolver
from services.slot_generator import SlotGenerator
from services.status_derivation import StatusDerivationEngine
from shared_types.availability import ConflictReason
from shared_types.scheduling import (
    BookingKind, BookingOutcome, BookingResult, CalendarMirrorWarning, PatientContact,
)
from utils.datetime_utils import clinic_now, day_bounds, ensure_clinic_tz

logger = logging.getLogger(__name__)

# Bookings that start this long before a day can still run into it
BOOKING_LOOKBACK = timedelta(days=1)


def local_bookings_for_day(store: BookingStore, clinic_id: int, day: date) -> List[Booking]:
    """Clinic bookings that may overlap any slot of the day."""
    day_start, day_end = day_bounds(day)
    return store.list_bookings_in_range(clinic_id, day_start - BOOKING_LOOKBACK, day_end)


class BookingCoordinator:
    """Creates bookings for one clinic."""

    def __init__(
        self,
        store: BookingStore,
        clinic_id: int,
        settings: SchedulingSettings,
        integration: CalendarIntegration,
        busy_source: BusyIntervalSource,
        now_provider: Callable[[], datetime] = clinic_now
    ) -> None:
        self.store = store
        self.clinic_id = clinic_id
        self.settings = settings
        self.integration = integration
        self.busy_source = busy_source
        self.now_provider = now_provider

    async def book(
        self,
        patient_id: int,
        slot_start: datetime,
        kind: BookingKind,
        duration_minutes: int,
        notes: Optional[str] = None,
        treatment_id: Optional[int] = None
    ) -> BookingResult:
        """
        Book a slot for a patient.

        Calls, messages and emails do not occupy the calendar, so they skip
        the slot check and are stored without an outcome.

        Args:
            patient_id: Patient to book for
            slot_start: Chosen start instant (naive values are clinic time)
            kind: Booking kind
            duration_minutes: Booking length
            notes: Optional staff notes
            treatment_id: Optional treatment the booking is for

        Returns:
            BookingResult with the persisted booking, the re-derived patient
            status and any calendar mirror warnings

        Raises:
            PatientNotFoundError: If the patient is not in this clinic
            InvalidSlotError: If the start is not on the day's slot grid
            ConflictError: If the slot is taken, or has already started
            PersistenceError: If the booking could not be stored
        """
        kind = BookingKind(kind)
        slot_start = ensure_clinic_tz(slot_start)
        now = self.now_provider()

        patient = self.store.get_patient(patient_id, self.clinic_id)
        is_calendar_kind = kind in (BookingKind.APPOINTMENT, BookingKind.MEETING)

        if is_calendar_kind:
            await self._validate_slot(slot_start, duration_minutes, now)

        booking = self.store.create_booking(self.clinic_id, patient.id, {
            "kind": kind.value,
            "scheduled_at": slot_start,
            "duration_minutes": duration_minutes,
            "treatment_id": treatment_id,
            "notes": notes,
            "completed": False,
            "outcome": BookingOutcome.PENDING.value if is_calendar_kind else None,
        })

        warnings: List[CalendarMirrorWarning] = []
        if kind == BookingKind.MEETING and self.integration.is_connected():
            warning = await self._mirror(booking, patient)
            if warning:
                warnings.append(warning)

        status = StatusDerivationEngine.derive(self.store.list_bookings(patient.id), now)
        return BookingResult(booking=booking, patient_status=status, warnings=warnings)

    async def _validate_slot(self, slot_start: datetime, duration_minutes: int, now: datetime) -> None:
        day = slot_start.date()
        grid = SlotGenerator.generate(
            day,
            self.settings.working_hours,
            duration_minutes,
            self.settings.slot_interval_minutes,
        )
        slot = OccupancyResolver.find_slot(grid, slot_start)
        if slot is None:
            raise InvalidSlotError(
                f"{slot_start.isoformat()} is not a bookable start time for a "
                f"{duration_minutes}-minute booking"
            )

        busy_times = await self.busy_source.fetch_day(day, force_refresh=True)
        local_bookings = local_bookings_for_day(self.store, self.clinic_id, day)
        resolved = OccupancyResolver.resolve([slot], local_bookings, busy_times, now)[0]

        if resolved.available:
            return
        if resolved.conflict_reason == ConflictReason.NONE:
            raise ConflictError(slot_start, "slot has already started")
        raise ConflictError(slot_start, f"{resolved.conflict_reason.value} conflict")

    async def _mirror(self, booking: Booking, patient: Patient) -> Optional[CalendarMirrorWarning]:
        """
        Create the calendar copy of a booking; any failure becomes a warning.

        An event that was created but could not be linked to the booking is
        deleted again, so it does not later show up as an external busy range.
        """
        contact = PatientContact(name=patient.full_name, phone=patient.phone_number, email=patient.email)
        try:
            mirrored = await self.integration.create_event(booking, contact)
        except Exception as e:
            return self._mirror_warning(booking, f"Calendar event could not be created: {e}")
        if mirrored is None:
            return self._mirror_warning(booking, "Calendar event could not be created")

        try:
            self.store.set_external_event(booking.id, mirrored.external_event_id, mirrored.join_link)
        except SchedulingError as e:
            await self._discard_event(booking, mirrored.external_event_id)
            return self._mirror_warning(
                booking, f"Calendar event was created but could not be linked to the booking: {e}"
            )

        self.busy_source.cache.invalidate(self.clinic_id, ensure_clinic_tz(booking.scheduled_at).date())
        return None

    async def _discard_event(self, booking: Booking, external_event_id: str) -> None:
        try:
            await self.integration.delete_event(external_event_id)
        except Exception as e:
            logger.error(f"Unlinked calendar event {external_event_id} of booking {booking.id} was not deleted: {e}")

    def _mirror_warning(self, booking: Booking, message: str) -> CalendarMirrorWarning:
        logger.warning(f"Booking {booking.id} saved without calendar mirror: {message}")
        return CalendarMirrorWarning(booking_id=booking.id, message=message)
