"""
Booking store: persistence of bookings and their outcome changes.

The only writer of the bookings table. Creation commits immediately; that
commit is the durability boundary of a booking flow. Storage failures are
raised as PersistenceError, and a clash on the active-slot unique index is
raised as ConflictError.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import BookingNotFoundError, ConflictError, PatientNotFoundError, PersistenceError
from models.booking import Booking
from models.patient import Patient
from shared_types.scheduling import BookingOutcome
from utils.datetime_utils import clinic_now

logger = logging.getLogger(__name__)


class BookingStore:
    """Booking persistence for one database session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_booking(self, clinic_id: int, patient_id: int, booking_fields: Dict[str, Any]) -> Booking:
        """
        Persist a new booking and commit.

        Args:
            clinic_id: Owning clinic
            patient_id: Owning patient
            booking_fields: Remaining Booking column values

        Returns:
            The committed booking, with its id assigned

        Raises:
            ConflictError: If another active booking already holds the same start
            PersistenceError: If the write fails for any other reason
        """
        booking = Booking(clinic_id=clinic_id, patient_id=patient_id, **booking_fields)
        try:
            self.db.add(booking)
            self.db.commit()
        except IntegrityError as e:
            logger.warning(f"Booking conflict for clinic {clinic_id} at {booking.scheduled_at}: {e}")
            self.db.rollback()
            raise ConflictError(booking.scheduled_at, "already booked")
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create booking for patient {patient_id}: {e}")
            self.db.rollback()
            raise PersistenceError(f"Failed to create booking: {e}") from e

        logger.info(f"Created {booking.kind} booking {booking.id} for patient {patient_id} at {booking.scheduled_at}")
        return booking

    def get_booking(self, booking_id: int, clinic_id: Optional[int] = None) -> Booking:
        """
        Raises:
            BookingNotFoundError: If no booking matches
            PersistenceError: If the read fails
        """
        try:
            query = self.db.query(Booking).filter(Booking.id == booking_id)
            if clinic_id is not None:
                query = query.filter(Booking.clinic_id == clinic_id)
            booking = query.first()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to load booking {booking_id}: {e}")
            raise PersistenceError(f"Failed to load booking: {e}") from e

        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def get_patient(self, patient_id: int, clinic_id: int) -> Patient:
        """
        Raises:
            PatientNotFoundError: If the patient does not belong to the clinic
            PersistenceError: If the read fails
        """
        try:
            patient = self.db.query(Patient).filter(
                Patient.id == patient_id,
                Patient.clinic_id == clinic_id
            ).first()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to load patient {patient_id}: {e}")
            raise PersistenceError(f"Failed to load patient: {e}") from e

        if patient is None:
            raise PatientNotFoundError(patient_id)
        return patient

    def list_bookings(self, patient_id: int) -> List[Booking]:
        """All bookings of a patient, oldest first."""
        try:
            return self.db.query(Booking).filter(
                Booking.patient_id == patient_id
            ).order_by(Booking.scheduled_at, Booking.id).all()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to list bookings for patient {patient_id}: {e}")
            raise PersistenceError(f"Failed to list bookings: {e}") from e

    def list_bookings_in_range(self, clinic_id: int, start: datetime, end: datetime) -> List[Booking]:
        """
        Clinic bookings whose scheduled start lies in [start, end).

        Callers widen `start` by the longest booking they expect so bookings
        that began before the range and run into it are included.
        """
        try:
            return self.db.query(Booking).filter(
                Booking.clinic_id == clinic_id,
                Booking.scheduled_at >= start,
                Booking.scheduled_at < end,
            ).order_by(Booking.scheduled_at).all()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to list bookings for clinic {clinic_id}: {e}")
            raise PersistenceError(f"Failed to list bookings: {e}") from e

    def update_booking_outcome(
        self,
        booking_id: int,
        outcome: BookingOutcome,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Set a booking's outcome.

        Marking a booking completed also sets `completed` and, if missing,
        `completed_at`; any other outcome clears both, so the completed flag
        and outcome never disagree.

        Raises:
            BookingNotFoundError: If the booking does not exist
            ValueError: If the booking kind does not carry an outcome
            ConflictError: If reopening clashes with another active booking
            PersistenceError: If the write fails
        """
        booking = self.get_booking(booking_id)
        if not booking.is_calendar_booking:
            raise ValueError(f"Bookings of kind '{booking.kind}' do not carry an outcome")

        booking.outcome = outcome.value
        if outcome == BookingOutcome.COMPLETED:
            booking.completed = True
            if booking.completed_at is None:
                booking.completed_at = now or clinic_now()
        else:
            booking.completed = False
            booking.completed_at = None

        self._commit(booking, f"Failed to update outcome of booking {booking_id}")
        logger.info(f"Booking {booking_id} outcome set to {outcome.value}")
        return booking

    def complete_booking(self, booking_id: int, completed_at: Optional[datetime] = None) -> Booking:
        """
        Mark a booking as done.

        Calendar bookings also get outcome `completed`.

        Raises:
            BookingNotFoundError: If the booking does not exist
            PersistenceError: If the write fails
        """
        booking = self.get_booking(booking_id)
        booking.completed = True
        booking.completed_at = completed_at or clinic_now()
        if booking.is_calendar_booking:
            booking.outcome = BookingOutcome.COMPLETED.value

        self._commit(booking, f"Failed to complete booking {booking_id}")
        logger.info(f"Booking {booking_id} completed")
        return booking

    def set_external_event(
        self,
        booking_id: int,
        external_event_id: Optional[str],
        join_link: Optional[str] = None
    ) -> Booking:
        """Record (or clear) the mirrored calendar event of a booking."""
        booking = self.get_booking(booking_id)
        booking.external_event_id = external_event_id
        booking.external_join_link = join_link
        self._commit(booking, f"Failed to store calendar event for booking {booking_id}")
        return booking

    def _commit(self, booking: Booking, error_message: str) -> None:
        slot_start = booking.scheduled_at
        try:
            self.db.commit()
        except IntegrityError as e:
            logger.warning(f"{error_message}: booking conflict at {slot_start}: {e}")
            self.db.rollback()
            raise ConflictError(slot_start, "already booked")
        except SQLAlchemyError as e:
            logger.exception(f"{error_message}: {e}")
            self.db.rollback()
            raise PersistenceError(f"{error_message}: {e}") from e
