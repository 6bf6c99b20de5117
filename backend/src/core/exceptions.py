"""
Scheduling error taxonomy.

ConflictError and PersistenceError abort a booking flow. Calendar mirror
failures are not raised; they travel as CalendarMirrorWarning values on the
booking result (see shared_types.scheduling).
"""

from datetime import datetime
from typing import Optional


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling subsystem."""
    pass


class ConflictError(SchedulingError):
    """
    The chosen slot became unavailable between query and submit.

    Recoverable by re-querying slots and letting the user pick again.
    Never retried automatically.
    """

    def __init__(self, slot_start: datetime, reason: Optional[str] = None) -> None:
        self.slot_start = slot_start
        self.reason = reason
        message = f"Slot {slot_start.isoformat()} is no longer available"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class PersistenceError(SchedulingError):
    """The booking store could not read or write; no booking was created."""
    pass


class BookingNotFoundError(SchedulingError):
    """Raised when an outcome/completion action targets an unknown booking."""

    def __init__(self, booking_id: int) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class InvalidSlotError(ValueError):
    """The requested start time is not on the day's generated slot grid."""
    pass


class PatientNotFoundError(SchedulingError):
    """Raised when a booking or status read targets an unknown patient."""

    def __init__(self, patient_id: int) -> None:
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found")


class ClinicNotFoundError(SchedulingError):

    def __init__(self, clinic_id: int) -> None:
        self.clinic_id = clinic_id
        super().__init__(f"Clinic {clinic_id} not found")
