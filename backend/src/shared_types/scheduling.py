"""
Shared types for bookings, outcomes and derived patient status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from models.booking import Booking


class BookingKind(str, Enum):
    CALL = "call"
    MESSAGE = "message"
    EMAIL = "email"
    MEETING = "meeting"
    APPOINTMENT = "appointment"


class BookingOutcome(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


class PatientStatus(str, Enum):
    """Lifecycle label derived from a patient's bookings. Never stored."""
    NEW = "new"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOST = "lost"


# Kinds that occupy the clinic calendar and feed status derivation (stored values)
CALENDAR_KINDS = frozenset({BookingKind.APPOINTMENT.value, BookingKind.MEETING.value})

OPEN_OUTCOMES = frozenset({BookingOutcome.PENDING.value, BookingOutcome.CONFIRMED.value})
TERMINAL_OUTCOMES = frozenset({
    BookingOutcome.COMPLETED.value, BookingOutcome.NO_SHOW.value, BookingOutcome.CANCELLED.value,
})


@dataclass(frozen=True)
class PatientContact:
    """Patient details copied into a mirrored calendar event."""
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class MirroredEvent:
    """Identifiers of a booking's copy in the external calendar."""
    external_event_id: str
    join_link: Optional[str] = None


@dataclass(frozen=True)
class CalendarMirrorWarning:
    """The booking exists but its external calendar copy could not be created."""
    booking_id: int
    message: str


@dataclass
class BookingResult:
    """
    Outcome of a successful booking flow.

    A result always carries a persisted booking; hard failures are raised
    instead. Mirror problems show up in `warnings`.
    """
    booking: "Booking"
    patient_status: PatientStatus
    warnings: List[CalendarMirrorWarning] = field(default_factory=list)

    @property
    def succeeded_with_warnings(self) -> bool:
        return bool(self.warnings)
