"""
Booking model representing a scheduled interaction with a patient.

Bookings are created by the booking coordinator and mutated only by the
explicit completion and outcome actions. Meetings and in-person
appointments occupy the clinic calendar; calls, messages and emails do not.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import String, ForeignKey, Index, Integer, Boolean, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_NOTES_LENGTH
from core.database import AwareDateTime, Base
from shared_types.scheduling import (
    BookingKind, BookingOutcome, CALENDAR_KINDS, TERMINAL_OUTCOMES,
)


# Active calendar bookings; shared by the unique index on both dialects
_ACTIVE_SLOT_PREDICATE = text(
    "kind IN ('appointment', 'meeting') AND outcome IN ('pending', 'confirmed')"
)


class Booking(Base):
    """
    A locally persisted booking.

    `outcome` is set by staff (confirmed, completed, no_show, cancelled) and
    is the only input to patient status derivation.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"))

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"))

    treatment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("treatments.id"), nullable=True)

    kind: Mapped[str] = mapped_column(String(20))
    """One of 'call', 'message', 'email', 'meeting', 'appointment'."""

    scheduled_at: Mapped[datetime] = mapped_column(AwareDateTime)

    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)

    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    completed_at: Mapped[Optional[datetime]] = mapped_column(AwareDateTime, nullable=True)

    outcome: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """'pending', 'confirmed', 'completed', 'no_show', 'cancelled'. NULL for calls, messages and emails."""

    notes: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)

    external_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Google Calendar event id of the mirrored copy, if one was created."""

    external_join_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    """Google Meet link generated with the mirrored event."""

    created_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)

    patient = relationship("Patient", back_populates="bookings")

    @property
    def end_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_calendar_booking(self) -> bool:
        kind = self.kind.value if isinstance(self.kind, BookingKind) else self.kind
        return kind in CALENDAR_KINDS

    @property
    def effective_outcome(self) -> Optional[BookingOutcome]:
        """
        Outcome used for derivation.

        A calendar booking whose outcome is missing or unrecognised counts as
        pending, so a malformed row never breaks a read path.
        """
        if not self.is_calendar_booking:
            return None
        try:
            return BookingOutcome(self.outcome)
        except ValueError:
            return BookingOutcome.PENDING

    @property
    def blocks_calendar(self) -> bool:
        """Whether this booking occupies its time range for new bookings."""
        if not self.is_calendar_booking or self.completed:
            return False
        outcome = self.effective_outcome
        return outcome is None or outcome.value not in TERMINAL_OUTCOMES

    __table_args__ = (
        Index('idx_bookings_patient', 'patient_id'),
        Index('idx_bookings_clinic_scheduled', 'clinic_id', 'scheduled_at'),
        # Two staff members racing for the same start time: only one insert wins
        Index(
            'uq_bookings_active_slot', 'clinic_id', 'scheduled_at',
            unique=True,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
        ),
    )
