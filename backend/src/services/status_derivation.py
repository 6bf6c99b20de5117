"""
Patient lifecycle status derived from booking history.

Status is never stored. It is a pure function of the patient's meeting and
appointment bookings and the evaluation time, recomputed on every read.
"""

from datetime import datetime, timedelta
from typing import Iterable

from core.constants import ACTIVE_WINDOW_DAYS
from models.booking import Booking
from shared_types.scheduling import BookingOutcome, PatientStatus


class StatusDerivationEngine:
    """
    Derive a patient's status from their bookings.

    Priority: scheduled > active > lost > inactive > new.
    """

    @staticmethod
    def derive(bookings: Iterable[Booking], now: datetime) -> PatientStatus:
        """
        Compute the lifecycle status.

        Calls, messages and emails are ignored. A calendar booking with a
        missing or unknown outcome counts as pending. A completed booking
        without `completed_at` never counts as recent.

        Args:
            bookings: All of the patient's bookings (any kind)
            now: Evaluation instant

        Returns:
            The derived PatientStatus
        """
        outcomes = []
        recent_completion = False
        window_start = now - timedelta(days=ACTIVE_WINDOW_DAYS)

        for booking in bookings:
            outcome = booking.effective_outcome
            if outcome is None:
                continue
            outcomes.append(outcome)
            if (
                outcome == BookingOutcome.COMPLETED
                and booking.completed_at is not None
                and booking.completed_at >= window_start
            ):
                recent_completion = True

        if not outcomes:
            return PatientStatus.NEW

        if any(o in (BookingOutcome.PENDING, BookingOutcome.CONFIRMED) for o in outcomes):
            return PatientStatus.SCHEDULED

        if recent_completion:
            return PatientStatus.ACTIVE

        has_completed = BookingOutcome.COMPLETED in outcomes
        if not has_completed and any(o in (BookingOutcome.NO_SHOW, BookingOutcome.CANCELLED) for o in outcomes):
            return PatientStatus.LOST

        return PatientStatus.INACTIVE
