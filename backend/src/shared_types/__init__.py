"""
Shared type definitions for the clinic CRM backend.

This module contains dataclasses and enums that are used across multiple services.
"""

from shared_types.availability import BusyTime, ConflictReason, TimeSlot
from shared_types.scheduling import (
    BookingKind, BookingOutcome, BookingResult, CalendarMirrorWarning,
    MirroredEvent, PatientContact, PatientStatus,
)

__all__ = [
    "BusyTime",
    "ConflictReason",
    "TimeSlot",
    "BookingKind",
    "BookingOutcome",
    "BookingResult",
    "CalendarMirrorWarning",
    "MirroredEvent",
    "PatientContact",
    "PatientStatus",
]
