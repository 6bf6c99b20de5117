"""
Shared types for availability-related functionality.

These are transient view objects: slots and busy intervals are recomputed
per query and never persisted.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional


class ConflictReason(str, Enum):
    """Why a slot is not bookable. NONE covers both free and past slots."""
    NONE = "none"
    LOCAL = "local"
    EXTERNAL = "external"


@dataclass(frozen=True)
class BusyTime:
    """
    An externally-owned occupied range [start, end). Read-only to scheduling.

    `source_event_id` is the external event behind the range, when known; it
    lets a mirrored copy of a local booking be recognised.
    """
    start: datetime
    end: datetime
    source_event_id: Optional[str] = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


@dataclass
class TimeSlot:
    """
    A candidate appointment start for one day.

    `start` is an absolute instant; `time` and `date` are its clinic
    wall-clock rendering. `available` is False for past slots and for
    conflicting slots; only conflicts set `conflict_reason`.
    """
    start: datetime
    duration_minutes: int
    available: bool = True
    conflict_reason: ConflictReason = ConflictReason.NONE

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def time(self) -> str:
        """Start time as HH:MM."""
        return self.start.strftime("%H:%M")

    @property
    def date(self) -> date:
        return self.start.date()
