"""
Slot generation for a single clinic day.

Builds the candidate grid of appointment start times inside the clinic's
working hours. Availability is not decided here; see OccupancyResolver.
"""

import logging
from datetime import date, timedelta, timezone
from typing import List

from models.clinic import WorkingHours
from shared_types.availability import TimeSlot
from utils.datetime_utils import (
    CLINIC_TZ, combine_clinic, parse_time_string, sunday_based_weekday,
)

logger = logging.getLogger(__name__)


class SlotGenerator:
    """Pure generator of a day's candidate start times."""

    @staticmethod
    def is_working_day(day: date, working_hours: WorkingHours) -> bool:
        return sunday_based_weekday(day) in working_hours.days_of_week

    @staticmethod
    def generate(
        day: date,
        working_hours: WorkingHours,
        duration_minutes: int,
        interval_minutes: int
    ) -> List[TimeSlot]:
        """
        Generate the ordered candidate slots for a day.

        The cursor starts at the opening time and advances by
        `interval_minutes`, not by the appointment length, so starts may be
        staggered. A slot is emitted only while cursor + duration still fits
        before closing time; no partial slots.

        Args:
            day: Calendar date in the clinic timezone
            working_hours: Opening window and open days
            duration_minutes: Appointment length
            interval_minutes: Distance between consecutive starts

        Returns:
            Slots in start order, all marked available. Empty for closed days.

        Raises:
            ValueError: If duration or interval is not positive
        """
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")

        if not SlotGenerator.is_working_day(day, working_hours):
            return []

        # Step in UTC so a DST change inside the window cannot skew the grid
        window_start = combine_clinic(day, parse_time_string(working_hours.start)).astimezone(timezone.utc)
        window_end = combine_clinic(day, parse_time_string(working_hours.end)).astimezone(timezone.utc)
        duration = timedelta(minutes=duration_minutes)
        interval = timedelta(minutes=interval_minutes)

        slots: List[TimeSlot] = []
        cursor = window_start
        while cursor + duration <= window_end:
            slots.append(TimeSlot(start=cursor.astimezone(CLINIC_TZ), duration_minutes=duration_minutes))
            cursor += interval

        return slots
