"""
Occupancy resolution for candidate slots.

Marks each slot available or not and attributes why: a local booking, or a
busy range in the external calendar. Local bookings are authoritative and
win attribution when both apply, so a locally cancelled meeting frees its
slot even while its mirrored event still exists.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set

from models.booking import Booking
from shared_types.availability import BusyTime, ConflictReason, TimeSlot

logger = logging.getLogger(__name__)


class OccupancyResolver:
    """Conflict detection between slots, local bookings and busy ranges."""

    @staticmethod
    def check_time_overlap(
        start1: datetime,
        end1: datetime,
        start2: datetime,
        end2: datetime
    ) -> bool:
        """
        Check if two half-open time ranges overlap.

        Ranges that only touch (end1 == start2) do not overlap.
        """
        return start1 < end2 and start2 < end1

    @staticmethod
    def conflict_reason_for(
        start: datetime,
        end: datetime,
        local_bookings: Iterable[Booking],
        busy_times: Iterable[BusyTime]
    ) -> ConflictReason:
        """
        Attribute the conflict of a single range.

        Only bookings that still block the calendar count: meetings and
        appointments that are neither completed, cancelled nor no-shows.
        Busy ranges that are the mirrored copy of a local booking are
        ignored; the local row decides for them.
        """
        bookings = list(local_bookings)

        for booking in bookings:
            if booking.blocks_calendar and OccupancyResolver.check_time_overlap(
                start, end, booking.scheduled_at, booking.end_at
            ):
                return ConflictReason.LOCAL

        mirrored_ids: Set[str] = {
            booking.external_event_id for booking in bookings if booking.external_event_id
        }
        for busy in busy_times:
            if busy.source_event_id and busy.source_event_id in mirrored_ids:
                continue
            if busy.overlaps(start, end):
                return ConflictReason.EXTERNAL

        return ConflictReason.NONE

    @staticmethod
    def resolve(
        slots: Sequence[TimeSlot],
        local_bookings: Iterable[Booking],
        busy_times: Iterable[BusyTime],
        now: datetime
    ) -> List[TimeSlot]:
        """
        Attribute availability to every slot.

        A slot that has already started is unavailable but keeps reason NONE;
        being in the past is not a conflict. Conflicts are still attributed
        for past slots. Input slots are not modified.

        Args:
            slots: Candidate slots from SlotGenerator
            local_bookings: Clinic bookings that may overlap the slots
            busy_times: External busy ranges (empty when no calendar is connected)
            now: Evaluation instant

        Returns:
            New slots, same order, with `available` and `conflict_reason` set
        """
        bookings = list(local_bookings)
        busy = list(busy_times)

        resolved: List[TimeSlot] = []
        for slot in slots:
            reason = OccupancyResolver.conflict_reason_for(slot.start, slot.end, bookings, busy)
            is_past = now > slot.start
            resolved.append(replace(
                slot,
                available=reason == ConflictReason.NONE and not is_past,
                conflict_reason=reason,
            ))

        logger.debug(
            f"Resolved {len(resolved)} slots: "
            f"{sum(1 for s in resolved if s.available)} available"
        )
        return resolved

    @staticmethod
    def find_slot(slots: Sequence[TimeSlot], start: datetime) -> Optional[TimeSlot]:
        """Return the slot starting at the given instant, if any."""
        for slot in slots:
            if slot.start == start:
                return slot
        return None
