"""
Unit tests for occupancy resolution.

Covers half-open overlap semantics, conflict attribution priority, past
slots, terminal booking outcomes and mirrored external events.
"""

from datetime import timedelta
from hypothesis import given, settings, strategies as st

from models.clinic import WorkingHours
from services.occupancy_resolver import OccupancyResolver
from services.slot_generator import SlotGenerator
from shared_types.availability import BusyTime, ConflictReason
from shared_types.scheduling import BookingKind, BookingOutcome
from tests.conftest import WORKDAY, at, make_booking

EARLY_MORNING = at(WORKDAY, 6)


def quarter_hour_slots():
    hours = WorkingHours(start="09:00", end="12:00", days_of_week=[1])
    return SlotGenerator.generate(WORKDAY, hours, duration_minutes=30, interval_minutes=15)


def by_time(slots):
    return {slot.time: slot for slot in slots}


class TestTimeOverlap:

    def test_overlapping_ranges(self):
        assert OccupancyResolver.check_time_overlap(at(WORKDAY, 9, 45), at(WORKDAY, 10, 15), at(WORKDAY, 10), at(WORKDAY, 10, 30))

    def test_touching_ranges_do_not_overlap(self):
        assert not OccupancyResolver.check_time_overlap(at(WORKDAY, 9, 30), at(WORKDAY, 10), at(WORKDAY, 10), at(WORKDAY, 10, 30))
        assert not OccupancyResolver.check_time_overlap(at(WORKDAY, 10, 30), at(WORKDAY, 11), at(WORKDAY, 10), at(WORKDAY, 10, 30))

    def test_contained_range_overlaps(self):
        assert OccupancyResolver.check_time_overlap(at(WORKDAY, 9), at(WORKDAY, 12), at(WORKDAY, 10), at(WORKDAY, 10, 5))


class TestLocalConflicts:

    def test_booking_blocks_overlapping_slots_only(self):
        """A 10:00-10:30 booking blocks 09:45 but not the boundary-touching 09:30."""
        booking = make_booking(at(WORKDAY, 10), duration_minutes=30)

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [], EARLY_MORNING))

        assert resolved["09:30"].available
        assert resolved["09:30"].conflict_reason == ConflictReason.NONE
        assert not resolved["09:45"].available
        assert resolved["09:45"].conflict_reason == ConflictReason.LOCAL
        assert not resolved["10:00"].available
        assert not resolved["10:15"].available
        assert resolved["10:30"].available

    def test_meetings_block_too(self):
        booking = make_booking(at(WORKDAY, 11), kind=BookingKind.MEETING)

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [], EARLY_MORNING))

        assert resolved["11:00"].conflict_reason == ConflictReason.LOCAL

    def test_calls_messages_and_emails_do_not_block(self):
        bookings = [
            make_booking(at(WORKDAY, 10), kind=kind, outcome=None)
            for kind in (BookingKind.CALL, BookingKind.MESSAGE, BookingKind.EMAIL)
        ]

        resolved = OccupancyResolver.resolve(quarter_hour_slots(), bookings, [], EARLY_MORNING)

        assert all(slot.available for slot in resolved)

    def test_completed_and_terminal_bookings_free_the_slot(self):
        bookings = [
            make_booking(at(WORKDAY, 10), outcome=BookingOutcome.CANCELLED),
            make_booking(at(WORKDAY, 10), outcome=BookingOutcome.NO_SHOW),
            make_booking(at(WORKDAY, 10), outcome=BookingOutcome.COMPLETED, completed=True, completed_at=at(WORKDAY, 10, 30)),
            make_booking(at(WORKDAY, 10), outcome=BookingOutcome.CONFIRMED, completed=True),
        ]

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), bookings, [], EARLY_MORNING))

        assert resolved["10:00"].available

    def test_confirmed_booking_blocks(self):
        booking = make_booking(at(WORKDAY, 10), outcome=BookingOutcome.CONFIRMED)

        assert OccupancyResolver.conflict_reason_for(
            at(WORKDAY, 10), at(WORKDAY, 10, 30), [booking], []
        ) == ConflictReason.LOCAL

    def test_missing_outcome_counts_as_pending(self):
        booking = make_booking(at(WORKDAY, 10), outcome=None)

        assert OccupancyResolver.conflict_reason_for(
            at(WORKDAY, 10), at(WORKDAY, 10, 30), [booking], []
        ) == ConflictReason.LOCAL


class TestExternalConflicts:

    def test_busy_time_blocks_with_external_reason(self):
        busy = BusyTime(start=at(WORKDAY, 11), end=at(WORKDAY, 11, 20))

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [], [busy], EARLY_MORNING))

        assert resolved["10:30"].available
        assert resolved["10:45"].conflict_reason == ConflictReason.EXTERNAL
        assert resolved["11:15"].conflict_reason == ConflictReason.EXTERNAL
        assert resolved["11:30"].available

    def test_local_conflict_wins_attribution(self):
        booking = make_booking(at(WORKDAY, 10))
        busy = BusyTime(start=at(WORKDAY, 9, 30), end=at(WORKDAY, 11))

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [busy], EARLY_MORNING))

        assert resolved["10:00"].conflict_reason == ConflictReason.LOCAL
        assert resolved["09:30"].conflict_reason == ConflictReason.EXTERNAL

    def test_mirrored_event_of_cancelled_booking_is_ignored(self):
        """A local cancellation frees the slot before the calendar copy is deleted."""
        booking = make_booking(at(WORKDAY, 10), kind=BookingKind.MEETING,
                               outcome=BookingOutcome.CANCELLED, external_event_id="evt-1")
        busy = BusyTime(start=at(WORKDAY, 10), end=at(WORKDAY, 10, 30), source_event_id="evt-1")

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [busy], EARLY_MORNING))

        assert resolved["10:00"].available

    def test_unrelated_event_still_blocks(self):
        booking = make_booking(at(WORKDAY, 10), outcome=BookingOutcome.CANCELLED, external_event_id="evt-1")
        busy = BusyTime(start=at(WORKDAY, 10), end=at(WORKDAY, 10, 30), source_event_id="evt-2")

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [busy], EARLY_MORNING))

        assert resolved["10:00"].conflict_reason == ConflictReason.EXTERNAL

    def test_empty_external_set_leaves_local_decision(self):
        """With no calendar connected only local bookings matter."""
        booking = make_booking(at(WORKDAY, 9))

        resolved = OccupancyResolver.resolve(quarter_hour_slots(), [booking], [], EARLY_MORNING)

        unavailable = [s.time for s in resolved if not s.available]
        assert unavailable == ["09:00", "09:15"]
        assert all(s.conflict_reason == ConflictReason.LOCAL for s in resolved if not s.available)


class TestPastSlots:

    def test_started_slots_are_unavailable_without_reason(self):
        now = at(WORKDAY, 10, 5)

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [], [], now))

        assert not resolved["10:00"].available
        assert resolved["10:00"].conflict_reason == ConflictReason.NONE
        assert resolved["10:15"].available

    def test_slot_starting_now_is_still_bookable(self):
        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [], [], at(WORKDAY, 10)))

        assert resolved["10:00"].available

    def test_past_slot_keeps_conflict_reason(self):
        booking = make_booking(at(WORKDAY, 9))

        resolved = by_time(OccupancyResolver.resolve(quarter_hour_slots(), [booking], [], at(WORKDAY, 11)))

        assert resolved["09:00"].conflict_reason == ConflictReason.LOCAL
        assert not resolved["09:00"].available


class TestResolveContract:

    def test_input_slots_are_not_modified(self):
        slots = quarter_hour_slots()
        booking = make_booking(at(WORKDAY, 9))

        OccupancyResolver.resolve(slots, [booking], [], EARLY_MORNING)

        assert all(s.available for s in slots)

    def test_find_slot(self):
        slots = quarter_hour_slots()

        assert OccupancyResolver.find_slot(slots, at(WORKDAY, 9, 45)).time == "09:45"
        assert OccupancyResolver.find_slot(slots, at(WORKDAY, 9, 50)) is None


interval_offsets = st.tuples(
    st.integers(min_value=0, max_value=12 * 60),
    st.integers(min_value=1, max_value=180),
)


class TestOverlapProperties:

    @settings(max_examples=200, deadline=None)
    @given(
        local=st.lists(interval_offsets, max_size=4),
        external=st.lists(interval_offsets, max_size=4),
    )
    def test_unavailable_iff_overlapping(self, local, external):
        base = at(WORKDAY, 6)
        bookings = [make_booking(base + timedelta(minutes=o), duration_minutes=d) for o, d in local]
        busy = [BusyTime(base + timedelta(minutes=o), base + timedelta(minutes=o + d)) for o, d in external]
        slots = quarter_hour_slots()

        resolved = OccupancyResolver.resolve(slots, bookings, busy, base)

        for slot in resolved:
            hits_local = any(slot.start < b.end_at and slot.end > b.scheduled_at for b in bookings)
            hits_external = any(slot.start < t.end and slot.end > t.start for t in busy)
            assert slot.available == (not hits_local and not hits_external)
            if hits_local:
                assert slot.conflict_reason == ConflictReason.LOCAL
            elif hits_external:
                assert slot.conflict_reason == ConflictReason.EXTERNAL
            else:
                assert slot.conflict_reason == ConflictReason.NONE
