"""Tests for the per-day slot board."""

import pytest

from lead_booking.engine.slot_board import SlotBoard
from lead_booking.schemas.booking_schema import BookedBy, BookingRecord, Confirmation, SlotState

from tests.conftest import TEST_DATE

PRIYA = BookedBy(resource_id="c-1", name="Priya Raman", email="priya@example.com")


def _record(booking_id="BK-1", start="09:00", end="09:30", date=TEST_DATE):
    return BookingRecord(
        id=booking_id,
        resource_id="c-1",
        date=date,
        start_time=start,
        end_time=end,
        resource_name="Priya Raman",
        resource_email="priya@example.com",
    )


@pytest.fixture
def board():
    return SlotBoard(TEST_DATE, "09:00", "11:00")


class TestLookup:
    def test_slots_generated(self, board):
        assert len(board.to_list()) == 8

    def test_get_unknown_slot(self, board):
        with pytest.raises(ValueError, match="Unknown slot"):
            board.get("2025-03-18-23:00")

    def test_slots_in_range(self, board):
        slots = board.slots_in_range("09:10", "09:40")
        assert [s.start_time for s in slots] == ["09:00", "09:15", "09:30"]


class TestPendingCommit:
    def test_marks_range_provisional(self, board):
        marked = board.mark_pending_commit("09:00", "09:30", PRIYA, "BK-1")
        assert [s.start_time for s in marked] == ["09:00", "09:15"]
        for slot in marked:
            assert slot.state == SlotState.PENDING_COMMIT
            assert slot.confirmation == Confirmation.PROVISIONAL
            assert slot.is_booked
            assert slot.booked_by == PRIYA
            assert slot.booking_id == "BK-1"

    def test_skips_slots_already_booked(self, board):
        board.reconcile([_record(start="09:00", end="09:15")])
        marked = board.mark_pending_commit("09:00", "09:30", PRIYA)
        assert [s.start_time for s in marked] == ["09:15"]

    def test_refresh_confirms(self, board):
        board.mark_pending_commit("09:00", "09:30", PRIYA, "BK-1")
        board.reconcile([_record()])
        slot = board.get(f"{TEST_DATE}-09:00")
        assert slot.state == SlotState.BOOKED
        assert slot.confirmation == Confirmation.CONFIRMED
        assert board.pending() == []

    def test_refresh_reverts(self, board):
        board.mark_pending_commit("09:00", "09:30", PRIYA, "BK-1")
        board.reconcile([])
        slot = board.get(f"{TEST_DATE}-09:00")
        assert slot.state == SlotState.UNBOOKED
        assert slot.booked_by is None
        assert slot.booking_id is None


class TestPendingCancel:
    def test_marks_booking_slots(self, board):
        board.reconcile([_record()])
        marked = board.mark_pending_cancel("BK-1")
        assert len(marked) == 2
        assert all(s.state == SlotState.PENDING_CANCEL for s in marked)
        assert all(not s.is_booked for s in marked)

    def test_unknown_booking_changes_nothing(self, board):
        board.reconcile([_record()])
        before = board.get_stats()
        assert board.mark_pending_cancel("BK-404") == []
        assert board.get_stats() == before

    def test_refresh_frees(self, board):
        board.reconcile([_record()])
        board.mark_pending_cancel("BK-1")
        board.reconcile([])
        assert board.booked() == []
        assert len(board.free()) == 8


class TestReconcile:
    def test_overlapping_booking_marks_every_touched_slot(self, board):
        board.reconcile([_record(start="09:10", end="09:20")])
        assert [s.start_time for s in board.booked()] == ["09:00", "09:15"]

    def test_sets_holder_details(self, board):
        board.reconcile([_record()])
        slot = board.get(f"{TEST_DATE}-09:15")
        assert slot.booking_id == "BK-1"
        assert slot.booked_by.name == "Priya Raman"

    def test_ignores_other_dates(self, board):
        board.reconcile([_record(date="2025-03-19")])
        assert board.booked() == []

    def test_external_booking_picked_up(self, board):
        board.reconcile([])
        board.reconcile([_record(booking_id="BK-EXT", start="10:00", end="10:30")])
        assert [s.booking_id for s in board.booked()] == ["BK-EXT", "BK-EXT"]

    def test_stats(self, board):
        board.reconcile([_record()])
        board.mark_pending_commit("10:00", "10:15", PRIYA)
        stats = board.get_stats()
        assert stats["total"] == 8
        assert stats["booked"] == 2
        assert stats["pending_commit"] == 1
        assert stats["unbooked"] == 5
        assert stats["provisional"] == 1
