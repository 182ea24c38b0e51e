"""Integration tests: session + committer + cancellation against the mock server."""

import asyncio

import pytest

from lead_booking.engine.committer import CommitStatus
from lead_booking.engine.notifications import RecordingNotifier, Severity, classify_failure
from lead_booking.engine.session import MSG_BUSY, BookingSession
from lead_booking.schemas.booking_schema import Confirmation, SlotState
from lead_booking.tools.backend import BackendConnectionError, BackendRequestError

from tests.conftest import TEST_DATE, TEST_LEAD


def _slot(session, start):
    return session.board.get(f"{TEST_DATE}-{start}")


class TestClassifyFailure:
    @pytest.mark.parametrize("message", [
        "Counsellor is UNAVAILABLE at this time",
        "This slot is already booked.",
        "Requested time falls within the buffer period of another booking.",
    ])
    def test_conflicts_are_warnings(self, message):
        assert classify_failure(message) == Severity.WARNING

    @pytest.mark.parametrize("message", ["Internal server error", "Request timed out", ""])
    def test_everything_else_is_error(self, message):
        assert classify_failure(message) == Severity.ERROR


class TestSelect:
    @pytest.mark.asyncio
    async def test_select_builds_board_and_loads(self, session):
        board = await session.select("c-1", TEST_DATE)
        assert len(board.to_list()) == 36
        assert [(w.start_time, w.end_time) for w in session.windows] == [("09:00", "18:00")]
        assert len(session.candidates()) == 36
        assert session.first_available().start_time == "09:00"

    @pytest.mark.asyncio
    async def test_candidates_limited_to_working_hours(self, session):
        await session.select("c-2", TEST_DATE)
        candidates = session.candidates()
        assert candidates[0].start_time == "12:00"
        assert candidates[-1].end_time == "18:00"

    @pytest.mark.asyncio
    async def test_available_slots_follow_windows(self, session):
        assert session.available_slots() == []
        await session.select("c-2", TEST_DATE)
        slots = session.available_slots()
        assert len(slots) == 32
        assert (slots[0].start_time, slots[-1].end_time) == ("12:00", "20:00")

    @pytest.mark.asyncio
    async def test_existing_bookings_shown(self, session, backend):
        other = BookingSession(backend, "L-200", notifier=RecordingNotifier(), schedule=session.schedule)
        await other.select("c-1", TEST_DATE)
        await other.commit("10:00", "10:30")

        await session.select("c-1", TEST_DATE)
        assert _slot(session, "10:00").state == SlotState.BOOKED
        assert _slot(session, "10:15").state == SlotState.BOOKED
        assert len(session.candidates()) == 34

    @pytest.mark.asyncio
    async def test_invalid_date(self, session):
        with pytest.raises(ValueError):
            await session.select("c-1", "tomorrow")


class TestCommit:
    @pytest.mark.asyncio
    async def test_success(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:30")

        assert outcome.ok
        assert notifier.last.severity == Severity.SUCCESS
        assert notifier.last.message == (
            f"Booking confirmed with Priya Raman on {TEST_DATE} from 09:00 to 09:30"
        )
        stored = backend.get_booking(outcome.booking_id)
        assert stored["created_by"] == "agent-7"
        assert stored["booking_type"] == "manual_followup"

    @pytest.mark.asyncio
    async def test_refresh_confirms_slots(self, session):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:30")
        for start in ("09:00", "09:15"):
            slot = _slot(session, start)
            assert slot.state == SlotState.BOOKED
            assert slot.confirmation == Confirmation.CONFIRMED
            assert slot.booking_id == outcome.booking_id
        lifecycle = session.board.lifecycle(f"{TEST_DATE}-09:00")
        assert lifecycle.get_state_trace() == ["unbooked", "pending_commit", "booked"]
        assert [(w.start_time, w.end_time) for w in session.windows] == [("09:30", "18:00")]

    @pytest.mark.asyncio
    async def test_committed_range_round_trips(self, session, backend):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("13:15", "14:45")
        records = await session.store.load_for_day("c-1", TEST_DATE)
        (record,) = [r for r in records if r.id == outcome.booking_id]
        assert (record.start_time, record.end_time) == ("13:15", "14:45")

    @pytest.mark.asyncio
    async def test_missing_context_is_error(self, session, notifier, backend):
        outcome = await session.commit("09:00", "09:30")
        assert outcome.status == CommitStatus.REJECTED
        assert notifier.last.severity == Severity.ERROR
        assert backend.calls["book_slot"] == 0

    @pytest.mark.asyncio
    async def test_outside_availability_rejected_locally(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("17:45", "18:15")
        assert outcome.status == CommitStatus.REJECTED
        assert notifier.last.severity == Severity.WARNING
        assert notifier.last.message == (
            "This time range is not within available slots. Please select a different time."
        )
        assert backend.calls["check_availability"] == 0
        assert backend.calls["book_slot"] == 0

    @pytest.mark.asyncio
    async def test_off_grid_duration_rejected(self, session, backend):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:20")
        assert outcome.status == CommitStatus.REJECTED
        assert backend.calls["book_slot"] == 0

    @pytest.mark.asyncio
    async def test_precheck_unavailable_aborts(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        # Booked behind the session's back, so local availability is stale
        other = BookingSession(backend, "L-200", notifier=RecordingNotifier(), schedule=session.schedule)
        await other.select("c-1", TEST_DATE)
        await other.commit("11:00", "11:30")
        calls_before = backend.calls["get_bookings"]

        outcome = await session.commit("11:00", "11:15")
        assert outcome.status == CommitStatus.UNAVAILABLE
        assert notifier.last.severity == Severity.WARNING
        assert backend.calls["book_slot"] == 1
        assert backend.calls["get_bookings"] == calls_before + 1
        assert _slot(session, "11:00").state == SlotState.BOOKED

    @pytest.mark.asyncio
    async def test_precheck_failure_proceeds(self, session, backend):
        await session.select("c-1", TEST_DATE)
        backend.fail_next("check_availability", BackendConnectionError("timed out"))
        outcome = await session.commit("09:00", "09:15")
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_conflict_is_warning_and_refreshes(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        backend.fail_next("book_slot", BackendRequestError("This slot is already booked.", 409))
        calls_before = backend.calls["get_availability"]

        outcome = await session.commit("09:00", "09:15")
        assert outcome.status == CommitStatus.CONFLICT
        assert notifier.last.severity == Severity.WARNING
        assert backend.calls["get_availability"] == calls_before + 1

    @pytest.mark.asyncio
    async def test_timeout_is_error_and_refreshes(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        backend.fail_next("book_slot", BackendConnectionError("Request timed out after 15.0s"))
        calls_before = backend.calls["get_bookings"]

        outcome = await session.commit("09:00", "09:15")
        assert outcome.status == CommitStatus.FAILED
        assert notifier.last.severity == Severity.ERROR
        assert backend.calls["get_bookings"] == calls_before + 1
        assert _slot(session, "09:00").state == SlotState.UNBOOKED

    @pytest.mark.asyncio
    async def test_commit_slot(self, session):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit_slot(f"{TEST_DATE}-10:00")
        assert outcome.ok
        assert _slot(session, "10:00").state == SlotState.BOOKED
        assert _slot(session, "10:15").state == SlotState.UNBOOKED

    @pytest.mark.asyncio
    async def test_commit_slot_already_booked(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        await session.commit("10:00", "10:15")
        outcome = await session.commit_slot(f"{TEST_DATE}-10:00")
        assert outcome.status == CommitStatus.REJECTED
        assert notifier.last.severity == Severity.WARNING
        assert backend.calls["book_slot"] == 1

    @pytest.mark.asyncio
    async def test_commit_slot_unknown(self, session):
        await session.select("c-1", TEST_DATE)
        with pytest.raises(ValueError, match="Unknown slot"):
            await session.commit_slot("2025-03-18-03:00")


class TestStaleRefresh:
    @pytest.mark.asyncio
    async def test_pending_kept_when_bookings_refresh_fails(self, session, backend):
        await session.select("c-1", TEST_DATE)
        backend.fail_next("get_bookings", BackendConnectionError("down"))
        outcome = await session.commit("09:00", "09:15")

        assert outcome.ok
        slot = _slot(session, "09:00")
        assert slot.state == SlotState.PENDING_COMMIT
        assert slot.is_provisional

        await session.refresh()
        assert slot.state == SlotState.BOOKED
        assert not slot.is_provisional

    @pytest.mark.asyncio
    async def test_availability_failure_fails_closed(self, session, backend):
        await session.select("c-1", TEST_DATE)
        backend.fail_next("get_availability", BackendConnectionError("down"))
        await session.refresh()
        assert session.windows == []
        assert session.candidates() == []
        assert session.first_available() is None


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_frees_slots(self, session, notifier):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:30")

        assert await session.cancel(outcome.booking_id)
        assert notifier.last.message == "Booking cancelled successfully!"
        assert notifier.last.severity == Severity.SUCCESS
        assert _slot(session, "09:00").state == SlotState.UNBOOKED
        trace = session.board.lifecycle(f"{TEST_DATE}-09:00").get_state_trace()
        assert trace[-2:] == ["pending_cancel", "unbooked"]
        assert len(session.candidates()) == 36

    @pytest.mark.asyncio
    async def test_cancel_twice_keeps_state_consistent(self, session, notifier):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:30")
        await session.cancel(outcome.booking_id)
        stats = session.board.get_stats()

        assert await session.cancel(outcome.booking_id)
        assert session.board.get_stats() == stats
        assert session.board.pending() == []
        assert _slot(session, "09:00").state == SlotState.UNBOOKED

    @pytest.mark.asyncio
    async def test_cancel_failure_leaves_state(self, session, notifier, backend):
        await session.select("c-1", TEST_DATE)
        outcome = await session.commit("09:00", "09:30")
        backend.fail_next("cancel_booking", BackendRequestError("Not allowed", 403))
        calls_before = backend.calls["get_bookings"]

        assert not await session.cancel(outcome.booking_id)
        assert notifier.last.severity == Severity.ERROR
        assert "Not allowed" in notifier.last.message
        assert _slot(session, "09:00").state == SlotState.BOOKED
        assert backend.calls["get_bookings"] == calls_before

    @pytest.mark.asyncio
    async def test_cancel_without_id(self, session, notifier):
        assert not await session.cancel("")
        assert notifier.last.severity == Severity.ERROR

    @pytest.mark.asyncio
    async def test_cancel_without_day_refreshes_summary(self, backend, directory, notifier, schedule):
        booker = BookingSession(backend, TEST_LEAD, notifier=RecordingNotifier(), schedule=schedule)
        await booker.select("c-1", TEST_DATE)
        outcome = await booker.commit("09:00", "09:30")

        viewer = BookingSession(backend, TEST_LEAD, directory=directory, notifier=notifier, schedule=schedule)
        assert await viewer.cancel(outcome.booking_id)
        assert [r.status for r in viewer.lead_bookings] == ["cancelled"]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_commits_one_wins(self, backend, directory, schedule):
        first_notifier, second_notifier = RecordingNotifier(), RecordingNotifier()
        first = BookingSession(backend, "L-1", directory=directory, notifier=first_notifier, schedule=schedule)
        second = BookingSession(backend, "L-2", directory=directory, notifier=second_notifier, schedule=schedule)
        await first.select("c-1", TEST_DATE)
        await second.select("c-1", TEST_DATE)

        outcomes = await asyncio.gather(
            first.commit("10:00", "10:30"),
            second.commit("10:00", "10:30"),
        )
        winners = [o for o in outcomes if o.ok]
        losers = [o for o in outcomes if not o.ok]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].status in (CommitStatus.CONFLICT, CommitStatus.UNAVAILABLE)

        loser_session, loser_notifier = (
            (second, second_notifier) if outcomes[0].ok else (first, first_notifier)
        )
        assert loser_notifier.last.severity == Severity.WARNING
        assert _slot(loser_session, "10:00").state == SlotState.BOOKED
        assert _slot(loser_session, "10:00").booking_id == winners[0].booking_id

    @pytest.mark.asyncio
    async def test_session_allows_one_operation_at_a_time(self, session, notifier):
        await session.select("c-1", TEST_DATE)
        outcomes = await asyncio.gather(
            session.commit("09:00", "09:15"),
            session.commit("11:00", "11:15"),
        )
        assert [o.status for o in outcomes] == [CommitStatus.COMMITTED, CommitStatus.REJECTED]
        assert outcomes[1].message == MSG_BUSY
        assert notifier.of(Severity.WARNING)[0].message == MSG_BUSY
        assert not session.busy


class TestSummary:
    @pytest.mark.asyncio
    async def test_summary_across_dates(self, session):
        await session.select("c-1", "2025-03-17")
        await session.commit("09:00", "09:30")
        await session.select("c-1", TEST_DATE)
        second = await session.commit("10:00", "10:30")
        await session.cancel(second.booking_id)
        third = await session.commit("11:00", "11:30")

        records = await session.summary()
        assert [r.id for r in records][0] == third.booking_id
        assert [r.status for r in records] == ["scheduled", "scheduled", "cancelled"]
        assert records[1].date == "2025-03-17"
        assert all(r.resource_name == "Priya Raman" for r in records)


class TestResources:
    @pytest.mark.asyncio
    async def test_load_resources(self, backend, notifier, schedule):
        session = BookingSession(backend, TEST_LEAD, notifier=notifier, schedule=schedule)
        resources = await session.load_resources()
        assert {r.id for r in resources} == {"c-1", "c-2"}
        assert session.directory.get("c-2").name == "Tom Okafor"

    @pytest.mark.asyncio
    async def test_failed_load_keeps_directory(self, backend, directory, notifier, schedule):
        session = BookingSession(backend, TEST_LEAD, directory=directory, notifier=notifier, schedule=schedule)
        backend.fail_next("list_resources", BackendConnectionError("down"))
        resources = await session.load_resources()
        assert len(resources) == 2

    @pytest.mark.asyncio
    async def test_unloaded_directory_falls_back_to_record_name(self, backend, notifier, schedule):
        session = BookingSession(backend, TEST_LEAD, notifier=notifier, schedule=schedule)
        await session.select("c-1", TEST_DATE)
        await session.commit("09:00", "09:30")
        records = await session.summary()
        assert records[0].resource_name == "Priya Raman"
