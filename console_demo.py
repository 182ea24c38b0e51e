"""
Offline console demo: runs booking flows without a bookings server.

Drives the real engine (resolver, validator, slot board, committer,
cancellation handler) against the in-memory backend. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario conflict
    python console_demo.py --scenario timezone
"""

import argparse
import asyncio
from typing import Optional

from lead_booking.config import settings
from lead_booking.engine.notifications import Notification, Severity
from lead_booking.engine.session import BookingSession
from lead_booking.schemas.booking_schema import SlotState
from lead_booking.tools.availability import extract_raw_windows, normalize_window
from lead_booking.tools.backend import BackendConnectionError
from lead_booking.tools.memory_backend import InMemoryBookingBackend
from lead_booking.tools.resources import ResourceDirectory

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_DATE = "2025-03-18"
DEMO_LEAD = "L-1001"

_SEVERITY_COLOURS = {
    Severity.SUCCESS: GREEN,
    Severity.WARNING: YELLOW,
    Severity.ERROR: RED,
}

_STATE_MARKS = {
    SlotState.UNBOOKED: f"{GREEN}.{RESET}",
    SlotState.PENDING_COMMIT: f"{YELLOW}+{RESET}",
    SlotState.BOOKED: f"{RED}#{RESET}",
    SlotState.PENDING_CANCEL: f"{YELLOW}-{RESET}",
}


class ConsoleNotifier:
    """Prints notifications the way the booking UI would toast them."""

    def __init__(self, label: str = "ui") -> None:
        self.label = label

    def notify(self, notification: Notification) -> None:
        colour = _SEVERITY_COLOURS[notification.severity]
        print(
            f"{colour}{BOLD}[{self.label}:{notification.severity.value}]{RESET} "
            f"{colour}{notification.message}{RESET}"
        )


def system_log(text: str) -> None:
    print(f"{DIM}  >> {text}{RESET}")


def heading(text: str) -> None:
    print(f"\n{BLUE}{BOLD}== {text} =={RESET}")


def build_backend() -> InMemoryBookingBackend:
    backend = InMemoryBookingBackend(buffer_minutes=0)
    backend.add_resource("c-1", "Priya Raman", "priya@example.com")
    backend.add_resource("c-2", "Tom Okafor", "tom@example.com", hours=("12:00", "20:00"))
    return backend


class ConsoleSession:
    """Scripted and interactive booking walkthroughs in the terminal."""

    def __init__(self, backend: Optional[InMemoryBookingBackend] = None) -> None:
        self.backend = backend or build_backend()
        self.directory = ResourceDirectory()

    def new_session(self, label: str = "ui", tz_offset_minutes: int = 0) -> BookingSession:
        return BookingSession(
            self.backend,
            DEMO_LEAD,
            directory=self.directory,
            notifier=ConsoleNotifier(label),
            created_by="console-demo",
            tz_offset_minutes=tz_offset_minutes,
        )

    def show_board(self, session: BookingSession) -> None:
        if session.board is None:
            system_log("No resource/date selected")
            return
        marks = "".join(_STATE_MARKS[slot.state] for slot in session.board.to_list())
        windows = ", ".join(f"{w.start_time}-{w.end_time}" for w in session.windows) or "none"
        print(f"  {session.board.date} [{marks}]")
        system_log(f"availability: {windows}")
        system_log(f"stats: {session.board.get_stats()}")

    async def show_summary(self, session: BookingSession) -> None:
        records = await session.summary()
        if not records:
            system_log("No bookings for this lead")
        for record in records:
            system_log(
                f"{record.id} {record.date} {record.start_time}-{record.end_time} "
                f"with {record.resource_name} ({record.status})"
            )

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    async def scenario_booking(self) -> None:
        heading("Book the first free slot")
        session = self.new_session()
        await session.load_resources()
        await session.select("c-1", DEMO_DATE)
        self.show_board(session)

        slot = session.first_available()
        if slot is None:
            system_log("Nothing bookable")
            return
        system_log(f"Selecting {slot.start_time}-{slot.end_time}")
        await session.commit(slot.start_time, "09:30")
        self.show_board(session)

        system_log("Trying a range outside availability (17:45-18:15)")
        await session.commit("17:45", "18:15")
        await self.show_summary(session)

    async def scenario_conflict(self) -> None:
        heading("Two operators race for the same slot")
        first = self.new_session("operator-a")
        second = self.new_session("operator-b")
        await first.load_resources()
        await asyncio.gather(first.select("c-1", DEMO_DATE), second.select("c-1", DEMO_DATE))

        outcomes = await asyncio.gather(
            first.commit("10:00", "10:30"),
            second.commit("10:00", "10:30"),
        )
        for label, outcome in zip(("operator-a", "operator-b"), outcomes):
            system_log(f"{label}: {outcome.status.value}")
        self.show_board(second)

        heading("Server outage during a commit")
        self.backend.fail_next("book_slot", BackendConnectionError("Request timed out"))
        await first.commit("11:00", "11:15")
        self.show_board(first)

    async def scenario_cancel(self) -> None:
        heading("Cancel a booking twice")
        session = self.new_session()
        await session.load_resources()
        await session.select("c-1", DEMO_DATE)
        outcome = await session.commit("14:00", "15:00")
        self.show_board(session)
        if outcome.booking_id is None:
            return

        await session.cancel(outcome.booking_id)
        self.show_board(session)
        system_log("Cancelling the same booking again")
        await session.cancel(outcome.booking_id)
        self.show_board(session)
        await self.show_summary(session)

    async def scenario_timezone(self) -> None:
        heading("Availability seen from different viewer offsets")
        for offset in (0, 330, -300):
            session = self.new_session(tz_offset_minutes=offset)
            raw = await self.backend.get_availability("c-2", DEMO_DATE, offset)
            await session.select("c-2", DEMO_DATE)
            system_log(f"offset {offset:+d} min, feed: {raw}")
            windows = ", ".join(f"{w.start_time}-{w.end_time}" for w in session.windows)
            system_log(f"resolved: {windows or 'none'}")
            system_log(f"{len(session.available_slots())} candidate slots")

        heading("Feed windows on another calendar date are dropped")
        # Published for a UTC+14:00 viewer, read by a UTC viewer: 12:00 local
        # there is 22:00 the previous day here
        raw = await self.backend.get_availability("c-2", DEMO_DATE, 840)
        for entry in extract_raw_windows(raw):
            window = normalize_window(entry, DEMO_DATE, 0)
            kept = f"{window.start_time}-{window.end_time}" if window else "dropped"
            system_log(f"{entry['start']} -> {entry['end']}: {kept}")

    SCENARIOS = {
        "booking": scenario_booking,
        "conflict": scenario_conflict,
        "cancel": scenario_cancel,
        "timezone": scenario_timezone,
    }

    async def run_scenario(self, scenario: str) -> None:
        print(f"{BOLD}{settings.app_name} console demo: {scenario}{RESET}")
        await self.SCENARIOS[scenario](self)

    # ------------------------------------------------------------------ #
    # Interactive mode
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        print(f"{BOLD}{settings.app_name} console demo{RESET}")
        print(
            f"{DIM}Commands: select <resource> <date> | book <HH:MM> <HH:MM> | "
            f"slot <slot-id> | cancel <booking-id> | board | bookings | quit{RESET}"
        )
        session = self.new_session()
        await session.load_resources()
        system_log(f"Resources: {', '.join(f'{r.id} ({r.name})' for r in self.directory)}")

        while True:
            try:
                line = await asyncio.to_thread(input, f"{BLUE}> {RESET}")
            except (EOFError, KeyboardInterrupt):
                print()
                break
            parts = line.split()
            if not parts:
                continue
            command, args = parts[0].lower(), parts[1:]
            if command in ("quit", "exit"):
                break
            try:
                if command == "select" and len(args) == 2:
                    await session.select(args[0], args[1])
                    self.show_board(session)
                elif command == "book" and len(args) == 2:
                    await session.commit(args[0], args[1])
                    self.show_board(session)
                elif command == "slot" and len(args) == 1:
                    await session.commit_slot(args[0])
                    self.show_board(session)
                elif command == "cancel" and len(args) == 1:
                    await session.cancel(args[0])
                    self.show_board(session)
                elif command == "board":
                    self.show_board(session)
                elif command == "bookings":
                    await self.show_summary(session)
                else:
                    system_log(f"Unknown command: {line.strip()}")
            except ValueError as exc:
                system_log(f"{RED}{exc}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    console = ConsoleSession()
    if args.scenario:
        asyncio.run(console.run_scenario(args.scenario))
    else:
        asyncio.run(console.run())


if __name__ == "__main__":
    main()
