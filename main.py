"""
Booking CLI entry point.

Talks to the deals-pipeline bookings API configured by BOOKING_API_URL.
The ``console`` command runs the offline demo instead.

Usage:
    python main.py slots c-1 2025-03-18
    python main.py book L-1001 c-1 2025-03-18 09:00 09:30
    python main.py cancel BK-1A2B3C
    python main.py bookings L-1001
    python main.py console
"""

import argparse
import asyncio
import logging
import sys

from lead_booking.config import settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lead booking engine CLI")
    parser.add_argument(
        "--tz-offset",
        type=int,
        default=settings.schedule.viewer_tz_offset_minutes,
        help="Viewer offset in minutes east of UTC",
    )
    parser.add_argument("--created-by", default=None, help="Operator id recorded on bookings")
    commands = parser.add_subparsers(dest="command", required=True)

    slots = commands.add_parser("slots", help="Show bookable slots for a resource and date")
    slots.add_argument("resource_id")
    slots.add_argument("date", help="YYYY-MM-DD")

    book = commands.add_parser("book", help="Book a time range for a lead")
    book.add_argument("lead_id")
    book.add_argument("resource_id")
    book.add_argument("date", help="YYYY-MM-DD")
    book.add_argument("start", help="HH:MM")
    book.add_argument("end", help="HH:MM")

    cancel = commands.add_parser("cancel", help="Cancel a booking")
    cancel.add_argument("booking_id")

    bookings = commands.add_parser("bookings", help="List a lead's bookings")
    bookings.add_argument("lead_id")

    commands.add_parser("console", help="Run the offline console demo")
    return parser


async def _run(args: argparse.Namespace) -> int:
    """Run one command against the HTTP backend. Returns the exit code."""
    from lead_booking.engine.session import BookingSession
    from lead_booking.tools.http_backend import HttpBookingBackend

    backend = HttpBookingBackend()
    try:
        session = BookingSession(
            backend,
            getattr(args, "lead_id", ""),
            created_by=args.created_by,
            tz_offset_minutes=args.tz_offset,
        )
        await session.load_resources()

        if args.command == "slots":
            await session.select(args.resource_id, args.date)
            for slot in session.candidates():
                print(f"{slot.id}  {slot.start_time}-{slot.end_time}")
            for slot in session.board.booked():
                name = slot.booked_by.name if slot.booked_by else ""
                print(f"{slot.id}  {slot.start_time}-{slot.end_time}  booked ({name})")
            return 0

        if args.command == "book":
            await session.select(args.resource_id, args.date)
            outcome = await session.commit(args.start, args.end)
            print(outcome.message)
            return 0 if outcome.ok else 1

        if args.command == "cancel":
            return 0 if await session.cancel(args.booking_id) else 1

        if args.command == "bookings":
            for record in await session.summary():
                print(
                    f"{record.id}  {record.date} {record.start_time}-{record.end_time}  "
                    f"{record.resource_name}  {record.status}"
                )
            return 0
    finally:
        await backend.aclose()
    return 2


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "console":
        from console_demo import ConsoleSession

        asyncio.run(ConsoleSession().run())
        return 0
    try:
        return asyncio.run(_run(args))
    except ValueError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
