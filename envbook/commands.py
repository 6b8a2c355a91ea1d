from __future__ import annotations

import logging
import re
import zoneinfo
from datetime import datetime, timedelta
from typing import Callable

from envbook.errors import BookingValidationError, CommandUsageError
from envbook.models import Booking, Event, SlackReply
from envbook.services.calendar_client import IEventSource
from envbook.utils.scheduling import find_conflict, find_next_slot, validate_booking
from envbook.utils.time import (
    DEFAULT_TZ,
    format_duration,
    parse_duration,
    parse_instant,
    round_to_quarter_hour,
    utc_now,
)

logger = logging.getLogger(__name__)

TICKET_PATTERN = re.compile(r"^[A-Z]+-\d+$")

DEFAULT_DURATION = timedelta(hours=1)
CONFLICT_WINDOW = timedelta(hours=24)
SEARCH_HORIZON = timedelta(days=7)

BOOK_USAGE = "Usage: /env-book <env> <service> <jira> [start] [duration]"
NEXT_USAGE = "Usage: /env-next <env> <service> [duration]"
NOT_CONFIGURED = "Calendar not configured. Please set up Google Calendar credentials"


def parse_book_args(
    text: str, user: str, *, now: datetime, tz: str = DEFAULT_TZ
) -> Booking:
    """Build a booking from ``<env> <service> <TICKET> [start] [duration]``.

    The fourth argument is read as an ISO start time, falling back to a
    duration when it is not a timestamp. Start defaults to ``now`` rounded to
    the quarter hour and duration to one hour.
    """

    args = text.split()
    if len(args) < 3:
        raise CommandUsageError(BOOK_USAGE)

    env, service, ticket = args[:3]
    if not TICKET_PATTERN.match(ticket):
        raise CommandUsageError("Invalid Jira ticket format. Must be like PROJ-123")

    start = round_to_quarter_hour(now.astimezone(zoneinfo.ZoneInfo(tz)))
    duration = DEFAULT_DURATION

    if len(args) > 3:
        try:
            start = parse_instant(args[3], tz)
        except ValueError:
            try:
                duration = parse_duration(args[3])
            except ValueError as exc:
                raise CommandUsageError(
                    f"Could not read '{args[3]}' as a start time or a duration"
                ) from exc

    if len(args) > 4:
        try:
            duration = parse_duration(args[4])
        except ValueError as exc:
            raise CommandUsageError(f"Invalid duration '{args[4]}'") from exc

    return Booking(
        env=env,
        service=service,
        ticket=ticket,
        start=start,
        duration=duration,
        user=user,
    )


def parse_next_args(text: str) -> tuple[str, str, timedelta]:
    args = text.split()
    if len(args) < 2:
        raise CommandUsageError(NEXT_USAGE)
    duration = DEFAULT_DURATION
    if len(args) > 2:
        try:
            duration = parse_duration(args[2])
        except ValueError as exc:
            raise CommandUsageError(f"Invalid duration '{args[2]}'") from exc
    return args[0], args[1], duration


class BookingController:
    """Runs slash commands against an event source."""

    def __init__(
        self,
        calendar: IEventSource | None,
        *,
        timezone: str = DEFAULT_TZ,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.calendar = calendar
        self.timezone = timezone
        self._tz = zoneinfo.ZoneInfo(timezone)
        self._clock = clock

    # --------------------------------------------------------------------- Book
    def book(self, text: str, user: str) -> SlackReply:
        now = self._now()
        try:
            booking = parse_book_args(text, user, now=now, tz=self.timezone)
        except CommandUsageError as exc:
            return _reply(str(exc))

        try:
            validate_booking(booking)
        except BookingValidationError as exc:
            return _reply(f"Validation error: {exc}")

        if self.calendar is None:
            return _reply(NOT_CONFIGURED)

        try:
            events = self.calendar.list_events(
                booking.start - CONFLICT_WINDOW, booking.start + CONFLICT_WINDOW
            )
        except Exception:
            logger.exception("Failed to list calendar events for conflict check")
            return _reply("Failed to check calendar")

        conflict = find_conflict(booking, events)
        if conflict is not None:
            logger.info(
                "Booking conflict detected env=%s service=%s conflict_with=%s",
                booking.env,
                booking.service,
                conflict.title,
            )
            return _reply(self._conflict_text(booking, conflict, now))

        try:
            link = self.calendar.create_event(booking)
        except Exception:
            logger.exception("Failed to create calendar event")
            return _reply("Failed to create calendar event")

        logger.info(
            "Booking created env=%s service=%s user=%s",
            booking.env,
            booking.service,
            booking.user,
        )
        return _reply(
            f"Booked {booking.env} / {booking.service}\n"
            f"{self._clock_time(booking.start)} - {self._clock_time(booking.end)}\n"
            f"Link: {link}"
        )

    # --------------------------------------------------------------------- Next
    def next_slot(self, text: str) -> SlackReply:
        try:
            env, service, duration = parse_next_args(text)
        except CommandUsageError as exc:
            return _reply(str(exc))

        if self.calendar is None:
            return _reply(NOT_CONFIGURED)

        now = self._now()
        try:
            events = self.calendar.list_events(now, now + SEARCH_HORIZON)
        except Exception:
            logger.exception("Failed to list calendar events for slot search")
            return _reply("Failed to check calendar")

        slot = find_next_slot(env, service, duration, events, now=now)
        return _reply(
            f"Next available slot for {env} / {service} ({format_duration(duration)}):\n"
            f"{self._day_time(slot)}"
        )

    # --------------------------------------------------------------------- List
    def list_bookings(self, text: str) -> SlackReply:
        args = text.split()
        env_filter = args[0].lower() if args else ""

        if self.calendar is None:
            return _reply(NOT_CONFIGURED)

        local_now = self._now().astimezone(self._tz)
        start_of_day = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            events = self.calendar.list_events(
                start_of_day, start_of_day + timedelta(days=1)
            )
        except Exception:
            logger.exception("Failed to list calendar events")
            return _reply("Failed to check calendar")

        selected = [
            event
            for event in events
            if not env_filter or event.env.lower() == env_filter
        ]
        if not selected:
            if env_filter:
                return _reply(f"No bookings for {env_filter} today")
            return _reply("No bookings for today")

        lines = [f"Bookings for today ({len(selected)}):", ""]
        for event in selected:
            lines.append(f"• {event.env} | {event.service}")
            lines.append(
                f"  {self._clock_time(event.start)} - {self._clock_time(event.end)}"
            )
            lines.append(f"  {event.title}")
            lines.append("")
        return _reply("\n".join(lines).rstrip())

    # ----------------------------------------------------------------- Internals
    def _now(self) -> datetime:
        return self._clock()

    def _conflict_text(self, booking: Booking, conflict: Event, now: datetime) -> str:
        text = (
            "Conflict detected!\n"
            f"{conflict.env} | {conflict.service} already booked\n"
            f"{self._clock_time(conflict.start)} - {self._clock_time(conflict.end)}\n"
            f"{conflict.title}"
        )
        try:
            horizon = self.calendar.list_events(now, booking.start + SEARCH_HORIZON)
        except Exception:
            logger.exception("Failed to list calendar events for an alternative slot")
            return text
        slot = find_next_slot(
            booking.env, booking.service, booking.duration, horizon, now=now
        )
        return f"{text}\nNext free slot: {self._day_time(slot)}"

    def _clock_time(self, value: datetime) -> str:
        return value.astimezone(self._tz).strftime("%H:%M")

    def _day_time(self, value: datetime) -> str:
        return value.astimezone(self._tz).strftime("%a, %d %b %H:%M")


def _reply(text: str) -> SlackReply:
    return SlackReply(text=text)
