from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Sequence

from envbook.errors import DurationTooLong, DurationTooShort, InvalidEnvironment
from envbook.models import Booking, Event
from envbook.utils.time import utc_now

VALID_ENVIRONMENTS = frozenset({"staging", "qa", "demo"})
MAX_BOOKING_DURATION = timedelta(hours=2)
MIN_BOOKING_DURATION = timedelta(minutes=5)


def validate_booking(booking: Booking) -> None:
    """Raise the first policy violation found, environment before duration."""

    if booking.env.lower() not in VALID_ENVIRONMENTS:
        raise InvalidEnvironment(
            f"invalid environment: {booking.env}. Must be staging, qa, or demo"
        )
    if booking.duration > MAX_BOOKING_DURATION:
        raise DurationTooLong("maximum booking duration is 2 hours")
    if booking.duration < MIN_BOOKING_DURATION:
        raise DurationTooShort("minimum booking duration is 5 minutes")


def _same_slot(event: Event, env: str, service: str) -> bool:
    return (
        event.env.casefold() == env.casefold()
        and event.service.casefold() == service.casefold()
    )


def find_conflict(candidate: Booking, events: Iterable[Event]) -> Event | None:
    """Return the first event in ``events`` overlapping ``candidate``.

    Only events for the same environment and service count. Intervals are
    half-open, so a booking may start exactly when another one ends.
    """

    start, end = candidate.start, candidate.end
    for event in events:
        if not _same_slot(event, candidate.env, candidate.service):
            continue
        if event.start < end and event.end > start:
            return event
    return None


def find_next_slot(
    env: str,
    service: str,
    duration: timedelta,
    events: Sequence[Event],
    *,
    now: datetime | None = None,
) -> datetime:
    """Earliest instant at or after ``now`` with ``duration`` of free time.

    ``events`` must be sorted by start time; the calendar API returns them
    that way and nothing here re-sorts them.
    """

    search_start = now or utc_now()
    relevant = [event for event in events if _same_slot(event, env, service)]

    if not relevant:
        return search_start
    if relevant[0].start - search_start >= duration:
        return search_start

    for current, following in zip(relevant, relevant[1:]):
        gap_start = max(current.end, search_start)
        if following.start - gap_start >= duration:
            return gap_start

    return max(relevant[-1].end, search_start)
