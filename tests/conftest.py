from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from envbook.models import Booking, Event

NOW = datetime(2025, 5, 20, 9, 0, tzinfo=timezone.utc)


def make_event(
    start_offset: timedelta,
    end_offset: timedelta,
    *,
    env: str = "staging",
    service: str = "auth",
    base: datetime = NOW,
) -> Event:
    return Event(
        title=f"{env} | {service} | PROJ-1 | alice",
        start=base + start_offset,
        end=base + end_offset,
        env=env,
        service=service,
    )


def make_booking(
    start_offset: timedelta,
    duration: timedelta = timedelta(hours=1),
    *,
    env: str = "staging",
    service: str = "auth",
    base: datetime = NOW,
) -> Booking:
    return Booking(
        env=env,
        service=service,
        ticket="PROJ-1",
        start=base + start_offset,
        duration=duration,
        user="bob",
    )


class StubCalendar:
    def __init__(self, events: list[Event] | None = None) -> None:
        self.events = list(events or [])
        self.created: list[Booking] = []
        self.list_calls: list[tuple[datetime, datetime]] = []
        self.fail_list = False

    def list_events(self, start: datetime, end: datetime) -> list[Event]:
        self.list_calls.append((start, end))
        if self.fail_list:
            raise RuntimeError("quota exceeded")
        return [e for e in self.events if e.start < end and e.end > start]

    def create_event(self, booking: Booking) -> str:
        self.created.append(booking)
        return "https://calendar.example/event/1"


@pytest.fixture
def calendar() -> StubCalendar:
    return StubCalendar()
