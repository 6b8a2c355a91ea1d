from __future__ import annotations
from datetime import datetime
from typing import Protocol

from envbook.models import Booking, Event


class IEventSource(Protocol):
    """Protocol describing the calendar operations used by the controller."""

    def list_events(self, start: datetime, end: datetime) -> list[Event]: ...

    def create_event(self, booking: Booking) -> str: ...
