from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict


class Booking(BaseModel):
    """A reservation request parsed from a slash command."""

    env: str
    service: str
    ticket: str = ""
    start: datetime
    duration: timedelta
    user: str = ""

    @property
    def end(self) -> datetime:
        return self.start + self.duration


class Event(BaseModel):
    """An existing reservation as reported by the event source."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    start: datetime
    end: datetime  # not re-validated against start
    env: str
    service: str


class SlackReply(BaseModel):
    text: str
    response_type: Literal["ephemeral", "in_channel"] = "ephemeral"
