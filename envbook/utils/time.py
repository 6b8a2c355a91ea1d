from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
import zoneinfo

DEFAULT_TZ = "UTC"
QUARTER_HOUR = 15

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def round_to_quarter_hour(instant: datetime) -> datetime:
    """Round to the nearest 15 minute boundary, half-up at 7.5 minutes.

    Seconds and microseconds are dropped. A result of minute 60 rolls over into
    the next hour, and from there into the next day, month or year.
    """

    rounded = (instant.minute + 7) // QUARTER_HOUR * QUARTER_HOUR
    top_of_hour = instant.replace(minute=0, second=0, microsecond=0)
    return top_of_hour + timedelta(minutes=rounded)


def parse_duration(value: str) -> timedelta:
    """Parse compact durations such as ``1h``, ``45m`` or ``1h30m``."""

    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")
    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value}")
    try:
        return timedelta(seconds=seconds)
    except OverflowError as exc:
        raise ValueError(f"invalid duration: {value}") from exc


def format_duration(value: timedelta) -> str:
    total = int(value.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return "".join(parts)


def parse_instant(value: str, tz: str = DEFAULT_TZ) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are placed in ``tz``."""

    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zoneinfo.ZoneInfo(tz))
    return dt
