from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from envbook.utils.time import format_duration, parse_duration, parse_instant, round_to_quarter_hour

UTC = timezone.utc


@pytest.mark.parametrize(
    ("minute", "expected"),
    [(0, 0), (7, 0), (8, 15), (22, 15), (23, 30), (37, 30), (38, 45), (52, 45)],
)
def test_round_within_hour(minute: int, expected: int) -> None:
    value = datetime(2025, 5, 20, 10, minute, 41, 500, tzinfo=UTC)
    assert round_to_quarter_hour(value) == datetime(2025, 5, 20, 10, expected, tzinfo=UTC)


def test_round_carries_into_next_hour() -> None:
    value = datetime(2025, 5, 20, 10, 55, tzinfo=UTC)
    assert round_to_quarter_hour(value) == datetime(2025, 5, 20, 11, 0, tzinfo=UTC)


def test_round_carries_into_next_day() -> None:
    value = datetime(2025, 5, 20, 23, 53, tzinfo=UTC)
    assert round_to_quarter_hour(value) == datetime(2025, 5, 21, 0, 0, tzinfo=UTC)


def test_round_carries_into_next_month_and_year() -> None:
    assert round_to_quarter_hour(datetime(2024, 2, 29, 23, 58, tzinfo=UTC)) == datetime(
        2024, 3, 1, tzinfo=UTC
    )
    assert round_to_quarter_hour(datetime(2025, 12, 31, 23, 53, tzinfo=UTC)) == datetime(
        2026, 1, 1, tzinfo=UTC
    )


def test_round_is_idempotent() -> None:
    on_boundary = datetime(2025, 5, 20, 10, 45, tzinfo=UTC)
    assert round_to_quarter_hour(on_boundary) == on_boundary

    value = datetime(2025, 5, 20, 10, 37, 59, tzinfo=ZoneInfo("Europe/Riga"))
    once = round_to_quarter_hour(value)
    assert round_to_quarter_hour(once) == once
    assert once.tzinfo == value.tzinfo


def test_parse_duration() -> None:
    assert parse_duration("1h") == timedelta(hours=1)
    assert parse_duration("45m") == timedelta(minutes=45)
    assert parse_duration("1h30m") == timedelta(minutes=90)
    assert parse_duration("90s") == timedelta(seconds=90)
    for bad in ("", "abc", "1x", "h1", "10"):
        with pytest.raises(ValueError):
            parse_duration(bad)


def test_format_duration() -> None:
    assert format_duration(timedelta(minutes=90)) == "1h30m"
    assert format_duration(timedelta(hours=2)) == "2h"
    assert format_duration(timedelta(0)) == "0s"


def test_parse_instant_applies_default_timezone() -> None:
    naive = parse_instant("2025-05-20T10:00:00", "Europe/Riga")
    assert naive.tzinfo == ZoneInfo("Europe/Riga")
    aware = parse_instant("2025-05-20T10:00:00Z", "Europe/Riga")
    assert aware.utcoffset() == timedelta(0)


@pytest.mark.parametrize("value", ["99999999999h", "9" * 400 + "m"])
def test_parse_duration_rejects_out_of_range(value: str) -> None:
    with pytest.raises(ValueError, match="invalid duration"):
        parse_duration(value)
