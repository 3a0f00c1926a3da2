"""Sunday-aligned week arithmetic used to bucket quota totals."""

from __future__ import annotations

from datetime import date, datetime, timedelta


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(value: date | datetime) -> date:
    day = _as_date(value)
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_end(value: date | datetime) -> date:
    return week_start(value) + timedelta(days=6)


def week_key(value: date | datetime) -> str:
    return week_start(value).isoformat()


def same_week(left: date | datetime, right: date | datetime) -> bool:
    return week_key(left) == week_key(right)


def format_week_range(value: date | datetime) -> str:
    start = week_start(value)
    end = week_end(value)
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"
