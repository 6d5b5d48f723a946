# src/family_dashboard/core/dates.py

"""
Calendar-day helpers shared by the resolver, the models and the CLI.

Every comparison in this package happens on plain `date` values. Anything carrying a
time-of-day is first normalized to a calendar day in ONE reference zone (UTC unless the
caller passes another), so weekday checks never drift by a day around midnight.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

DAYS_IN_WEEK = 7

DateLike = date | datetime | str


def resolve_zone(name: str | None) -> tzinfo:
    if not name or name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def to_calendar_date(value: DateLike, tz: tzinfo | None = None) -> date:
    """
    Normalize a date, datetime or ISO-8601 string to a calendar day.

    - `date`: returned as is.
    - aware `datetime`: converted into the reference zone, then truncated.
    - naive `datetime`: assumed to already be in the reference zone.
    - `str`: date-only strings ("2025-08-23") are taken literally; date-time strings are
      parsed and handled like datetimes.

    Raises ValueError for strings that are not ISO-8601.
    """
    ref = tz or UTC

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(ref).date()
        return value.date()

    if isinstance(value, date):
        return value

    text = str(value).strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return to_calendar_date(isoparse(text), ref)


def parse_timestamp(value: datetime | str | float | int | None) -> datetime:
    """Parse a creation timestamp into an aware UTC datetime (epoch 0 when missing)."""
    if value is None or value == "":
        return datetime.fromtimestamp(0, UTC)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        # Milliseconds since epoch, as JavaScript clients send them.
        return datetime.fromtimestamp(float(value) / 1000.0, UTC)
    dt = isoparse(str(value).strip())
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def js_weekday(day: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def iso_date(day: date) -> str:
    return day.isoformat()


def week_days(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(DAYS_IN_WEEK)]


def start_of_week(day: date, *, week_starts_on: int = 1) -> date:
    """
    First day of the week containing `day`.

    `week_starts_on` uses the same 0=Sunday indexing as recurrence days (Monday by default).
    """
    offset = (js_weekday(day) - week_starts_on) % DAYS_IN_WEEK
    return day - timedelta(days=offset)


def today(tz: tzinfo | None = None) -> date:
    return datetime.now(tz or UTC).date()
