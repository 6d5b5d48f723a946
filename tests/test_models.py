# tests/test_models.py

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from family_dashboard.core.dates import (
    js_weekday,
    parse_timestamp,
    start_of_week,
    to_calendar_date,
    week_days,
)
from family_dashboard.core.models import Category, SyncEvent, SyncEventType, Task, TaskType


def test_js_weekday_counts_from_sunday() -> None:
    assert js_weekday(date(2025, 8, 17)) == 0  # Sunday
    assert js_weekday(date(2025, 8, 18)) == 1  # Monday
    assert js_weekday(date(2025, 8, 23)) == 6  # Saturday


def test_start_of_week_defaults_to_monday() -> None:
    assert start_of_week(date(2025, 8, 20)) == date(2025, 8, 18)
    assert start_of_week(date(2025, 8, 18)) == date(2025, 8, 18)
    # Sunday belongs to the week that started the previous Monday.
    assert start_of_week(date(2025, 8, 17)) == date(2025, 8, 11)
    assert start_of_week(date(2025, 8, 20), week_starts_on=0) == date(2025, 8, 17)


def test_week_days_spans_seven_consecutive_days() -> None:
    days = week_days(date(2025, 8, 18))
    assert days[0] == date(2025, 8, 18)
    assert days[-1] == date(2025, 8, 24)
    assert len(days) == 7


def test_to_calendar_date_normalizes_in_reference_zone() -> None:
    late_evening = "2025-08-18T23:30:00-05:00"  # 04:30 UTC on the 19th

    assert to_calendar_date(late_evening) == date(2025, 8, 19)
    assert to_calendar_date(late_evening, ZoneInfo("America/Chicago")) == date(2025, 8, 18)
    assert to_calendar_date("2025-08-23") == date(2025, 8, 23)
    assert to_calendar_date(datetime(2025, 8, 23, 22, 0)) == date(2025, 8, 23)


def test_to_calendar_date_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        to_calendar_date("not a date")


def test_parse_timestamp_handles_missing_and_millis() -> None:
    assert parse_timestamp(None) == datetime(1970, 1, 1, tzinfo=UTC)
    assert parse_timestamp(1_500) == datetime(1970, 1, 1, 0, 0, 1, 500_000, tzinfo=UTC)
    assert parse_timestamp("2025-08-01T10:00:00Z") == datetime(2025, 8, 1, 10, tzinfo=UTC)


def test_task_from_dict_reads_wire_shape() -> None:
    raw = {
        "id": "t1",
        "title": "Water plants",
        "createdAt": "2025-08-01T08:00:00.000Z",
        "type": "recurring",
        "recurrence": {"days": [1, 3, 5], "startDate": "2025-08-01"},
        "category": "chores",
        "assignedTo": "sam",
    }

    task = Task.from_dict(raw)

    assert task.type == TaskType.RECURRING
    assert task.recurrence is not None
    assert task.recurrence.days == (1, 3, 5)
    assert task.recurrence.start_date == date(2025, 8, 1)
    assert task.recurrence.end_date is None
    assert task.category == Category.CHORES
    assert task.assigned_to == "sam"
    assert task.archived is False
    assert task.to_dict() == raw


def test_task_from_dict_requires_id() -> None:
    with pytest.raises(KeyError):
        Task.from_dict({"title": "no id"})


def test_unknown_category_is_dropped() -> None:
    task = Task.from_dict({"id": "t2", "title": "x", "type": "one-off", "category": "garden"})
    assert task.category is None
    assert task.due_date is None


def test_sync_event_dict_shape() -> None:
    event = SyncEvent(SyncEventType.TASK_DELETED, data={"id": "t1"}, timestamp=12.5, source="device_a")

    raw = event.to_dict()

    assert raw == {"type": "task_deleted", "data": {"id": "t1"}, "timestamp": 12.5, "source": "device_a"}
    assert SyncEvent.from_dict(raw) == event
