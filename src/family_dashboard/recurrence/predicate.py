# src/family_dashboard/recurrence/predicate.py

from __future__ import annotations

from datetime import date

from ..core.dates import js_weekday
from ..core.models import Recurrence, Task, TaskType


def matches_recurrence(recurrence: Recurrence, day: date) -> bool:
    """Weekday membership plus inclusive start/end bounds. Empty day sets never match."""
    if js_weekday(day) not in recurrence.days:
        return False
    if recurrence.start_date is not None and day < recurrence.start_date:
        return False
    if recurrence.end_date is not None and day > recurrence.end_date:
        return False
    return True


def is_active_on(task: Task, day: date) -> bool:
    """
    Does `task` produce an instance on calendar day `day`?

    `day` must already be a calendar date (see core.dates.to_calendar_date).
    Archived tasks never produce instances; malformed shapes (recurring task without a
    recurrence, one-off without a due date) simply never match.
    """
    if task.archived:
        return False

    if task.type == TaskType.ONE_OFF:
        return task.due_date is not None and task.due_date == day

    if task.type == TaskType.RECURRING and task.recurrence is not None:
        return matches_recurrence(task.recurrence, day)

    return False
