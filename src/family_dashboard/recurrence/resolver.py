# src/family_dashboard/recurrence/resolver.py

"""
Recurrence resolver.

Expands abstract task definitions into concrete (task, day) instances over a 7-day
window, and finds the next occurrence of a single task.

Key invariants:
- output order is day-major (chronological), task-minor (input order),
- windows are memoized by (sorted task ids, window start); the cache is only ever
  invalidated explicitly (task mutation events) or by its size bound,
- `next_instance` never searches past NEXT_INSTANCE_HORIZON_DAYS.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta, tzinfo
from typing import Any

from ..core.dates import DateLike, iso_date, to_calendar_date, today, week_days
from ..core.models import TASK_EVENT_TYPES, Instance, SyncEvent, SyncEventType, Task, TaskType
from .cache import CacheKey, InstanceCache
from .predicate import is_active_on, matches_recurrence

logger = logging.getLogger(__name__)

NEXT_INSTANCE_HORIZON_DAYS = 366


class RecurrenceResolver:
    def __init__(self, cache: InstanceCache | None = None, *, tz: tzinfo | None = None) -> None:
        self.cache = cache if cache is not None else InstanceCache()
        self.tz = tz

    # ---- queries ----

    def instances_for_week(self, tasks: Sequence[Task], week_start: DateLike) -> list[Instance]:
        """
        All (task, day) pairs for the 7 days starting at `week_start`.

        Served from the cache when the same task-id set was already expanded for this
        window start.
        """
        start = to_calendar_date(week_start, self.tz)
        key = CacheKey.build((t.id for t in tasks), iso_date(start))

        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        out: list[Instance] = []
        for day in week_days(start):
            for task in tasks:
                if is_active_on(task, day):
                    out.append(Instance(task=task, date=day))

        self.cache.put(key, tuple(out))
        return out

    def instances_for_date(self, tasks: Sequence[Task], day: DateLike) -> list[Instance]:
        target = to_calendar_date(day, self.tz)
        return [i for i in self.instances_for_week(tasks, target) if i.date == target]

    def next_instance(self, task: Task, from_: DateLike | None = None) -> date | None:
        """
        Next calendar day on which `task` occurs, searching forward from `from_` (inclusive).

        One-off tasks return their stored due date unconditionally (even if it is in the past).
        Recurring tasks are scanned day by day for at most NEXT_INSTANCE_HORIZON_DAYS.
        """
        if task.type == TaskType.ONE_OFF:
            return task.due_date

        if task.type != TaskType.RECURRING or task.recurrence is None:
            return None

        start = to_calendar_date(from_, self.tz) if from_ is not None else today(self.tz)
        for offset in range(NEXT_INSTANCE_HORIZON_DAYS):
            day = start + timedelta(days=offset)
            if matches_recurrence(task.recurrence, day):
                return day
        return None

    # ---- cache control ----

    def invalidate_cache(self, task_ids: Iterable[str] | None = None) -> None:
        """Drop windows containing any of `task_ids`; with no ids, drop everything."""
        if task_ids is None:
            self.cache.clear()
            return
        self.cache.invalidate(list(task_ids))

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()

    # ---- bus integration ----

    def handle_sync_event(self, event: SyncEvent) -> None:
        """
        Bus listener: keep the cache consistent with task mutations.

        Creation and full syncs change every fingerprint that should include the new ids,
        so they clear everything. Updates and deletes drop only the affected windows.
        """
        if event.type not in TASK_EVENT_TYPES:
            return

        if event.type in (SyncEventType.TASK_CREATED, SyncEventType.TASKS_SYNCED):
            self.clear_cache()
            return

        task_ids = _task_ids_from_payload(event.data)
        if not task_ids:
            logger.debug("No task id in %s payload; clearing instance cache", event.type)
            self.clear_cache()
            return
        self.invalidate_cache(task_ids)


def _task_ids_from_payload(data: dict[str, Any]) -> list[str]:
    ids: list[str] = []
    task = data.get("task")
    if isinstance(task, Task):
        ids.append(task.id)
    elif isinstance(task, dict) and task.get("id"):
        ids.append(str(task["id"]))
    for key in ("id", "task_id", "taskId"):
        if data.get(key):
            ids.append(str(data[key]))
    return ids
