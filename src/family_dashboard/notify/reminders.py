# src/family_dashboard/notify/reminders.py

"""
Reminder timers for tasks and meals.

Timers live on the running asyncio loop and are always cancellable (individually by key,
or all at once on shutdown). Delivery goes through the OutboundMessenger port; a failed
send is logged and dropped (reminders are best effort).

Windows:
- task reminders: only for due times within the next 7 days; fire 1 hour before the due
  time, or 1 second from now when less than an hour is left,
- meal reminders: only within the next 2 hours; fire 15 minutes before.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from datetime import time as dtime
from datetime import tzinfo
from typing import Any

from ..core.models import Task
from ..core.ports import OutboundMessenger
from ..recurrence.resolver import RecurrenceResolver

logger = logging.getLogger(__name__)

TASK_REMINDER_WINDOW = timedelta(days=7)
TASK_REMINDER_LEAD = timedelta(hours=1)
TASK_REMINDER_SOON_DELAY = 1.0

MEAL_REMINDER_WINDOW = timedelta(hours=2)
MEAL_REMINDER_LEAD = timedelta(minutes=15)


class ReminderScheduler:
    def __init__(
            self,
            messenger: OutboundMessenger,
            *,
            clock: Callable[[], float] = time.time,
            room_id: str | None = None,
    ) -> None:
        self.messenger = messenger
        self.room_id = room_id
        self._clock = clock
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._sends: set[asyncio.Task[Any]] = set()

    def pending(self) -> list[str]:
        return sorted(self._timers)

    # ---- scheduling ----

    def schedule_task_reminder(self, title: str, due_at: datetime, assignee: str | None = None) -> str | None:
        """Returns the reminder key, or None when the due time is outside the window."""
        now = self._clock()
        until_due = _epoch(due_at) - now
        if until_due < 0 or until_due > TASK_REMINDER_WINDOW.total_seconds():
            return None

        lead = TASK_REMINDER_LEAD.total_seconds()
        delay = until_due - lead if until_due > lead else TASK_REMINDER_SOON_DELAY

        who = f"{assignee}: " if assignee else ""
        return self._schedule(f"task-{title}", delay, f"{who}{title} is due soon!")

    def schedule_meal_reminder(self, meal_type: str, meal_name: str, scheduled_at: datetime) -> str | None:
        now = self._clock()
        until_meal = _epoch(scheduled_at) - now
        if until_meal < 0 or until_meal > MEAL_REMINDER_WINDOW.total_seconds():
            return None

        delay = max(0.0, until_meal - MEAL_REMINDER_LEAD.total_seconds())
        return self._schedule(f"meal-{meal_type}", delay, f"Time to prepare {meal_name} ({meal_type})")

    def remind_next_instance(
            self,
            task: Task,
            resolver: RecurrenceResolver,
            *,
            at: dtime = dtime(hour=9),
            tz: tzinfo | None = None,
            from_: date | None = None,
    ) -> str | None:
        """Schedule a reminder for the task's next occurrence at time-of-day `at`."""
        if task.archived:
            return None
        day = resolver.next_instance(task, from_)
        if day is None:
            return None
        due_at = datetime.combine(day, at, tzinfo=tz or UTC)
        return self.schedule_task_reminder(task.title, due_at, task.assigned_to)

    async def send_completion_celebration(self, member: str, title: str) -> None:
        await self._send(f"Great job! {member} completed: {title}")

    # ---- cancellation ----

    def cancel(self, key: str) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        n = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for t in self._sends:
            t.cancel()
        return n

    # ---- internals ----

    def _schedule(self, key: str, delay: float, text: str) -> str:
        loop = asyncio.get_running_loop()
        self.cancel(key)
        self._timers[key] = loop.call_later(max(0.0, delay), self._fire, key, text)
        logger.info("Reminder scheduled key=%s in %.0fs", key, delay)
        return key

    def _fire(self, key: str, text: str) -> None:
        self._timers.pop(key, None)
        task = asyncio.get_running_loop().create_task(self._send(text))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _send(self, text: str) -> None:
        try:
            await self.messenger.send_text(text=text, room_id=self.room_id)
        except Exception:
            logger.exception("Reminder delivery failed")


def _epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()
