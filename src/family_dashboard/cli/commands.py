# src/family_dashboard/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, time

from ..core.dates import iso_date, start_of_week, to_calendar_date, today
from ..core.models import Instance, Task
from ..core.state import AppState

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /week, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, args)
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


async def _load_tasks(state: AppState) -> list[Task]:
    """Authoritative list when reachable, last local snapshot otherwise."""
    try:
        return await state.repo.get_tasks()
    except Exception:
        logger.warning("Task repo unavailable; using local snapshot", exc_info=True)
        return state.local_store.load_tasks()


def _format_instances(instances: list[Instance]) -> str:
    if not instances:
        return "(nothing scheduled)"
    lines: list[str] = []
    current = None
    for inst in instances:
        if inst.date != current:
            current = inst.date
            lines.append(f"{inst.iso_date} ({inst.date.strftime('%a')})")
        who = f" @{inst.task.assigned_to}" if inst.task.assigned_to else ""
        cat = f" [{inst.task.category.value}]" if inst.task.category else ""
        lines.append(f"  - {inst.task.title}{cat}{who}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.coordinator.get_sync_state()
    last = datetime.fromtimestamp(s.last_sync_time).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    return (
        "Sync status:\n"
        f"  online: {'yes' if s.is_online else 'no'}\n"
        f"  connection: {s.connection_status.value}\n"
        f"  syncing: {'yes' if s.is_syncing else 'no'}\n"
        f"  pending changes: {s.pending_changes}\n"
        f"  last sync: {last}"
    )


async def cmd_week(state: AppState, args: list[str]) -> str:
    try:
        anchor = to_calendar_date(args[0], state.tz) if args else today(state.tz)
    except ValueError:
        return "Usage: /week [YYYY-MM-DD]"
    start = start_of_week(anchor)
    tasks = await _load_tasks(state)
    instances = state.resolver.instances_for_week(tasks, start)
    return f"Week of {iso_date(start)}:\n{_format_instances(instances)}"


async def cmd_today(state: AppState, args: list[str]) -> str:
    day = today(state.tz)
    tasks = await _load_tasks(state)
    return f"Today:\n{_format_instances(state.resolver.instances_for_date(tasks, day))}"


async def cmd_next(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /next <task-id>"
    tasks = await _load_tasks(state)
    task = next((t for t in tasks if t.id == args[0]), None)
    if task is None:
        return f"No task with id {args[0]}"
    nxt = state.resolver.next_instance(task, today(state.tz))
    return f"{task.title}: {iso_date(nxt)}" if nxt else f"{task.title}: no upcoming occurrence"


async def cmd_sync(state: AppState, args: list[str]) -> str:
    outcome = await state.coordinator.force_sync()
    return f"Sync {outcome.value} (connection: {state.coordinator.get_sync_state().connection_status.value})"


def cmd_online(state: AppState, args: list[str]) -> str:
    state.coordinator.set_online(True)
    return "Network marked online."


def cmd_offline(state: AppState, args: list[str]) -> str:
    state.coordinator.set_online(False)
    return "Network marked offline: sync suspended."


def cmd_cache(state: AppState, args: list[str]) -> str:
    if args and args[0] == "clear":
        state.resolver.clear_cache()
        return "Instance cache cleared."
    st = state.resolver.cache_stats()
    return (
        "Instance cache:\n"
        f"  size: {st['current_size']}/{st['max_size']}\n"
        f"  hits: {st['hits']} misses: {st['misses']} (hit rate {st['hit_rate']}%)\n"
        f"  evictions: {st['evictions']} invalidations: {st['invalidations']}"
    )


async def cmd_remind(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /remind <task-id> [HH:MM]"
    at = time(hour=9)
    if len(args) > 1:
        try:
            at = time.fromisoformat(args[1])
        except ValueError:
            return "Usage: /remind <task-id> [HH:MM]"
    tasks = await _load_tasks(state)
    task = next((t for t in tasks if t.id == args[0]), None)
    if task is None:
        return f"No task with id {args[0]}"
    key = state.reminders.remind_next_instance(task, state.resolver, at=at, tz=state.tz, from_=today(state.tz))
    return f"Reminder scheduled ({key})." if key else "Nothing to remind about in the next 7 days."


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("status", cmd_status, "Show sync / connection status")
registry.register("week", cmd_week, "List the week's task instances: /week [YYYY-MM-DD]")
registry.register("today", cmd_today, "List today's task instances")
registry.register("next", cmd_next, "Next occurrence of a task: /next <task-id>")
registry.register("sync", cmd_sync, "Run a reconcile pass now")
registry.register("online", cmd_online, "Signal that the network is back")
registry.register("offline", cmd_offline, "Signal that the network is gone")
registry.register("cache", cmd_cache, "Instance cache stats: /cache [clear]")
registry.register("remind", cmd_remind, "Remind about a task's next occurrence: /remind <task-id> [HH:MM]")
