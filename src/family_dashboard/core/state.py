# src/family_dashboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any

from ..notify.reminders import ReminderScheduler
from ..recurrence.resolver import RecurrenceResolver
from ..storage.local_store import LocalStore
from ..sync.coordinator import SyncCoordinator
from .ports import OutboundMessenger, TaskRepo


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    repo: TaskRepo
    local_store: LocalStore
    resolver: RecurrenceResolver
    coordinator: SyncCoordinator
    messenger: OutboundMessenger
    reminders: ReminderScheduler
    tz: tzinfo

    # Closers for resources owned by the wiring (http clients, matrix session, ...).
    closers: list[Any] = field(default_factory=list)
