# src/family_dashboard/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from .dates import iso_date, parse_timestamp, to_calendar_date


class TaskType(StrEnum):
    ONE_OFF = "one-off"
    RECURRING = "recurring"


class Category(StrEnum):
    MEALS = "meals"
    CHORES = "chores"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: str | None) -> Category | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(slots=True, frozen=True)
class Recurrence:
    """
    Weekly pattern: weekday indices (0=Sunday..6=Saturday) plus optional inclusive bounds.

    An empty `days` tuple is legal and simply never matches.
    """

    days: tuple[int, ...] = ()
    start_date: date | None = None
    end_date: date | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Recurrence:
        days = tuple(int(d) for d in (raw.get("days") or []))
        start = raw.get("startDate")
        end = raw.get("endDate")
        return cls(
            days=days,
            start_date=to_calendar_date(start) if start else None,
            end_date=to_calendar_date(end) if end else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"days": list(self.days)}
        if self.start_date is not None:
            out["startDate"] = iso_date(self.start_date)
        if self.end_date is not None:
            out["endDate"] = iso_date(self.end_date)
        return out


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    created_at: datetime
    type: TaskType

    due_date: date | None = None  # one-off only
    recurrence: Recurrence | None = None  # recurring only

    notes: str | None = None
    category: Category | None = None
    assigned_to: str | None = None
    archived: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        """
        Build a Task from its JSON shape (camelCase keys, ISO strings).

        Raises KeyError/ValueError for records without an id or with unparsable dates.
        """
        task_id = str(raw["id"])
        due = raw.get("dueDate")
        rec = raw.get("recurrence")
        return cls(
            id=task_id,
            title=str(raw.get("title") or ""),
            created_at=parse_timestamp(raw.get("createdAt")),
            type=TaskType(raw.get("type") or TaskType.ONE_OFF),
            due_date=to_calendar_date(due) if due else None,
            recurrence=Recurrence.from_dict(rec) if isinstance(rec, dict) else None,
            notes=raw.get("notes"),
            category=Category.from_raw(raw.get("category")),
            assigned_to=raw.get("assignedTo"),
            archived=bool(raw.get("archived", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        created = self.created_at.astimezone(UTC).isoformat(timespec="milliseconds")
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": created.replace("+00:00", "Z"),
            "type": self.type.value,
        }
        if self.due_date is not None:
            out["dueDate"] = iso_date(self.due_date)
        if self.recurrence is not None:
            out["recurrence"] = self.recurrence.to_dict()
        if self.notes is not None:
            out["notes"] = self.notes
        if self.category is not None:
            out["category"] = self.category.value
        if self.assigned_to is not None:
            out["assignedTo"] = self.assigned_to
        if self.archived:
            out["archived"] = True
        return out


@dataclass(slots=True, frozen=True)
class Instance:
    """A (task, calendar day) occurrence. Derived on query, never stored."""

    task: Task
    date: date

    @property
    def iso_date(self) -> str:
        return iso_date(self.date)


@dataclass(slots=True, frozen=True)
class Completion:
    task_id: str
    completed_at: datetime
    instance_date: date | None = None


class SyncEventType(StrEnum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    COMPLETION_ADDED = "completion_added"
    COMPLETION_REMOVED = "completion_removed"
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"
    PROFILE_DELETED = "profile_deleted"
    NOTE_SAVED = "note_saved"
    TASKS_SYNCED = "tasks_synced"


TASK_EVENT_TYPES: tuple[SyncEventType, ...] = (
    SyncEventType.TASK_CREATED,
    SyncEventType.TASK_UPDATED,
    SyncEventType.TASK_DELETED,
    SyncEventType.TASKS_SYNCED,
)


@dataclass(slots=True)
class SyncEvent:
    """
    A typed change notification.

    `source` identifies the emitting execution context (device id, "sync", ...);
    `timestamp` is epoch seconds. Both are stamped by the bus when missing.
    """

    type: SyncEventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float | None = None
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SyncEvent:
        data = raw.get("data")
        ts = raw.get("timestamp")
        return cls(
            type=SyncEventType(raw["type"]),
            data=data if isinstance(data, dict) else {},
            timestamp=float(ts) if ts is not None else None,
            source=raw.get("source"),
        )


class ConnectionStatus(StrEnum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SyncState:
    is_online: bool = True
    is_syncing: bool = False
    last_sync_time: float = 0.0
    pending_changes: int = 0
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
