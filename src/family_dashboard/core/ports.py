# src/family_dashboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The resolver and the sync coordinator depend on Protocols instead of concrete
implementations. This keeps the authoritative store, the local snapshot, the
cross-context channel and outbound notifications swappable and makes testing easier.
"""

from typing import Awaitable, Protocol

from .models import Task


class TaskRepo(Protocol):
    """
    The authoritative task store (CRUD collaborator).

    The core only relies on this narrow surface: no storage format, transport or schema.
    Implementations raise RepoError (or any exception) on failure; callers decide
    how much of it to swallow.
    """

    async def get_tasks(self) -> list[Task]: ...
    async def create_task(self, task: Task) -> Task: ...
    async def update_task(self, task: Task) -> Task: ...
    async def delete_task(self, task_id: str) -> None: ...


class SnapshotStore(Protocol):
    """Last locally known task list (what this device saw after its previous sync)."""

    def load_tasks(self) -> list[Task]: ...
    def save_tasks(self, tasks: list[Task]) -> None: ...


class BroadcastChannel(Protocol):
    """
    Shared short-lived key/value slots visible to other execution contexts on the same host.

    `read_since` returns (cursor, key, value) triples written after `cursor`, oldest first.
    `purge_expired` drops slots older than `ttl_seconds` and returns how many went.
    """

    def put(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...
    def read_since(self, cursor: int) -> list[tuple[int, str, str]]: ...
    def latest_cursor(self) -> int: ...
    def purge_expired(self, ttl_seconds: float) -> int: ...


class OutboundMessenger(Protocol):
    """
    Connector-side port: how services (reminders) can send text outward.

    The connector decides how to interpret room_id (None means "default room").
    """

    def send_text(
            self,
            *,
            text: str,
            room_id: str | None = None,
    ) -> Awaitable[None]: ...
