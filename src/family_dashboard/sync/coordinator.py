# src/family_dashboard/sync/coordinator.py

"""
Sync coordinator: the one service object presentation code talks to.

It is constructed once at startup with its collaborators injected (task repo, local
snapshot, optional broadcast channel, optional resolver, clock) and passed by reference.

Responsibilities:
- expose the pub/sub surface (on / emit / get_sync_state / on_sync_state_change / force_sync),
- drive the connection state machine from network signals,
- run the polling loop (one reconcile pass every poll interval while connected),
- trigger an extra pass on local mutations ("data changed") and on events observed from
  other execution contexts,
- keep the recurrence cache in step with task events.

Sync failures never raise into callers: they show up as connection_status=error and
is_syncing=False, and the next tick retries (reconnecting from the error state first).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..core.models import TASK_EVENT_TYPES, ConnectionStatus, SyncEvent, SyncEventType, SyncState, Task
from ..core.ports import BroadcastChannel, SnapshotStore, TaskRepo
from ..recurrence.resolver import RecurrenceResolver
from .broadcast import BroadcastWatcher
from .bus import EventBus, Listener, Subscription
from .reconciler import ReconcileOutcome, Reconciler
from .state import StateListener, SyncStateMachine

logger = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(
            self,
            repo: TaskRepo,
            snapshot: SnapshotStore,
            *,
            source_id: str,
            broadcast: BroadcastChannel | None = None,
            resolver: RecurrenceResolver | None = None,
            poll_interval_seconds: float = 30.0,
            fetch_timeout_seconds: float | None = 15.0,
            slot_ttl_seconds: float = 1.0,
            broadcast_poll_interval_seconds: float = 0.5,
            is_online: bool = True,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self.repo = repo
        self.snapshot = snapshot
        self.source_id = source_id
        self.resolver = resolver
        self.poll_interval_seconds = max(0.01, float(poll_interval_seconds))

        self.state_machine = SyncStateMachine(is_online=is_online, clock=clock)
        self.bus = EventBus(source_id, broadcast=broadcast, clock=clock, slot_ttl_seconds=slot_ttl_seconds)
        self.reconciler = Reconciler(
            repo,
            snapshot,
            self.bus,
            self.state_machine,
            fetch_timeout_seconds=fetch_timeout_seconds,
        )

        self._watcher: BroadcastWatcher | None = None
        if broadcast is not None:
            self._watcher = BroadcastWatcher(
                broadcast,
                source_id,
                self._on_remote_event,
                interval_seconds=broadcast_poll_interval_seconds,
                slot_ttl_seconds=slot_ttl_seconds,
            )

        self._subscriptions: list[Subscription] = []
        if resolver is not None:
            for etype in TASK_EVENT_TYPES:
                self._subscriptions.append(self.bus.on(etype, resolver.handle_sync_event))

        self._poll_task: asyncio.Task[None] | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # ---- pub/sub surface ----

    def on(self, event_type: SyncEventType | str, listener: Listener) -> Subscription:
        return self.bus.on(event_type, listener)

    def emit(
            self,
            event_type: SyncEventType | str,
            event: SyncEvent | None = None,
            *,
            data: dict[str, Any] | None = None,
    ) -> SyncEvent:
        return self.bus.emit(event_type, event, data=data)

    def get_sync_state(self) -> SyncState:
        return self.state_machine.state

    def on_sync_state_change(self, listener: StateListener) -> Subscription:
        return self.state_machine.subscribe(listener)

    async def force_sync(self) -> ReconcileOutcome:
        return await self._sync_pass()

    def notify_local_change(self) -> None:
        """The "data changed" signal: count a pending change and schedule a pass."""
        self.state_machine.add_pending(1)
        self._schedule_sync()

    # ---- connectivity ----

    def set_online(self, online: bool) -> None:
        if online:
            self.state_machine.network_online()
            if self.connect():
                self._schedule_sync()
        else:
            # Offline: drop the connection; polling ticks skip until we are back.
            self.state_machine.network_offline()
            logger.info("Network offline: sync suspended")

    def connect(self) -> bool:
        """
        Move towards connected. The transport is a plain request/response collaborator,
        so there is nothing to open: connecting succeeds unless we are offline.
        """
        if not self.state_machine.begin_connect():
            return self.state_machine.state.connection_status == ConnectionStatus.CONNECTED
        return self.state_machine.mark_connected()

    # ---- lifecycle ----

    async def start(self, *, initial_sync: bool = True) -> None:
        if self._poll_task is not None:
            return
        self.connect()
        self._poll_task = asyncio.create_task(self._poll_loop(), name="fd-sync-poll")
        if self._watcher is not None:
            self._watch_task = asyncio.create_task(self._watcher.run(), name="fd-broadcast-watch")
        logger.info(
            "Sync coordinator started source=%s interval=%ss", self.source_id, self.poll_interval_seconds
        )
        if initial_sync:
            self._schedule_sync()

    async def stop(self) -> None:
        tasks = [t for t in (self._poll_task, self._watch_task) if t is not None]
        tasks.extend(self._background)
        for t in tasks:
            t.cancel()
        for t in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        self._poll_task = None
        self._watch_task = None
        self._background.clear()

        flushed = self.bus.flush_slots()
        if flushed:
            logger.debug("Removed %s pending broadcast slot(s) on stop", flushed)
        self.state_machine.mark_disconnected()
        logger.info("Sync coordinator stopped")

    def close(self) -> None:
        """Detach bus listeners (the coordinator is unusable afterwards)."""
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions.clear()

    async def __aenter__(self) -> SyncCoordinator:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ---- mutations (presentation-facing helpers) ----

    async def create_task(self, task: Task) -> Task:
        """
        Create through the repo, then announce it.

        When offline or when the repo fails, the task is kept in the local snapshot as a
        pending change; the next reconcile pass pushes it.
        """
        created = await self._write_or_keep_locally(task, self.repo.create_task)
        self.emit(SyncEventType.TASK_CREATED, data={"task": created.to_dict()})
        self.notify_local_change()
        return created

    async def update_task(self, task: Task) -> Task:
        updated = await self._write_or_keep_locally(task, self.repo.update_task)
        self.emit(SyncEventType.TASK_UPDATED, data={"task": updated.to_dict()})
        self.notify_local_change()
        return updated

    async def delete_task(self, task_id: str) -> None:
        """
        Delete through the repo. Errors propagate: a delete that only happened locally would
        be undone by the next merge (remote-only tasks are always kept).
        """
        await self.repo.delete_task(task_id)
        local = self.snapshot.load_tasks()
        if any(t.id == task_id for t in local):
            self.snapshot.save_tasks([t for t in local if t.id != task_id])
        self.emit(SyncEventType.TASK_DELETED, data={"id": task_id})
        self.notify_local_change()

    async def archive_task(self, task_id: str, archived: bool = True) -> Task | None:
        for t in await self._current_tasks():
            if t.id == task_id:
                return await self.update_task(replace(t, archived=archived))
        return None

    # ---- internals ----

    async def _current_tasks(self) -> list[Task]:
        """Repo view when reachable, local snapshot otherwise."""
        if self.state_machine.state.is_online:
            try:
                return await self.repo.get_tasks()
            except Exception as e:
                logger.warning("Repo read failed (%s); using the local snapshot", e)
        return self.snapshot.load_tasks()

    async def _write_or_keep_locally(self, task: Task, write: Callable[[Task], Any]) -> Task:
        if self.state_machine.state.is_online:
            try:
                return await write(task)
            except Exception:
                logger.exception("Repo write failed for task %s; keeping it locally", task.id)

        local = [t for t in self.snapshot.load_tasks() if t.id != task.id]
        self.snapshot.save_tasks([task, *local])
        return task

    async def _sync_pass(self) -> ReconcileOutcome:
        state = self.state_machine.state
        if not state.is_online:
            logger.debug("Sync pass skipped: offline")
            return ReconcileOutcome.SKIPPED

        if state.connection_status == ConnectionStatus.ERROR:
            self.connect()
        if self.state_machine.state.connection_status != ConnectionStatus.CONNECTED:
            return ReconcileOutcome.SKIPPED

        outcome = await self.reconciler.reconcile()
        if outcome == ReconcileOutcome.FAILED:
            self.state_machine.connection_failed()
        return outcome

    def _schedule_sync(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Not running inside the event loop: the next polling tick picks the change up.
            return
        task = loop.create_task(self._sync_pass())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                await self._sync_pass()
            except Exception:
                logger.exception("Polling sync pass failed")

    def _on_remote_event(self, event: SyncEvent) -> None:
        logger.debug("Remote event type=%s source=%s", event.type.value, event.source)
        if self.resolver is not None:
            self.resolver.handle_sync_event(event)
        self._schedule_sync()
