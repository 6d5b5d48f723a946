# src/family_dashboard/sync/bus.py

"""
Typed publish/subscribe bus.

- `emit` stamps missing source/timestamp fields, appends to a FIFO queue and drains it.
  Emits issued while a drain is running (e.g. from inside a listener) are queued, not
  delivered inline, so delivery order always equals emission order within a process.
- `on` registers a listener for exactly one event type and returns an explicit
  Subscription handle.
- Every drained event is mirrored into a short-lived broadcast slot so other execution
  contexts sharing the channel can react. The slot is deleted after `slot_ttl_seconds`.
  Cross-context delivery is best effort and unordered.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from ..core.models import SyncEvent, SyncEventType
from ..core.ports import BroadcastChannel

logger = logging.getLogger(__name__)

BROADCAST_KEY_PREFIX = "familydashboard:"

Listener = Callable[[SyncEvent], None]


class Subscription:
    """Deregistration handle returned by `on(...)` style registrations."""

    __slots__ = ("_cancel",)

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        """Idempotent: calling it twice is harmless."""
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    def __call__(self) -> None:
        self.unsubscribe()


def broadcast_key(event_type: SyncEventType, timestamp: float) -> str:
    return f"{BROADCAST_KEY_PREFIX}{event_type.value}:{int(timestamp * 1000)}"


class EventBus:
    def __init__(
        self,
        source_id: str,
        *,
        broadcast: BroadcastChannel | None = None,
        clock: Callable[[], float] = time.time,
        slot_ttl_seconds: float = 1.0,
    ) -> None:
        self.source_id = source_id
        self._broadcast = broadcast
        self._clock = clock
        self._slot_ttl = max(0.0, float(slot_ttl_seconds))

        self._listeners: dict[SyncEventType, dict[int, Listener]] = {}
        self._ids = itertools.count(1)
        self._queue: deque[SyncEvent] = deque()
        self._draining = False
        # Slots this bus wrote and has not deleted yet (key -> pending deletion timer).
        self._slots: dict[str, asyncio.TimerHandle | None] = {}

    # ---- subscriptions ----

    def on(self, event_type: SyncEventType | str, listener: Listener) -> Subscription:
        etype = SyncEventType(event_type)
        token = next(self._ids)
        self._listeners.setdefault(etype, {})[token] = listener

        def _cancel() -> None:
            listeners = self._listeners.get(etype)
            if listeners is None:
                return
            listeners.pop(token, None)
            if not listeners:
                del self._listeners[etype]

        return Subscription(_cancel)

    def listener_count(self, event_type: SyncEventType | str | None = None) -> int:
        if event_type is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(SyncEventType(event_type), {}))

    # ---- publishing ----

    def emit(
        self,
        event_type: SyncEventType | str,
        event: SyncEvent | None = None,
        *,
        data: dict[str, Any] | None = None,
    ) -> SyncEvent:
        """
        Queue an event for delivery and drain the queue unless a drain is already running.

        The `event_type` argument is authoritative: it overrides `event.type`.
        Returns the stamped event.
        """
        etype = SyncEventType(event_type)
        if event is None:
            event = SyncEvent(type=etype, data=dict(data or {}))
        event.type = etype
        if not event.source:
            event.source = self.source_id
        if not event.timestamp:
            event.timestamp = self._clock()

        self._queue.append(event)
        if not self._draining:
            self._drain()
        return event

    def pending(self) -> int:
        return len(self._queue)

    def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                event = self._queue.popleft()
                self._deliver(event)
                self._mirror(event)
        finally:
            self._draining = False

    def _deliver(self, event: SyncEvent) -> None:
        # Snapshot: listeners may (un)subscribe while being called.
        listeners = list(self._listeners.get(event.type, {}).values())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed type=%s source=%s", event.type.value, event.source)

    def _mirror(self, event: SyncEvent) -> None:
        if self._broadcast is None:
            return

        key = broadcast_key(event.type, self._clock())
        try:
            self._broadcast.put(key, json.dumps(event.to_dict(), ensure_ascii=False, default=str))
        except Exception:
            logger.exception("Broadcast write failed key=%s", key)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to time the deletion: flush_slots() or an expiry purge removes it.
            self._slots[key] = None
            return
        self._slots[key] = loop.call_later(self._slot_ttl, self._delete_slot, key)

    def flush_slots(self) -> int:
        """Delete every slot this bus still owns right away (shutdown path)."""
        keys = list(self._slots)
        for key in keys:
            handle = self._slots.get(key)
            if handle is not None:
                handle.cancel()
            self._delete_slot(key)
        return len(keys)

    def _delete_slot(self, key: str) -> None:
        self._slots.pop(key, None)
        if self._broadcast is None:
            return
        try:
            self._broadcast.delete(key)
        except Exception:
            logger.exception("Broadcast cleanup failed key=%s", key)
