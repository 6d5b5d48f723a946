# src/family_dashboard/sync/broadcast.py

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..core.models import SyncEvent
from ..core.ports import BroadcastChannel
from .bus import BROADCAST_KEY_PREFIX

logger = logging.getLogger(__name__)

RemoteEventHandler = Callable[[SyncEvent], None]


@dataclass(slots=True)
class _Slot:
    cursor: int
    key: str
    value: str
    written_at: float


class MemoryBroadcastChannel:
    """
    In-process broadcast channel.

    Several buses sharing one instance behave like several tabs sharing one origin.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._slots: list[_Slot] = []
        self._next_cursor = 1

    def __len__(self) -> int:
        return len(self._slots)

    def keys(self) -> list[str]:
        return [s.key for s in self._slots]

    def put(self, key: str, value: str) -> None:
        self._slots.append(_Slot(self._next_cursor, key, value, self._clock()))
        self._next_cursor += 1

    def delete(self, key: str) -> None:
        self._slots = [s for s in self._slots if s.key != key]

    def read_since(self, cursor: int) -> list[tuple[int, str, str]]:
        return [(s.cursor, s.key, s.value) for s in self._slots if s.cursor > cursor]

    def latest_cursor(self) -> int:
        return self._next_cursor - 1

    def purge_expired(self, ttl_seconds: float) -> int:
        cutoff = self._clock() - ttl_seconds
        before = len(self._slots)
        self._slots = [s for s in self._slots if s.written_at >= cutoff]
        return before - len(self._slots)


class BroadcastWatcher:
    """
    Observe events other execution contexts mirrored into a shared channel.

    Own events (same source id) and foreign keys are skipped. With `slot_ttl_seconds` set,
    each tick also purges slots older than the TTL, whoever wrote them (a process that
    died before its deletion timers fired leaves them behind). To stop the watcher, cancel
    the coroutine/task running `run()`.
    """

    def __init__(
            self,
            channel: BroadcastChannel,
            source_id: str,
            on_remote_event: RemoteEventHandler,
            *,
            interval_seconds: float = 0.5,
            slot_ttl_seconds: float | None = None,
    ) -> None:
        self.channel = channel
        self.source_id = source_id
        self.on_remote_event = on_remote_event
        self.interval_seconds = max(0.05, float(interval_seconds))
        self.slot_ttl_seconds = slot_ttl_seconds
        self._cursor: int | None = None

    def poll_once(self) -> int:
        """Deliver every new foreign event; returns how many were delivered."""
        if self._cursor is None:
            # Start from "now": history written before we started is not ours to replay.
            self._cursor = self.channel.latest_cursor()
            return 0

        delivered = 0
        for cursor, key, value in self.channel.read_since(self._cursor):
            self._cursor = max(self._cursor, cursor)
            if not key.startswith(BROADCAST_KEY_PREFIX):
                continue
            try:
                event = SyncEvent.from_dict(json.loads(value))
            except Exception:
                logger.warning("Ignoring malformed broadcast slot %s", key)
                continue
            if event.source == self.source_id:
                continue
            try:
                self.on_remote_event(event)
                delivered += 1
            except Exception:
                logger.exception("Remote event handler failed key=%s", key)
        return delivered

    async def run(self) -> None:
        while True:
            try:
                self.poll_once()
                if self.slot_ttl_seconds is not None:
                    self.channel.purge_expired(self.slot_ttl_seconds)
            except Exception:
                logger.exception("Broadcast poll failed")
            await asyncio.sleep(self.interval_seconds)
