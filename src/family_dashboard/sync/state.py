# src/family_dashboard/sync/state.py

"""
Connectivity / sync status state machine.

Connection lifecycle:

    disconnected --begin_connect--> connecting --mark_connected--> connected
    connecting/connected --connection_failed--> error
    any --network_offline / mark_disconnected--> disconnected

`is_syncing` is an independent sub-state covering exactly one reconciliation pass.

The machine never raises to callers: transitions that make no sense in the current state
are ignored (logged at DEBUG) and return False. Observers are notified synchronously after
every effective mutation; a failing observer is logged and does not block the others.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..core.models import ConnectionStatus, SyncState
from .bus import Subscription

logger = logging.getLogger(__name__)

StateListener = Callable[[SyncState], None]


class SyncStateMachine:
    def __init__(self, *, is_online: bool = True, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._state = SyncState(
            is_online=is_online,
            is_syncing=False,
            last_sync_time=clock(),
            pending_changes=0,
            connection_status=ConnectionStatus.DISCONNECTED,
        )
        self._listeners: dict[int, StateListener] = {}
        self._ids = itertools.count(1)

    @property
    def state(self) -> SyncState:
        return self._state

    def subscribe(self, listener: StateListener) -> Subscription:
        token = next(self._ids)
        self._listeners[token] = listener
        return Subscription(lambda: self._listeners.pop(token, None))

    # ---- network signals ----

    def network_online(self) -> None:
        self._update(is_online=True)

    def network_offline(self) -> None:
        self._update(is_online=False, connection_status=ConnectionStatus.DISCONNECTED)

    # ---- connection lifecycle ----

    def begin_connect(self) -> bool:
        s = self._state
        if not s.is_online:
            logger.debug("begin_connect ignored: offline")
            return False
        if s.connection_status not in (ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR):
            logger.debug("begin_connect ignored: status=%s", s.connection_status.value)
            return False
        self._update(connection_status=ConnectionStatus.CONNECTING)
        return True

    def mark_connected(self) -> bool:
        s = self._state
        if not s.is_online or s.connection_status != ConnectionStatus.CONNECTING:
            logger.debug(
                "mark_connected ignored: online=%s status=%s", s.is_online, s.connection_status.value
            )
            return False
        self._update(connection_status=ConnectionStatus.CONNECTED)
        return True

    def connection_failed(self) -> bool:
        if self._state.connection_status not in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            logger.debug("connection_failed ignored: status=%s", self._state.connection_status.value)
            return False
        self._update(connection_status=ConnectionStatus.ERROR)
        return True

    def mark_disconnected(self) -> None:
        self._update(connection_status=ConnectionStatus.DISCONNECTED)

    # ---- sync passes ----

    def begin_sync(self) -> bool:
        """Enter the syncing sub-state; False when a pass is already in flight."""
        if self._state.is_syncing:
            return False
        self._update(is_syncing=True)
        return True

    def finish_sync(self, *, success: bool) -> None:
        if success:
            self._update(is_syncing=False, last_sync_time=self._clock(), pending_changes=0)
        else:
            self._update(is_syncing=False)

    def add_pending(self, n: int = 1) -> None:
        self._update(pending_changes=max(0, self._state.pending_changes + int(n)))

    # ---- internals ----

    def _update(self, **changes: Any) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners.values()):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Sync state listener failed")
