# src/family_dashboard/sync/reconciler.py

from __future__ import annotations

"""
Reconciliation engine.

One pass:
- skip if another pass is in flight (the state machine's syncing flag is the guard),
- fetch the authoritative task list (bounded by fetch_timeout_seconds),
- load the last local snapshot and merge (see sync.merge),
- if the merge differs from the remote list (length or id order): push the tasks the
  remote side is missing or holds an older copy of,
- if the merge differs from the remote list or from the local snapshot: persist the merged
  snapshot and emit ONE tasks_synced event carrying the merged list,
- leave the syncing state; on success also stamp last_sync_time and reset pending changes.

Failures never escape a pass: they are logged and the next scheduled pass retries.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import StrEnum

from ..core.models import SyncEventType, Task
from ..core.ports import SnapshotStore, TaskRepo
from .bus import EventBus
from .merge import MergeResult, merge_task_changes
from .state import SyncStateMachine

logger = logging.getLogger(__name__)


class ReconcileOutcome(StrEnum):
    COMPLETED = "completed"
    SKIPPED = "skipped"  # another pass was in flight, or the coordinator was not connected
    FAILED = "failed"


class Reconciler:
    def __init__(
            self,
            repo: TaskRepo,
            snapshot: SnapshotStore,
            bus: EventBus,
            state: SyncStateMachine,
            *,
            fetch_timeout_seconds: float | None = 15.0,
    ) -> None:
        self.repo = repo
        self.snapshot = snapshot
        self.bus = bus
        self.state = state
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.passes = 0

    async def reconcile(self) -> ReconcileOutcome:
        """Run one pass. Never raises."""
        if not self.state.begin_sync():
            logger.debug("Reconcile skipped: a pass is already in flight")
            return ReconcileOutcome.SKIPPED

        success = False
        try:
            remote = await asyncio.wait_for(self.repo.get_tasks(), timeout=self.fetch_timeout_seconds)
            local = self.snapshot.load_tasks()

            result = merge_task_changes(local, remote)
            if result.needs_publish:
                if result.changed:
                    await self._push_local_wins(result, remote)
                self.snapshot.save_tasks(result.tasks)
                self.bus.emit(
                    SyncEventType.TASKS_SYNCED,
                    data={"tasks": [t.to_dict() for t in result.tasks]},
                )
                logger.info(
                    "Reconciled tasks: remote=%d local=%d merged=%d", len(remote), len(local), len(result.tasks)
                )
            else:
                logger.debug("Reconcile: no changes (remote=%d)", len(remote))

            success = True
            self.passes += 1
            return ReconcileOutcome.COMPLETED
        except TimeoutError:
            logger.warning("Reconcile aborted: fetching tasks timed out after %ss", self.fetch_timeout_seconds)
            return ReconcileOutcome.FAILED
        except Exception:
            logger.exception("Reconcile failed")
            return ReconcileOutcome.FAILED
        finally:
            self.state.finish_sync(success=success)

    async def _push_local_wins(self, result: MergeResult, remote: Sequence[Task]) -> None:
        remote_by_id = {t.id: t for t in remote}
        for task in result.tasks:
            if remote_by_id.get(task.id) == task:
                continue
            try:
                await self.repo.update_task(task)
            except Exception:
                # Partial progress is fine; the next pass retries what is still missing.
                logger.exception("Failed to push task %s during reconcile", task.id)
