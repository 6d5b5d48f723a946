# src/family_dashboard/sync/merge.py

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..core.models import Task


@dataclass(slots=True, frozen=True)
class MergeResult:
    tasks: list[Task]
    changed: bool  # differs from the remote list by length or id order
    local_changed: bool  # differs from the local snapshot (new or replaced tasks)

    @property
    def needs_publish(self) -> bool:
        return self.changed or self.local_changed


def merge_task_changes(local: Sequence[Task], remote: Sequence[Task]) -> MergeResult:
    """
    Merge the last local snapshot with the authoritative list.

    Policy (creation-timestamp last-writer-wins):
    - remote-only task: kept as is (created by another client),
    - task on both sides: the side with the greater `created_at` wins, ties go to remote,
    - local-only task: kept, appended after the remote ones in local order (it may have
      been created offline and not propagated yet).

    NOTE: the comparison uses creation time, not a last-modified time. An edit made on one
    side does not by itself win over the other side.
    """
    local_by_id = {t.id: t for t in local}
    remote_ids = {t.id for t in remote}

    merged: list[Task] = []
    for remote_task in remote:
        local_task = local_by_id.get(remote_task.id)
        if local_task is None or remote_task.created_at >= local_task.created_at:
            merged.append(remote_task)
        else:
            merged.append(local_task)

    for local_task in local:
        if local_task.id not in remote_ids:
            merged.append(local_task)

    changed = len(merged) != len(remote) or any(m.id != r.id for m, r in zip(merged, remote))
    return MergeResult(tasks=merged, changed=changed, local_changed=merged != list(local))
