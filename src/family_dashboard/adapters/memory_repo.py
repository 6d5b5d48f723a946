# src/family_dashboard/adapters/memory_repo.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.models import Task

logger = logging.getLogger(__name__)


class MemoryTaskRepo:
    """
    In-process authoritative store.

    Semantics follow the browser-local adapter: new tasks go to the front, updates replace
    in place (or insert at the front when unknown), deletes filter by id.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: list[Task] = list(tasks)

    async def get_tasks(self) -> list[Task]:
        return list(self._tasks)

    async def create_task(self, task: Task) -> Task:
        self._tasks.insert(0, task)
        logger.debug("Task created id=%s", task.id)
        return task

    async def update_task(self, task: Task) -> Task:
        for idx, existing in enumerate(self._tasks):
            if existing.id == task.id:
                self._tasks[idx] = task
                break
        else:
            self._tasks.insert(0, task)
        return task

    async def delete_task(self, task_id: str) -> None:
        self._tasks = [t for t in self._tasks if t.id != task_id]
