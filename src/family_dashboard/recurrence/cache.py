# src/family_dashboard/recurrence/cache.py

"""Bounded memoization for computed instance weeks.

Entries are keyed by (sorted task ids, window start). The cache keeps a structured
task-id -> keys index so invalidating one task touches exactly the windows whose task
set contained it, with no string matching over rendered keys.

Eviction is least-recently-used in batches: once the entry count exceeds the ceiling,
the oldest ~20% are dropped in one pass. Without reads in between this is plain
insertion order.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..core.models import Instance

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
EVICTION_FRACTION = 0.2


@dataclass(slots=True, frozen=True)
class CacheKey:
    task_ids: tuple[str, ...]
    window_start: str  # ISO calendar date

    @classmethod
    def build(cls, task_ids: Iterable[str], window_start: str) -> CacheKey:
        return cls(task_ids=tuple(sorted(task_ids)), window_start=window_start)

    @property
    def fingerprint(self) -> str:
        return f"{','.join(self.task_ids)}:{self.window_start}"


class InstanceCache:
    """
    get/put/evict/invalidate cache of instance lists.

    None of the methods raise; a miss just means the caller recomputes.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.max_entries = max(1, int(max_entries))
        self._entries: OrderedDict[CacheKey, tuple[Instance, ...]] = OrderedDict()
        self._by_task: dict[str, set[CacheKey]] = {}
        self.stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "invalidations": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[CacheKey]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def get(self, key: CacheKey) -> tuple[Instance, ...] | None:
        value = self._entries.get(key)
        if value is None:
            self.stats["misses"] += 1
            return None
        self._entries.move_to_end(key)
        self.stats["hits"] += 1
        return value

    def put(self, key: CacheKey, value: tuple[Instance, ...]) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = value
        for task_id in key.task_ids:
            self._by_task.setdefault(task_id, set()).add(key)

        if len(self._entries) > self.max_entries:
            self.evict()

    def evict(self, count: int | None = None) -> int:
        """
        Drop the `count` least recently used entries.

        Default: floor(20% of the current size), at least one.
        """
        if count is None:
            count = max(1, math.floor(len(self._entries) * EVICTION_FRACTION))
        count = min(count, len(self._entries))

        for _ in range(count):
            key, _value = self._entries.popitem(last=False)
            self._unindex(key)

        if count:
            self.stats["evictions"] += count
            logger.debug("Evicted %d cache entries (size now %d/%d)", count, len(self._entries), self.max_entries)
        return count

    def invalidate(self, task_ids: Iterable[str]) -> int:
        """Remove every entry whose task set contains at least one of `task_ids`."""
        doomed: set[CacheKey] = set()
        for task_id in task_ids:
            doomed |= self._by_task.get(task_id, set())

        for key in doomed:
            self._entries.pop(key, None)
            self._unindex(key)

        self.stats["invalidations"] += 1
        if doomed:
            logger.debug("Invalidated %d cache entries", len(doomed))
        return len(doomed)

    def clear(self) -> None:
        n = len(self._entries)
        self._entries.clear()
        self._by_task.clear()
        self.stats["invalidations"] += 1
        logger.debug("Cleared instance cache (%d entries)", n)

    def get_stats(self) -> dict[str, Any]:
        total = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total * 100) if total > 0 else 0.0
        return {
            **self.stats,
            "hit_rate": round(hit_rate, 2),
            "current_size": len(self._entries),
            "max_size": self.max_entries,
        }

    def _unindex(self, key: CacheKey) -> None:
        for task_id in key.task_ids:
            keys = self._by_task.get(task_id)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._by_task[task_id]
