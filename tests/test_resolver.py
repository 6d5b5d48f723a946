# tests/test_resolver.py

from __future__ import annotations

from datetime import date, timedelta

from family_dashboard.core.dates import week_days
from family_dashboard.core.models import SyncEvent, SyncEventType
from family_dashboard.recurrence.cache import InstanceCache
from family_dashboard.recurrence.predicate import is_active_on
from family_dashboard.recurrence.resolver import RecurrenceResolver

from .fakes import one_off, recurring

MONDAY = date(2025, 8, 18)


def test_recurring_task_lands_on_its_weekdays() -> None:
    resolver = RecurrenceResolver()
    task = recurring("t1", [1, 3, 5])

    instances = resolver.instances_for_week([task], MONDAY)

    assert [i.iso_date for i in instances] == ["2025-08-18", "2025-08-20", "2025-08-22"]
    assert all(i.task is task for i in instances)


def test_one_off_task_appears_only_on_due_date() -> None:
    resolver = RecurrenceResolver()
    task = one_off("t1", date(2025, 8, 23))

    for day in week_days(MONDAY):
        found = resolver.instances_for_date([task], day)
        if day == date(2025, 8, 23):
            assert [i.task.id for i in found] == ["t1"]
        else:
            assert found == []


def test_archived_tasks_produce_no_instances() -> None:
    resolver = RecurrenceResolver()
    tasks = [
        recurring("t1", [0, 1, 2, 3, 4, 5, 6], archived=True),
        one_off("t2", date(2025, 8, 20), archived=True),
    ]

    assert resolver.instances_for_week(tasks, MONDAY) == []


def test_week_output_is_day_major_then_input_order() -> None:
    resolver = RecurrenceResolver()
    a = recurring("a", [1])
    b = recurring("b", [1, 2])

    instances = resolver.instances_for_week([b, a], MONDAY)

    assert [(i.task.id, i.iso_date) for i in instances] == [
        ("b", "2025-08-18"),
        ("a", "2025-08-18"),
        ("b", "2025-08-19"),
    ]


def test_week_matches_predicate_for_every_day() -> None:
    resolver = RecurrenceResolver()
    tasks = [
        recurring("r1", [0, 6]),
        recurring("r2", [1, 2, 3], start=date(2025, 8, 19), end=date(2025, 8, 20)),
        recurring("r3", []),
        one_off("o1", date(2025, 8, 21)),
        one_off("o2", None),
    ]

    instances = resolver.instances_for_week(tasks, MONDAY)

    expected = [(t.id, d) for d in week_days(MONDAY) for t in tasks if is_active_on(t, d)]
    assert [(i.task.id, i.date) for i in instances] == expected
    assert [(i.task.id, i.iso_date) for i in instances] == [
        ("r2", "2025-08-19"),
        ("r2", "2025-08-20"),
        ("o1", "2025-08-21"),
        ("r1", "2025-08-23"),
        ("r1", "2025-08-24"),
    ]


def test_second_identical_query_is_served_from_cache() -> None:
    resolver = RecurrenceResolver()
    tasks = [recurring("t1", [1, 3, 5]), one_off("t2", date(2025, 8, 19))]

    first = resolver.instances_for_week(tasks, MONDAY)
    second = resolver.instances_for_week(list(reversed(tasks)), "2025-08-18T10:15:00Z")

    assert second == first
    stats = resolver.cache_stats()
    assert stats["misses"] == 1
    assert stats["hits"] == 1
    assert stats["current_size"] == 1


def test_next_instance_finds_following_weekday() -> None:
    resolver = RecurrenceResolver()

    assert resolver.next_instance(recurring("t1", [2]), MONDAY) == date(2025, 8, 19)
    # `from` itself counts when it matches.
    assert resolver.next_instance(recurring("t1", [1]), MONDAY) == MONDAY


def test_next_instance_respects_bounds_and_horizon() -> None:
    resolver = RecurrenceResolver()

    ended = recurring("t1", [1], end=date(2025, 8, 1))
    not_yet = recurring("t2", [1], start=MONDAY + timedelta(days=400))
    later = recurring("t3", [3], start=date(2025, 9, 1))

    assert resolver.next_instance(ended, MONDAY) is None
    assert resolver.next_instance(not_yet, MONDAY) is None
    assert resolver.next_instance(recurring("t4", []), MONDAY) is None
    assert resolver.next_instance(later, MONDAY) == date(2025, 9, 3)


def test_next_instance_returns_one_off_due_date_even_if_past() -> None:
    resolver = RecurrenceResolver()

    assert resolver.next_instance(one_off("t1", date(2025, 1, 2)), MONDAY) == date(2025, 1, 2)
    assert resolver.next_instance(one_off("t2", None), MONDAY) is None


def test_update_event_invalidates_only_affected_windows() -> None:
    resolver = RecurrenceResolver(InstanceCache(max_entries=10))
    t1 = recurring("t1", [1])
    t2 = recurring("t2", [2])

    resolver.instances_for_week([t1], MONDAY)
    resolver.instances_for_week([t2], MONDAY)
    assert len(resolver.cache) == 2

    resolver.handle_sync_event(SyncEvent(SyncEventType.TASK_UPDATED, data={"task": t1.to_dict()}))

    assert len(resolver.cache) == 1
    resolver.instances_for_week([t2], MONDAY)
    assert resolver.cache_stats()["hits"] == 1


def test_created_and_synced_events_clear_everything() -> None:
    resolver = RecurrenceResolver()
    resolver.instances_for_week([recurring("t1", [1])], MONDAY)
    resolver.instances_for_week([recurring("t2", [1])], MONDAY)

    resolver.handle_sync_event(SyncEvent(SyncEventType.TASK_CREATED, data={"task": {"id": "t9"}}))
    assert len(resolver.cache) == 0

    resolver.instances_for_week([recurring("t1", [1])], MONDAY)
    resolver.handle_sync_event(SyncEvent(SyncEventType.TASKS_SYNCED, data={"tasks": []}))
    assert len(resolver.cache) == 0


def test_delete_event_reads_plain_id_and_ignores_unrelated_types() -> None:
    resolver = RecurrenceResolver()
    resolver.instances_for_week([recurring("t1", [1])], MONDAY)

    resolver.handle_sync_event(SyncEvent(SyncEventType.NOTE_SAVED, data={"id": "t1"}))
    assert len(resolver.cache) == 1

    resolver.handle_sync_event(SyncEvent(SyncEventType.TASK_DELETED, data={"id": "t1"}))
    assert len(resolver.cache) == 0


def test_invalidated_window_is_recomputed_with_fresh_data() -> None:
    resolver = RecurrenceResolver()
    before = recurring("t1", [1], title="old title")
    after = recurring("t1", [1], title="new title")

    assert resolver.instances_for_week([before], MONDAY)[0].task.title == "old title"

    resolver.invalidate_cache(["t1"])

    assert resolver.instances_for_week([after], MONDAY)[0].task.title == "new title"
