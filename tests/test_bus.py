# tests/test_bus.py

from __future__ import annotations

import asyncio
import json

import pytest

from family_dashboard.core.models import SyncEvent, SyncEventType
from family_dashboard.sync.broadcast import BroadcastWatcher, MemoryBroadcastChannel
from family_dashboard.sync.bus import EventBus, broadcast_key

from .fakes import ManualClock


def test_listeners_only_see_their_type() -> None:
    bus = EventBus("dev-a")
    seen: list[str] = []
    bus.on(SyncEventType.TASK_CREATED, lambda e: seen.append(f"created:{e.data['id']}"))
    bus.on("task_deleted", lambda e: seen.append(f"deleted:{e.data['id']}"))

    bus.emit(SyncEventType.TASK_CREATED, data={"id": "1"})
    bus.emit(SyncEventType.TASK_DELETED, data={"id": "2"})
    bus.emit(SyncEventType.NOTE_SAVED, data={"id": "3"})

    assert seen == ["created:1", "deleted:2"]


def test_emit_stamps_source_and_timestamp() -> None:
    clock = ManualClock(100.0)
    bus = EventBus("dev-a", clock=clock)

    event = bus.emit(SyncEventType.TASK_UPDATED, data={"id": "1"})
    kept = bus.emit(SyncEventType.TASK_UPDATED, SyncEvent(SyncEventType.TASK_UPDATED, timestamp=5.0, source="sync"))

    assert (event.source, event.timestamp) == ("dev-a", 100.0)
    assert (kept.source, kept.timestamp) == ("sync", 5.0)


def test_emit_type_argument_wins_over_event_type() -> None:
    bus = EventBus("dev-a")
    synced: list[SyncEvent] = []
    bus.on(SyncEventType.TASKS_SYNCED, synced.append)

    bus.emit(SyncEventType.TASKS_SYNCED, SyncEvent(SyncEventType.TASK_UPDATED, data={"tasks": []}))

    assert len(synced) == 1
    assert synced[0].type == SyncEventType.TASKS_SYNCED


def test_emits_from_listeners_are_delivered_in_emission_order() -> None:
    bus = EventBus("dev-a")
    order: list[str] = []

    def on_created(event: SyncEvent) -> None:
        order.append("created:start")
        bus.emit(SyncEventType.TASK_UPDATED, data={"id": "nested"})
        order.append("created:end")

    bus.on(SyncEventType.TASK_CREATED, on_created)
    bus.on(SyncEventType.TASK_CREATED, lambda e: order.append("created:second"))
    bus.on(SyncEventType.TASK_UPDATED, lambda e: order.append(f"updated:{e.data['id']}"))

    bus.emit(SyncEventType.TASK_CREATED)

    assert order == ["created:start", "created:end", "created:second", "updated:nested"]
    assert bus.pending() == 0


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    bus = EventBus("dev-a")
    seen: list[str] = []

    def broken(event: SyncEvent) -> None:
        raise RuntimeError("boom")

    bus.on(SyncEventType.TASK_CREATED, broken)
    bus.on(SyncEventType.TASK_CREATED, lambda e: seen.append("ok"))

    bus.emit(SyncEventType.TASK_CREATED)
    bus.emit(SyncEventType.TASK_CREATED)

    assert seen == ["ok", "ok"]
    assert "Event listener failed" in caplog.text


def test_unsubscribe_is_idempotent() -> None:
    bus = EventBus("dev-a")
    seen: list[SyncEvent] = []
    sub = bus.on(SyncEventType.TASK_CREATED, seen.append)
    assert bus.listener_count(SyncEventType.TASK_CREATED) == 1

    sub.unsubscribe()
    sub()
    bus.emit(SyncEventType.TASK_CREATED)

    assert seen == []
    assert sub.active is False
    assert bus.listener_count() == 0


def test_events_are_mirrored_into_broadcast_slots() -> None:
    clock = ManualClock(1000.0)
    channel = MemoryBroadcastChannel(clock=clock)
    bus = EventBus("dev-a", broadcast=channel, clock=clock)

    bus.emit(SyncEventType.TASK_DELETED, data={"id": "t1"})

    assert channel.keys() == [broadcast_key(SyncEventType.TASK_DELETED, 1000.0)]
    assert channel.keys() == ["familydashboard:task_deleted:1000000"]
    (_, _, value), = channel.read_since(0)
    assert json.loads(value) == {
        "type": "task_deleted",
        "data": {"id": "t1"},
        "timestamp": 1000.0,
        "source": "dev-a",
    }


@pytest.mark.asyncio
async def test_broadcast_slot_is_removed_after_ttl() -> None:
    channel = MemoryBroadcastChannel()
    bus = EventBus("dev-a", broadcast=channel, slot_ttl_seconds=0.01)

    bus.emit(SyncEventType.TASK_CREATED)
    assert len(channel) == 1

    await asyncio.sleep(0.05)
    assert len(channel) == 0


def test_watcher_delivers_foreign_events_only() -> None:
    channel = MemoryBroadcastChannel()
    channel.put("familydashboard:task_created:1", json.dumps({"type": "task_created", "source": "old"}))

    mine = EventBus("dev-a", broadcast=channel)
    theirs = EventBus("dev-b", broadcast=channel)
    received: list[SyncEvent] = []
    watcher = BroadcastWatcher(channel, "dev-a", received.append)

    # First poll only positions the cursor: history is not replayed.
    assert watcher.poll_once() == 0

    mine.emit(SyncEventType.TASK_CREATED, data={"id": "own"})
    theirs.emit(SyncEventType.TASK_UPDATED, data={"id": "foreign"})
    channel.put("otherapp:key", "{}")
    channel.put("familydashboard:garbage:1", "not json")

    assert watcher.poll_once() == 1
    assert [(e.type, e.data["id"], e.source) for e in received] == [
        (SyncEventType.TASK_UPDATED, "foreign", "dev-b"),
    ]
    assert watcher.poll_once() == 0


def test_memory_channel_purges_expired_slots() -> None:
    clock = ManualClock(10.0)
    channel = MemoryBroadcastChannel(clock=clock)
    channel.put("familydashboard:a:1", "{}")
    clock.advance(5)
    channel.put("familydashboard:b:2", "{}")

    assert channel.purge_expired(1.0) == 1
    assert channel.keys() == ["familydashboard:b:2"]
    assert channel.latest_cursor() == 2


@pytest.mark.asyncio
async def test_flush_slots_removes_slots_still_waiting_for_their_timer() -> None:
    clock = ManualClock(1000.0)
    channel = MemoryBroadcastChannel(clock=clock)
    bus = EventBus("dev-a", broadcast=channel, clock=clock, slot_ttl_seconds=60.0)

    bus.emit(SyncEventType.TASK_CREATED)
    clock.advance(1)
    bus.emit(SyncEventType.TASK_DELETED, data={"id": "t1"})
    assert len(channel) == 2

    assert bus.flush_slots() == 2
    assert len(channel) == 0
    assert bus.flush_slots() == 0


def test_flush_slots_covers_emits_made_without_a_loop() -> None:
    channel = MemoryBroadcastChannel()
    bus = EventBus("dev-a", broadcast=channel)

    bus.emit(SyncEventType.PROFILE_UPDATED, data={"id": "p1"})
    assert len(channel) == 1

    assert bus.flush_slots() == 1
    assert len(channel) == 0


@pytest.mark.asyncio
async def test_watcher_purges_slots_left_by_a_dead_writer() -> None:
    clock = ManualClock(100.0)
    channel = MemoryBroadcastChannel(clock=clock)
    # Written by a process that exited before its deletion timer fired.
    channel.put("familydashboard:task_created:1", json.dumps({"type": "task_created", "source": "gone"}))
    clock.advance(10)

    watcher = BroadcastWatcher(channel, "dev-a", lambda e: None, interval_seconds=0.05, slot_ttl_seconds=1.0)
    task = asyncio.create_task(watcher.run())
    await asyncio.sleep(0.02)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(channel) == 0


def test_watcher_without_ttl_leaves_slots_alone() -> None:
    clock = ManualClock(100.0)
    channel = MemoryBroadcastChannel(clock=clock)
    channel.put("familydashboard:task_created:1", "{}")
    clock.advance(10)

    BroadcastWatcher(channel, "dev-a", lambda e: None).poll_once()

    assert len(channel) == 1
