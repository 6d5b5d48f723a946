# tests/test_commands.py

from __future__ import annotations

from datetime import date

import pytest

from family_dashboard.cli.commands import CommandRegistry, registry

from .fakes import one_off, recurring


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state) -> None:
    reg = CommandRegistry()
    called = {"plain": 0, "coro": 0}

    def plain(state, args):
        called["plain"] += 1
        return f"plain {args}"

    async def coro(state, args):
        called["coro"] += 1
        return "coro"

    reg.register("a", plain, "a", aliases=["aa"])
    reg.register("b", coro, "b")

    assert await reg.handle(state, "/a x") == "plain ['x']"
    assert await reg.handle(state, "/AA") == "plain []"
    assert await reg.handle(state, "/b") == "coro"
    assert called == {"plain": 2, "coro": 1}


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_week_lists_instances_by_day(state) -> None:
    await state.repo.create_task(recurring("t1", [1, 3], title="Trash"))
    await state.repo.create_task(one_off("t2", date(2025, 8, 20), title="Dentist"))

    reply = await registry.handle(state, "/week 2025-08-20")

    assert reply == (
        "Week of 2025-08-18:\n"
        "2025-08-18 (Mon)\n"
        "  - Trash\n"
        "2025-08-20 (Wed)\n"
        "  - Dentist\n"
        "  - Trash"
    )
    assert "Usage" in (await registry.handle(state, "/week someday") or "")


@pytest.mark.asyncio
async def test_next_and_remind(state) -> None:
    await state.repo.create_task(one_off("t1", date(2025, 8, 23), title="Dentist"))

    assert await registry.handle(state, "/next t1") == "Dentist: 2025-08-23"
    assert await registry.handle(state, "/next nope") == "No task with id nope"
    assert await registry.handle(state, "/remind t1") == "Nothing to remind about in the next 7 days."
    assert "Usage" in (await registry.handle(state, "/remind t1 25:99") or "")


@pytest.mark.asyncio
async def test_connectivity_commands_drive_the_coordinator(state) -> None:
    await state.repo.create_task(one_off("t1", date(2025, 8, 23)))

    assert "connection: disconnected" in (await registry.handle(state, "/status") or "")
    assert await registry.handle(state, "/sync") == "Sync skipped (connection: disconnected)"

    await registry.handle(state, "/online")
    assert await registry.handle(state, "/sync") == "Sync completed (connection: connected)"
    assert [t.id for t in state.local_store.load_tasks()] == ["t1"]

    assert "offline" in (await registry.handle(state, "/offline") or "")
    assert state.coordinator.get_sync_state().is_online is False
    await state.coordinator.stop()


@pytest.mark.asyncio
async def test_cache_command_reports_and_clears(state) -> None:
    await state.repo.create_task(recurring("t1", [1]))
    await registry.handle(state, "/week 2025-08-18")

    assert "size: 1/100" in (await registry.handle(state, "/cache") or "")
    assert await registry.handle(state, "/cache clear") == "Instance cache cleared."
    assert "size: 0/100" in (await registry.handle(state, "/cache") or "")


@pytest.mark.asyncio
async def test_help_lists_registered_commands(state) -> None:
    reply = await registry.handle(state, "/?") or ""

    assert reply.startswith("Available commands:")
    for name in ("week", "today", "next", "sync", "online", "offline", "cache", "remind", "status"):
        assert f"/{name} " in reply
