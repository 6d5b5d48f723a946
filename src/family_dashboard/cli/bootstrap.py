# src/family_dashboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the authoritative store (in-memory demo or HTTP backend),
- wires resolver, coordinator, reminders and the messenger into AppState.

Nothing else in the package constructs these services; they are passed by reference.
"""

from __future__ import annotations

import logging
import secrets

from ..adapters.http_repo import HttpTaskRepo
from ..adapters.memory_repo import MemoryTaskRepo
from ..config import get_settings
from ..core.dates import resolve_zone
from ..core.ports import OutboundMessenger, TaskRepo
from ..core.state import AppState
from ..errors import ConfigError
from ..notify.console import ConsoleMessenger
from ..notify.reminders import ReminderScheduler
from ..recurrence.cache import InstanceCache
from ..recurrence.resolver import RecurrenceResolver
from ..storage.local_store import LocalStore, SqliteBroadcastChannel
from ..sync.coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_repo(settings) -> TaskRepo:
    backend = str(getattr(settings, "backend", "memory")).lower()
    if backend == "memory":
        return MemoryTaskRepo()
    if backend == "http":
        base_url = getattr(settings, "api_base_url", "")
        if not base_url:
            raise ConfigError("FD_API_BASE_URL is required when FD_BACKEND=http")
        return HttpTaskRepo(base_url, timeout=float(getattr(settings, "http_timeout_seconds", 10.0)))
    raise ConfigError(f"Unknown backend {backend!r} (expected 'memory' or 'http')")


def create_initial_state(*, settings=None, messenger: OutboundMessenger | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    tz = resolve_zone(getattr(settings, "timezone", "UTC"))
    repo = build_repo(settings)
    local_store = LocalStore(settings.local_db_path)
    resolver = RecurrenceResolver(InstanceCache(max_entries=settings.cache_max_entries), tz=tz)

    # The device id is shared by every process on this db; the suffix keeps each
    # process from treating the others' broadcasts as its own.
    source_id = f"{local_store.device_id()}:{secrets.token_hex(4)}"

    coordinator = SyncCoordinator(
        repo,
        local_store,
        source_id=source_id,
        broadcast=SqliteBroadcastChannel(local_store),
        resolver=resolver,
        poll_interval_seconds=settings.poll_interval_seconds,
        fetch_timeout_seconds=settings.fetch_timeout_seconds,
        slot_ttl_seconds=settings.broadcast_slot_ttl_seconds,
        broadcast_poll_interval_seconds=settings.broadcast_poll_interval_seconds,
    )

    if messenger is None:
        messenger = ConsoleMessenger()

    state = AppState(
        settings=settings,
        repo=repo,
        local_store=local_store,
        resolver=resolver,
        coordinator=coordinator,
        messenger=messenger,
        reminders=ReminderScheduler(messenger, room_id=getattr(settings, "matrix_room_id", None) or None),
        tz=tz,
    )
    if isinstance(repo, HttpTaskRepo):
        state.closers.append(repo.aclose)
    return state


async def create_messenger(settings) -> tuple[OutboundMessenger, object | None]:
    """
    Matrix messenger when enabled and configured, console otherwise.

    Returns (messenger, async closer or None).
    """
    if getattr(settings, "matrix_enabled", False):
        from ..notify.matrix import MatrixMessenger, create_matrix_client

        client = await create_matrix_client(settings)
        if client is not None:
            messenger = MatrixMessenger(client, getattr(settings, "matrix_room_id", ""))
            return messenger, messenger.aclose
        logger.warning("Matrix enabled but unavailable; falling back to console notifications")
    return ConsoleMessenger(), None
