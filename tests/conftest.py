# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from family_dashboard.cli.bootstrap import create_initial_state
from family_dashboard.core.state import AppState

from .fakes import FakeMessenger


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap wiring.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="family-dashboard-test",
        log_level="DEBUG",
        timezone="UTC",
        console_enabled=False,
        matrix_enabled=False,
        backend="memory",
        api_base_url="http://backend.test/api",
        http_timeout_seconds=1.0,
        poll_interval_seconds=30.0,
        fetch_timeout_seconds=1.0,
        broadcast_slot_ttl_seconds=0.05,
        broadcast_poll_interval_seconds=0.05,
        cache_max_entries=100,
        matrix_room_id="",
        data_dir=tmp_path,
        local_db_path=tmp_path / "local.sqlite3",
    )


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def state(settings: SimpleNamespace, messenger: FakeMessenger) -> AppState:
    """
    AppState wired with the in-memory repo and a fake messenger.

    NOTE: the LocalStore is a real SQLite file under tmp_path, because snapshot and
    broadcast persistence are part of what we want to test.
    """
    return create_initial_state(settings=settings, messenger=messenger)
