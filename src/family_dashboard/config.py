# src/family_dashboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are injectable: services receive the object, they never read env themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "FD"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    timezone: str

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- Authoritative store (CRUD collaborator) ----
    backend: str  # "memory" | "http"
    api_base_url: str
    http_timeout_seconds: float

    # ---- Sync tuning ----
    poll_interval_seconds: float
    fetch_timeout_seconds: float
    broadcast_slot_ttl_seconds: float
    broadcast_poll_interval_seconds: float

    # ---- Recurrence cache ----
    cache_max_entries: int

    # ---- Matrix (reminders) ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_room_id: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_db_path: Path
    matrix_store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "family-dashboard") or "family-dashboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        timezone = _env(_k("TIMEZONE"), "UTC").strip() or "UTC"

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)

        backend = _env(_k("BACKEND"), "memory").strip().lower() or "memory"
        api_base_url = _env(_k("API_BASE_URL"), "http://127.0.0.1:5174/api").rstrip("/")
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0)

        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 30.0)
        fetch_timeout_seconds = _env_float(_k("FETCH_TIMEOUT_SECONDS"), 15.0)
        broadcast_slot_ttl_seconds = _env_float(_k("BROADCAST_SLOT_TTL_SECONDS"), 1.0)
        broadcast_poll_interval_seconds = _env_float(_k("BROADCAST_POLL_INTERVAL_SECONDS"), 0.5)

        cache_max_entries = _env_int(_k("CACHE_MAX_ENTRIES"), 100)

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), default="") or "").strip()
        matrix_room_id = (_first_env(_k("MATRIX_ROOM_ID"), default="") or "").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/family_dashboard"))
        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "local.sqlite3")
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            timezone=timezone,
            console_enabled=console_enabled,
            matrix_enabled=matrix_enabled,
            backend=backend,
            api_base_url=api_base_url,
            http_timeout_seconds=http_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            fetch_timeout_seconds=fetch_timeout_seconds,
            broadcast_slot_ttl_seconds=broadcast_slot_ttl_seconds,
            broadcast_poll_interval_seconds=broadcast_poll_interval_seconds,
            cache_max_entries=cache_max_entries,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_room_id=matrix_room_id,
            data_dir=data_dir,
            local_db_path=local_db_path,
            matrix_store_path=matrix_store_path,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
