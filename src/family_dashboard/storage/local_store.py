# src/family_dashboard/storage/local_store.py

from __future__ import annotations

import contextlib
import json
import logging
import secrets
import sqlite3
import string
import time
from pathlib import Path

from ..core.models import Task

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "familydashboard_tasks"
DEVICE_ID_KEY = "familydashboard_device_id"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class LocalStore:
    """
    SQLite-backed device-local state.

    Holds what a browser would keep in localStorage:
    - the last synced task snapshot (one JSON blob),
    - the persistent device id,
    - the broadcast slots other processes on this host poll (see SqliteBroadcastChannel).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "local.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("LocalStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS broadcast_slots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    written_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(kv)")
            cols = {row["name"] for row in cur.fetchall()}
            if "updated_at" not in cols:
                cur.execute("ALTER TABLE kv ADD COLUMN updated_at REAL NOT NULL DEFAULT 0")
                logger.info("LocalStore migration: added column kv.updated_at")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_broadcast_key ON broadcast_slots(key)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_broadcast_written ON broadcast_slots(written_at)")
            conn.commit()
        finally:
            conn.close()

    def get_value(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return str(row["value"]) if row else None
        finally:
            conn.close()

    def set_value(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    # ---- snapshot (SnapshotStore port) ----

    def load_tasks(self) -> list[Task]:
        """Last saved snapshot. Corrupt data is logged and treated as empty."""
        raw = self.get_value(SNAPSHOT_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("Task snapshot is not valid JSON; ignoring it")
            return []
        if not isinstance(items, list):
            return []

        tasks: list[Task] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                tasks.append(Task.from_dict(item))
            except (KeyError, ValueError):
                logger.warning("Skipping malformed task in snapshot: %r", item.get("id"))
        return tasks

    def save_tasks(self, tasks: list[Task]) -> None:
        self.set_value(SNAPSHOT_KEY, json.dumps([t.to_dict() for t in tasks], ensure_ascii=False))
        logger.debug("Saved task snapshot (%d tasks)", len(tasks))

    # ---- device identity ----

    def device_id(self) -> str:
        """Stable identifier of this execution context, created on first use."""
        existing = self.get_value(DEVICE_ID_KEY)
        if existing:
            return existing
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        device_id = f"device_{int(time.time() * 1000)}_{suffix}"
        self.set_value(DEVICE_ID_KEY, device_id)
        logger.info("Generated device id %s", device_id)
        return device_id


class SqliteBroadcastChannel:
    """
    Broadcast slots shared by every process that opens the same LocalStore file.

    Slot ids are the cursors handed to BroadcastWatcher.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def put(self, key: str, value: str) -> None:
        conn = self._store._get_conn()
        try:
            conn.execute(
                "INSERT INTO broadcast_slots(key, value, written_at) VALUES (?, ?, ?)",
                (key, value, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._store._get_conn()
        try:
            conn.execute("DELETE FROM broadcast_slots WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def read_since(self, cursor: int) -> list[tuple[int, str, str]]:
        conn = self._store._get_conn()
        try:
            rows = conn.execute(
                "SELECT id, key, value FROM broadcast_slots WHERE id > ? ORDER BY id ASC",
                (int(cursor),),
            ).fetchall()
            return [(int(r["id"]), str(r["key"]), str(r["value"])) for r in rows]
        finally:
            conn.close()

    def latest_cursor(self) -> int:
        conn = self._store._get_conn()
        try:
            (n,) = conn.execute("SELECT COALESCE(MAX(id), 0) FROM broadcast_slots").fetchone()
            return int(n)
        finally:
            conn.close()

    def purge_expired(self, ttl_seconds: float) -> int:
        cutoff = time.time() - float(ttl_seconds)
        conn = self._store._get_conn()
        try:
            cur = conn.execute("DELETE FROM broadcast_slots WHERE written_at < ?", (cutoff,))
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()
