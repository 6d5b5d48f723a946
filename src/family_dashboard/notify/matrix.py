# src/family_dashboard/notify/matrix.py

"""
Matrix outbound messenger for household reminders.

The dashboard only ever posts text into one family room, so this is a thin
OutboundMessenger over nio's AsyncClient: restore a saved session (or bootstrap one with
a password login), then `room_send` plain m.text messages.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_json(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        # Best-effort: not critical on Windows or restricted FS.
        pass


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient, or None when Matrix is not configured.

    session.json (access token + device id) is persisted under matrix_store_path so restarts
    do not log in again. It is sensitive and lives under the gitignored data dir.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/family_dashboard/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set FD_MATRIX_HOMESERVER and FD_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = _session_path(store_dir)

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    if session_file.exists():
        try:
            data = _load_json(session_file)
            access_token = data.get("access_token")
            device_id = data.get("device_id")
            if not access_token or not device_id:
                raise ValueError("session.json is missing required fields")
            client.access_token = str(access_token)
            client.user_id = str(data.get("user_id") or user_id)
            client.device_id = str(device_id)
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except (OSError, ValueError) as e:
            logger.warning("Failed to restore Matrix session.json, will try password login: %r", e)

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set FD_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'family-dashboard')} (Python)"
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _atomic_write_json(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The client is logged in; we just will not be able to reuse the session.
        logger.error("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client


class MatrixMessenger:
    """OutboundMessenger posting into a default family room."""

    def __init__(self, client: AsyncClient, default_room_id: str) -> None:
        self.client = client
        self.default_room_id = default_room_id

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        target = room_id or self.default_room_id
        if not target:
            logger.warning("Matrix message dropped: no room configured")
            return
        await self.client.room_send(
            room_id=target,
            message_type="m.room.message",
            content={"msgtype": "m.text", "body": text},
            ignore_unverified_devices=True,
        )

    async def aclose(self) -> None:
        await self.client.close()
