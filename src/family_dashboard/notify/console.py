# src/family_dashboard/notify/console.py

from __future__ import annotations

import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleMessenger:
    """OutboundMessenger that prints to stdout (default when Matrix is disabled)."""

    def __init__(self) -> None:
        self.sent = 0

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        self.sent += 1
        logger.debug("Console notification room=%s", room_id)
        print(f"[{_ts_local()}] [NOTIFY] {text}", flush=True)
