# src/family_dashboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the sync coordinator, then runs the console
REPL until /exit (or runs headless until Ctrl+C when the console is disabled).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime

from ..cli.bootstrap import create_initial_state, create_messenger
from ..cli.commands import registry as command_registry
from ..config import get_settings
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console started.")
    print(f"[{_ts_local()}] [CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break

        if not line:
            continue
        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, line)
        except Exception:
            logger.exception("Command failed: %s", line)
            reply = "Command failed (see log)."
        print(reply if reply is not None else "Not a command. Use /help.")


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    state.reminders.cancel_all()
    try:
        await state.coordinator.stop()
    except Exception:
        logger.exception("Failed to stop sync coordinator.")
    state.coordinator.close()

    for closer in state.closers:
        try:
            await closer()
        except Exception:
            logger.debug("Closer failed.", exc_info=True)
    state.local_store.close()


async def amain() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "data_dir", ".local/family_dashboard"), console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "family-dashboard"))

    messenger, messenger_closer = await create_messenger(settings)
    state = create_initial_state(settings=settings, messenger=messenger)
    if messenger_closer is not None:
        state.closers.append(messenger_closer)

    await state.coordinator.start()
    try:
        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Running sync only. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
    finally:
        await _shutdown(state)
        logger.info("Bye.")


def main() -> None:
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(amain())


if __name__ == "__main__":
    main()
