# src/family_dashboard/logging_setup.py

"""
Logging for the dashboard process.

The console shares the terminal with the interactive prompt, while the sync side runs
on timers: the broadcast watcher polls the shared slot table twice a second and the
reconciler runs a pass every poll interval (plus one per local edit). Their routine
INFO lines would scroll the prompt away, so on the console those modules only speak up
at WARNING. The log file keeps everything, which is where "why did this task not sync"
gets answered.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "family_dashboard.log"

# Modules that log on every watcher tick or reconcile pass.
SYNC_CHATTER_LOGGERS = (
    "family_dashboard.sync.broadcast",
    "family_dashboard.sync.reconciler",
)

# Capped at the logger itself, so the file skips them too: httpx logs every request of
# every poll at INFO.
_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console-only filter.

    Our own records pass, except sync chatter below WARNING. Third-party records and
    captured `warnings.warn` output reach the console only at ERROR.
    """

    def __init__(self, quiet_prefixes: tuple[str, ...] = SYNC_CHATTER_LOGGERS) -> None:
        super().__init__()
        self.quiet_prefixes = quiet_prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("family_dashboard."):
            if name.startswith(self.quiet_prefixes):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/family_dashboard",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console handler (filtered) and the file handler (full detail).

    Call once at startup, before the coordinator starts polling. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Re-running setup (tests, restarts) must not double every line.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)
    # nio reports each sync response it receives.
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))

    logging.captureWarnings(True)
    return log_file
