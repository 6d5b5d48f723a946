# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (the Matrix password in particular). Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "FD_APP_NAME": "App display name (default: family-dashboard).",
    "FD_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "FD_TIMEZONE": "Reference zone for calendar days, e.g. Europe/Berlin (default: UTC).",
    # Switches
    "FD_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "FD_MATRIX_ENABLED": "Send reminders to a Matrix room instead of stdout (true/false).",
    # Authoritative task store
    "FD_BACKEND": "memory (in-process demo store) or http (default: memory).",
    "FD_API_BASE_URL": "Backend base URL for FD_BACKEND=http (default: http://127.0.0.1:5174/api).",
    "FD_HTTP_TIMEOUT_SECONDS": "Per-request HTTP timeout (default: 10).",
    # Sync tuning
    "FD_POLL_INTERVAL_SECONDS": "Seconds between reconcile passes while connected (default: 30).",
    "FD_FETCH_TIMEOUT_SECONDS": "Upper bound for fetching the task list in one pass (default: 15).",
    "FD_BROADCAST_SLOT_TTL_SECONDS": "Lifetime of a cross-process broadcast slot (default: 1).",
    "FD_BROADCAST_POLL_INTERVAL_SECONDS": "How often other processes' events are polled (default: 0.5).",
    # Recurrence cache
    "FD_CACHE_MAX_ENTRIES": "Instance cache ceiling before eviction (default: 100).",
    # Matrix
    "FD_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "FD_MATRIX_USER_ID": "Matrix user ID (bot).",
    "FD_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "FD_MATRIX_ROOM_ID": "Family room that receives reminders.",
    # Paths (gitignored)
    "FD_DATA_DIR": "Local data directory (default: .local/family_dashboard).",
    "FD_LOCAL_DB_PATH": "Snapshot / device id / broadcast SQLite path (default: <data_dir>/local.sqlite3).",
    "FD_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
}
