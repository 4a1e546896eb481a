# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "CADENCE_APP_NAME": "App display name (default: ops-cadence).",
    "CADENCE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "CADENCE_DATA_DIR": "Local data directory for the database and logs (default: .local/cadence).",
    "CADENCE_DB_PATH": "SQLite path for definitions, occurrences and checklists (default: <data_dir>/cadence.sqlite3).",
    # Engine
    "CADENCE_DEFAULT_TIMEZONE": "IANA zone used by add-task/add-checklist when --tz is omitted (default: UTC).",
    "CADENCE_GENERATION_INTERVAL_SECONDS": "Polling interval of `ops-cadence run` (default: 60, min 1).",
    "CADENCE_UPCOMING_LEAD_MINUTES": "Warn checklist recipients this many minutes before a window opens (default: 30).",
    "CADENCE_NOTIFY_DEDUPE_TTL_SECONDS": "Identical notifications inside this TTL are sent once (default: 300).",
}
