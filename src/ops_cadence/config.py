# src/ops_cadence/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process (normal "settings layer").
- No secrets required at import time.
- Everything below the CLI receives settings by injection; only the composition
  root calls get_settings().
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CADENCE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Engine tuning ----
    default_timezone: str
    generation_interval_seconds: float
    upcoming_lead_minutes: int
    notify_dedupe_ttl_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "ops-cadence")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/cadence"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "cadence.sqlite3")

        default_timezone = _env(_k("DEFAULT_TIMEZONE"), "UTC").strip() or "UTC"
        generation_interval_seconds = max(1.0, _env_float(_k("GENERATION_INTERVAL_SECONDS"), 60.0))
        upcoming_lead_minutes = max(0, _env_int(_k("UPCOMING_LEAD_MINUTES"), 30))
        notify_dedupe_ttl_seconds = max(1.0, _env_float(_k("NOTIFY_DEDUPE_TTL_SECONDS"), 300.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            default_timezone=default_timezone,
            generation_interval_seconds=generation_interval_seconds,
            upcoming_lead_minutes=upcoming_lead_minutes,
            notify_dedupe_ttl_seconds=notify_dedupe_ttl_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process settings; reads .env (never overriding real env vars) on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
