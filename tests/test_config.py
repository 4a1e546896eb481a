# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from ops_cadence.config import Settings

_VARS = (
    "CADENCE_APP_NAME",
    "CADENCE_LOG_LEVEL",
    "CADENCE_DATA_DIR",
    "CADENCE_DB_PATH",
    "CADENCE_DEFAULT_TIMEZONE",
    "CADENCE_GENERATION_INTERVAL_SECONDS",
    "CADENCE_UPCOMING_LEAD_MINUTES",
    "CADENCE_NOTIFY_DEDUPE_TTL_SECONDS",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    s = Settings.from_env()
    assert s.app_name == "ops-cadence"
    assert s.data_dir == Path(".local/cadence")
    assert s.db_path == Path(".local/cadence/cadence.sqlite3")
    assert s.default_timezone == "UTC"
    assert s.generation_interval_seconds == 60.0
    assert s.upcoming_lead_minutes == 30


def test_overrides_and_db_path_follows_data_dir(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("CADENCE_DATA_DIR", str(tmp_path))
    clean_env.setenv("CADENCE_DEFAULT_TIMEZONE", "Europe/Berlin")
    clean_env.setenv("CADENCE_UPCOMING_LEAD_MINUTES", "45")

    s = Settings.from_env()

    assert s.db_path == tmp_path / "cadence.sqlite3"
    assert s.default_timezone == "Europe/Berlin"
    assert s.upcoming_lead_minutes == 45


def test_bad_numbers_fall_back_and_are_clamped(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CADENCE_GENERATION_INTERVAL_SECONDS", "often")
    clean_env.setenv("CADENCE_UPCOMING_LEAD_MINUTES", "-10")
    clean_env.setenv("CADENCE_NOTIFY_DEDUPE_TTL_SECONDS", "0")

    s = Settings.from_env()

    assert s.generation_interval_seconds == 60.0
    assert s.upcoming_lead_minutes == 0
    assert s.notify_dedupe_ttl_seconds == 1.0
