# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from ops_cadence.config import Settings
from ops_cadence.recurrence.store import RecurrenceStore
from ops_cadence.windows.store import WindowStore

from .fakes import FakeClock, RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings pointing at a per-test temp dir.

    Built directly rather than from the environment to keep tests isolated and deterministic.
    """
    return Settings(
        app_name="ops-cadence-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "cadence.sqlite3",
        default_timezone="UTC",
        generation_interval_seconds=1.0,
        upcoming_lead_minutes=30,
        notify_dedupe_ttl_seconds=60.0,
    )


@pytest.fixture()
def recurrence_store(settings: Settings) -> RecurrenceStore:
    # Real SQLite: the atomic create-and-advance contract is part of what we test.
    return RecurrenceStore(settings.db_path)


@pytest.fixture()
def window_store(settings: Settings) -> WindowStore:
    return WindowStore(settings.db_path)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 10, 9, 0, tzinfo=UTC))
