# src/ops_cadence/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores, notifier, server clock).
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..core.clock import SystemClock
from ..core.request_cache import RequestCache
from ..core.state import AppState
from ..notify.notifiers import DedupingNotifier, LoggingNotifier
from ..recurrence.store import RecurrenceStore
from ..windows.store import WindowStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    notifier = DedupingNotifier(
        LoggingNotifier(),
        RequestCache(ttl_seconds=settings.notify_dedupe_ttl_seconds),
    )

    state = AppState(
        settings=settings,
        recurrence_store=RecurrenceStore(settings.db_path),
        window_store=WindowStore(settings.db_path),
        notifier=notifier,
        clock=SystemClock(),
    )
    logger.debug("State ready db=%s tz=%s", settings.db_path, settings.default_timezone)
    return state
