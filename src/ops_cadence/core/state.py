# src/ops_cadence/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..recurrence.store import RecurrenceStore
from ..windows.gate import ActionGate
from ..windows.store import WindowStore
from .ports import Clock, Notifier


@dataclass
class AppState:
    """Wired collaborators for one process (built by cli/bootstrap.py)."""

    settings: Settings

    recurrence_store: RecurrenceStore
    window_store: WindowStore
    notifier: Notifier
    clock: Clock

    @property
    def gate(self) -> ActionGate:
        return ActionGate(self.window_store, self.clock)
