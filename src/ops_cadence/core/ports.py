# src/ops_cadence/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The engine depends on Protocols instead of concrete implementations.
This keeps stores/notification sinks swappable and makes testing easier:
- the SQLite stores in recurrence/store.py and windows/store.py implement the repos,
- notify/notifiers.py implements Notifier,
- core/clock.py implements Clock.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol

from .errors import MalformedRecord

if TYPE_CHECKING:
    from ..recurrence.models import RecurringTaskDefinition
    from ..windows.models import ChecklistTemplate, InstanceStatus, ScheduledWindowInstance


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    """
    What the engine wants the outside world to hear about.

    The engine decides the event type and identity; the Notifier decides
    delivery (in-app row, email fan-out, push, ...).
    """

    type: str
    occurrence_id: int
    organization_id: str | None = None
    dedupe_key: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


class Clock(Protocol):
    """Server-authoritative time source. Must return a timezone-aware instant."""

    def now(self) -> datetime: ...


class Notifier(Protocol):
    """
    Best-effort notification sink.

    Implementations may raise; callers log the failure and carry on.
    """

    def notify(self, user_ids: list[str], event: NotificationEvent) -> None: ...


class RecurrenceRepo(Protocol):
    def find_due_recurring_definitions(
            self,
            now: datetime,
            *,
            on_malformed: Callable[[MalformedRecord], None] | None = None,
    ) -> list[RecurringTaskDefinition]:
        """Due recurring parents; rows that fail validation go to on_malformed instead."""
        ...

    def create_occurrence_and_advance(
            self,
            definition_id: int,
            *,
            cycle_date: date,
            expected_next_due_at: datetime,
            next_due_at: datetime,
    ) -> int:
        """
        Atomically insert the occurrence for (definition_id, cycle_date) and move
        next_due_at from expected_next_due_at to next_due_at.

        Raises ConflictError when the cycle was already generated or next_due_at moved.
        """
        ...

    def advance_next_due(
            self,
            definition_id: int,
            *,
            expected_next_due_at: datetime,
            next_due_at: datetime,
    ) -> bool: ...


class WindowRepo(Protocol):
    def get_instance(self, instance_id: int) -> ScheduledWindowInstance | None: ...

    def set_instance_status(self, instance_id: int, status: InstanceStatus) -> None:
        """Idempotent on repeated identical status."""
        ...


class ChecklistRepo(Protocol):
    def list_active_templates(self) -> list[ChecklistTemplate]: ...

    def create_instance(
            self,
            template: ChecklistTemplate,
            *,
            date: date,
            status: InstanceStatus,
    ) -> int:
        """Raises ConflictError if an instance already exists for (template, date)."""
        ...

    def find_instance(self, template_id: int, day: date) -> ScheduledWindowInstance | None: ...

    def claim_upcoming_notice(self, instance_id: int) -> bool:
        """Compare-and-set the notice flag; False if another pass already claimed it."""
        ...

    def release_upcoming_notice(self, instance_id: int) -> None: ...
