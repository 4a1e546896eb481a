# tests/fakes.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta

from ops_cadence.core.errors import ConflictError, MalformedRecord
from ops_cadence.core.ports import NotificationEvent, Notifier
from ops_cadence.recurrence.models import RecurringTaskDefinition
from ops_cadence.windows.models import InstanceStatus, ScheduledWindowInstance


class FakeClock:
    """Deterministic Clock; tests move it explicitly."""

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **kwargs: float) -> None:
        self._now = self._now + timedelta(**kwargs)


@dataclass(slots=True)
class SentNotification:
    user_ids: list[str]
    event: NotificationEvent


@dataclass(slots=True)
class RecordingNotifier(Notifier):
    """Fake Notifier capturing calls; optionally fails for some users."""

    sent: list[SentNotification] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)

    def notify(self, user_ids: list[str], event: NotificationEvent) -> None:
        if self.fail_for.intersection(user_ids):
            raise RuntimeError(f"delivery failed for {sorted(self.fail_for.intersection(user_ids))}")
        self.sent.append(SentNotification(user_ids=list(user_ids), event=event))


class FakeRecurrenceRepo:
    """
    In-memory RecurrenceRepo used for generator unit tests.

    Mirrors the store contract: compare-and-set on next_due_at and at most one
    occurrence per (parent, cycle_date).
    """

    def __init__(self, definitions: list[RecurringTaskDefinition]) -> None:
        self.definitions = {d.id: d for d in definitions}
        self.occurrences: dict[tuple[int, date], int] = {}
        self.fail_create_for: set[int] = set()
        self.fail_fetch = False
        self.malformed: list[MalformedRecord] = []
        self._next_id = 1000

    def find_due_recurring_definitions(
        self,
        now: datetime,
        *,
        on_malformed: Callable[[MalformedRecord], None] | None = None,
    ) -> list[RecurringTaskDefinition]:
        if self.fail_fetch:
            raise RuntimeError("database unavailable")
        if on_malformed is not None:
            for bad in self.malformed:
                on_malformed(bad)
        out = [
            d
            for d in self.definitions.values()
            if d.is_recurring and d.parent_id is None and d.next_due_at <= now
        ]
        return sorted(out, key=lambda d: (d.next_due_at, d.id))

    def create_occurrence_and_advance(
        self,
        definition_id: int,
        *,
        cycle_date: date,
        expected_next_due_at: datetime,
        next_due_at: datetime,
    ) -> int:
        if definition_id in self.fail_create_for:
            raise RuntimeError("insert failed")
        current = self.definitions[definition_id]
        if current.next_due_at != expected_next_due_at:
            raise ConflictError("next_due_at moved")
        if (definition_id, cycle_date) in self.occurrences:
            raise ConflictError("cycle already generated")

        self._next_id += 1
        self.occurrences[(definition_id, cycle_date)] = self._next_id
        self.definitions[definition_id] = replace(current, next_due_at=next_due_at)
        return self._next_id

    def advance_next_due(
        self,
        definition_id: int,
        *,
        expected_next_due_at: datetime,
        next_due_at: datetime,
    ) -> bool:
        current = self.definitions[definition_id]
        if current.next_due_at != expected_next_due_at:
            return False
        self.definitions[definition_id] = replace(current, next_due_at=next_due_at)
        return True


class FakeWindowRepo:
    """In-memory WindowRepo counting status writes."""

    def __init__(self, instances: list[ScheduledWindowInstance] | None = None) -> None:
        self.instances = {i.id: i for i in instances or []}
        self.status_writes: list[tuple[int, InstanceStatus]] = []

    def get_instance(self, instance_id: int) -> ScheduledWindowInstance | None:
        return self.instances.get(instance_id)

    def set_instance_status(self, instance_id: int, status: InstanceStatus) -> None:
        self.status_writes.append((instance_id, status))
        inst = self.instances.get(instance_id)
        if inst is not None:
            self.instances[instance_id] = replace(inst, status=status)
