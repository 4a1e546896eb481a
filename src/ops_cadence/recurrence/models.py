# src/ops_cadence/recurrence/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(slots=True, frozen=True)
class RecurrencePattern:
    """
    Tagged recurrence pattern.

    frequency is kept as the raw stored string: an unknown tag must survive parsing
    and fail only when evaluated (rules.is_due_on raises UnsupportedFrequency),
    so a single bad definition cannot break listing of the others.

    days_of_week uses 0=Sunday..6=Saturday.
    """

    frequency: str
    days_of_week: frozenset[int] = frozenset()
    anchor_day: int | None = None

    @classmethod
    def daily(cls) -> RecurrencePattern:
        return cls(frequency=Frequency.DAILY.value)

    @classmethod
    def weekly(cls, days_of_week: set[int] | frozenset[int]) -> RecurrencePattern:
        return cls(frequency=Frequency.WEEKLY.value, days_of_week=frozenset(days_of_week))

    @classmethod
    def monthly(cls, anchor_day: int) -> RecurrencePattern:
        return cls(frequency=Frequency.MONTHLY.value, anchor_day=anchor_day)

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"frequency": self.frequency}
        if self.days_of_week:
            out["daysOfWeek"] = sorted(self.days_of_week)
        if self.anchor_day is not None:
            out["anchorDayOfMonth"] = self.anchor_day
        return out


@dataclass(slots=True, frozen=True)
class RecurringTaskDefinition:
    id: int
    title: str
    is_recurring: bool
    pattern: RecurrencePattern
    next_due_at: datetime

    organization_id: str | None
    assigned_user_ids: tuple[str, ...] = ()

    # Generated instances point at their parent; definitions never do.
    parent_id: int | None = None
    timezone: str = "UTC"


@dataclass(slots=True, frozen=True)
class TaskOccurrence:
    id: int
    parent_id: int
    cycle_date: date
    created_at: datetime
    title: str
    organization_id: str | None
    assigned_user_ids: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class ItemError:
    id: object
    message: str


@dataclass(slots=True)
class GenerationReport:
    generated_count: int = 0
    skipped_count: int = 0
    total_candidates: int = 0
    errors: list[ItemError] = field(default_factory=list)
    correlation_id: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "generatedCount": self.generated_count,
            "skippedCount": self.skipped_count,
            "totalCandidates": self.total_candidates,
            "errors": [{"id": e.id, "message": e.message} for e in self.errors],
            "correlationId": self.correlation_id,
        }
