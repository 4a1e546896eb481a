# src/ops_cadence/windows/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

from ..recurrence.models import ItemError


class InstanceStatus(StrEnum):
    """
    Lifecycle of a scheduled (time-windowed) checklist instance.

    pending -> in_progress / submitted -> verified | rejected
    expired is reachable from any non-terminal status once past the window.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({InstanceStatus.VERIFIED, InstanceStatus.REJECTED, InstanceStatus.EXPIRED})


class Action(StrEnum):
    EXECUTE = "execute"
    SUBMIT = "submit"
    VERIFY = "verify"
    REJECT = "reject"


# Actions that move the work forward and are gated by the window.
PROGRESS_ACTIONS = frozenset({Action.EXECUTE, Action.SUBMIT})
# Manager review of submitted work; allowed after the window has closed.
REVIEW_ACTIONS = frozenset({Action.VERIFY, Action.REJECT})


class WindowState(StrEnum):
    NOT_YET_OPEN = "not_yet_open"
    OPEN = "open"
    EXPIRED = "expired"


class DenialReason(StrEnum):
    ALREADY_FINALIZED = "already finalized"
    NOT_YET_OPEN = "not yet available"
    EXPIRED = "time window has expired"
    INVALID_ACTION_FOR_STATUS = "only submitted items can be verified"


@dataclass(slots=True, frozen=True)
class Allowed:
    # Only set for window-gated actions on a windowed instance.
    minutes_remaining: int | None = None

    @property
    def allowed(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class Denied:
    reason: DenialReason
    minutes_until_open: int | None = None

    @property
    def allowed(self) -> bool:
        return False


Decision = Allowed | Denied


@dataclass(slots=True, frozen=True)
class ScheduledWindowInstance:
    id: int
    date: date
    status: InstanceStatus

    # Local "HH:MM" strings; end <= start means the window crosses midnight.
    window_start: str | None = None
    window_end: str | None = None
    timezone: str = "UTC"

    template_id: int | None = None
    organization_id: str | None = None
    team_id: str | None = None

    @property
    def has_window(self) -> bool:
        return bool(self.window_start) or bool(self.window_end)


@dataclass(slots=True, frozen=True)
class ResolvedWindow:
    """Concrete UTC bounds of an instance window."""

    start: datetime
    end: datetime


@dataclass(slots=True, frozen=True)
class ChecklistTemplate:
    id: int
    name: str
    organization_id: str | None
    team_id: str | None = None

    # Empty means "every day". 0=Sunday..6=Saturday.
    scheduled_days: frozenset[int] = frozenset()
    window_start: str | None = None
    window_end: str | None = None
    timezone: str = "UTC"
    is_active: bool = True

    # Managers/admins warned before the window opens.
    recipient_ids: tuple[str, ...] = ()


@dataclass(slots=True)
class MaterializationReport:
    created_count: int = 0
    skipped_count: int = 0
    errors: list[ItemError] = field(default_factory=list)
    correlation_id: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "created": self.created_count,
            "skipped": self.skipped_count,
            "errors": [{"id": e.id, "message": e.message} for e in self.errors],
            "correlationId": self.correlation_id,
        }
