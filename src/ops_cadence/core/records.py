# src/ops_cadence/core/records.py

"""
Parse/validate loosely-typed rows at the data-access boundary.

Rows come from SQLite (sqlite3.Row), from JSON payloads of the hosted backend
(dicts), or from anything else that supports `row[key]`. Each parser returns a
strongly-typed model or raises MalformedRecord; nothing `Any`-typed flows past here.

Accepted shapes:
- timestamps: aware/naive datetime, epoch seconds, ISO-8601 string (naive = UTC)
- dates: date, "YYYY-MM-DD"
- times of day: "HH:MM" or "HH:MM:SS" (Postgres `time` columns)
- weekdays: ints 0..6 (0=Sunday) or English day names ("monday")
- recurrence pattern: dict or JSON string with frequency / daysOfWeek / anchorDayOfMonth
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, date, datetime, time
from typing import Any

from ..recurrence.models import RecurrencePattern, RecurringTaskDefinition
from ..windows.models import ChecklistTemplate, InstanceStatus, ScheduledWindowInstance
from .errors import MalformedRecord

_WEEKDAY_NAMES = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}


def _field(row: Any, *names: str, default: Any = None) -> Any:
    """First present, non-None value among names (sqlite3.Row raises IndexError on unknown keys)."""
    for name in names:
        try:
            val = row[name]
        except (KeyError, IndexError):
            continue
        if val is not None:
            return val
    return default


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "y", "t"}
    return bool(raw)


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
    if isinstance(raw, bool):
        raise ValueError(f"not a timestamp: {raw!r}")
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(float(raw), UTC)
    if isinstance(raw, str) and raw.strip():
        s = raw.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
        return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)
    raise ValueError(f"not a timestamp: {raw!r}")


def parse_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str) and raw.strip():
        return date.fromisoformat(raw.strip()[:10])
    raise ValueError(f"not a date: {raw!r}")


def parse_clock_time(raw: Any) -> time:
    """'HH:MM' or 'HH:MM:SS' -> time. Raises ValueError."""
    if isinstance(raw, time):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"not a time of day: {raw!r}")
    s = raw.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"not a time of day: {raw!r}")


def _optional_clock_str(raw: Any) -> str | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    parse_clock_time(raw)
    return raw.strip() if isinstance(raw, str) else raw.strftime("%H:%M")


def parse_weekdays(raw: Any) -> frozenset[int]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = json.loads(raw) if raw.strip().startswith("[") else raw.replace(",", " ").split()
    if not isinstance(raw, Iterable):
        raise ValueError(f"weekdays must be a list: {raw!r}")

    out: set[int] = set()
    for item in raw:
        if isinstance(item, str) and not item.strip().isdigit():
            key = item.strip().lower()
            if key not in _WEEKDAY_NAMES:
                raise ValueError(f"unknown weekday: {item!r}")
            out.add(_WEEKDAY_NAMES[key])
            continue
        if isinstance(item, bool):
            raise ValueError(f"unknown weekday: {item!r}")
        day = int(item)
        if not 0 <= day <= 6:
            raise ValueError(f"weekday out of range 0..6: {day}")
        out.add(day)
    return frozenset(out)


def parse_pattern(raw: Any) -> RecurrencePattern:
    if isinstance(raw, str):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise ValueError(f"recurrence pattern must be an object: {raw!r}")

    frequency = str(raw.get("frequency") or "").strip().lower()
    if not frequency:
        raise ValueError("recurrence pattern has no frequency")

    days = parse_weekdays(_field(raw, "daysOfWeek", "days_of_week"))
    anchor_raw = _field(raw, "anchorDayOfMonth", "anchor_day_of_month", "anchor_day")
    anchor: int | None = None
    if anchor_raw is not None:
        anchor = int(anchor_raw)
        if not 1 <= anchor <= 31:
            raise ValueError(f"anchor day out of range 1..31: {anchor}")

    # Structural checks for known tags only; unknown tags fail at evaluation time.
    if frequency == "weekly" and not days:
        raise ValueError("weekly pattern needs at least one day of week")
    if frequency == "monthly" and anchor is None:
        raise ValueError("monthly pattern needs anchorDayOfMonth")

    return RecurrencePattern(frequency=frequency, days_of_week=days, anchor_day=anchor)


def _user_ids(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return ()
        raw = json.loads(s) if s.startswith("[") else [s]
    return tuple(str(u) for u in raw if u is not None and str(u).strip())


def parse_definition(row: Any) -> RecurringTaskDefinition:
    record_id = _field(row, "id")
    try:
        if record_id is None:
            raise ValueError("missing id")
        parent = _field(row, "parent_id", "parent_task_id")
        return RecurringTaskDefinition(
            id=int(record_id),
            title=str(_field(row, "title", default="") or ""),
            is_recurring=_as_bool(_field(row, "is_recurring", default=False)),
            pattern=parse_pattern(_field(row, "recurrence_pattern", "pattern")),
            next_due_at=parse_timestamp(_field(row, "next_due_at", "next_due_date")),
            organization_id=_field(row, "organization_id", "org_id"),
            assigned_user_ids=_user_ids(_field(row, "assigned_user_ids", "assigned_to_ids")),
            parent_id=int(parent) if parent is not None else None,
            timezone=str(_field(row, "timezone", default="UTC") or "UTC"),
        )
    except (TypeError, ValueError) as exc:
        raise MalformedRecord("recurring definition", record_id, str(exc)) from exc


def parse_instance(row: Any) -> ScheduledWindowInstance:
    record_id = _field(row, "id")
    try:
        if record_id is None:
            raise ValueError("missing id")
        raw_status = str(_field(row, "status", default="pending")).strip().lower()
        try:
            status = InstanceStatus(raw_status)
        except ValueError:
            raise ValueError(f"unknown status: {raw_status!r}") from None
        template = _field(row, "template_id")
        return ScheduledWindowInstance(
            id=int(record_id),
            date=parse_date(_field(row, "date")),
            status=status,
            window_start=_optional_clock_str(_field(row, "window_start", "start_time")),
            window_end=_optional_clock_str(_field(row, "window_end", "end_time")),
            timezone=str(_field(row, "timezone", default="UTC") or "UTC"),
            template_id=int(template) if template is not None else None,
            organization_id=_field(row, "organization_id", "org_id"),
            team_id=_field(row, "team_id"),
        )
    except (TypeError, ValueError) as exc:
        raise MalformedRecord("scheduled instance", record_id, str(exc)) from exc


def parse_template(row: Any) -> ChecklistTemplate:
    record_id = _field(row, "id")
    try:
        if record_id is None:
            raise ValueError("missing id")
        return ChecklistTemplate(
            id=int(record_id),
            name=str(_field(row, "name", default="") or ""),
            organization_id=_field(row, "organization_id", "org_id"),
            team_id=_field(row, "team_id"),
            scheduled_days=parse_weekdays(_field(row, "scheduled_days")),
            window_start=_optional_clock_str(_field(row, "window_start", "start_time")),
            window_end=_optional_clock_str(_field(row, "window_end", "end_time")),
            timezone=str(_field(row, "timezone", default="UTC") or "UTC"),
            is_active=_as_bool(_field(row, "is_active", default=True)),
            recipient_ids=_user_ids(_field(row, "recipient_ids")),
        )
    except (TypeError, ValueError) as exc:
        raise MalformedRecord("checklist template", record_id, str(exc)) from exc
