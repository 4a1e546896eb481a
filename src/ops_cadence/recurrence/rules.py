# src/ops_cadence/recurrence/rules.py

"""
Recurrence rule evaluator.

Pure functions, no I/O. Weekdays use 0=Sunday..6=Saturday.

Monthly policy: an anchor day that does not exist in the target month is clamped
to the month's last day, so anchor 31 fires on April 30 and on February 28/29.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from ..core.clock import local_instant
from ..core.errors import UnsupportedFrequency
from .models import Frequency, RecurrencePattern


def weekday_index(day: date) -> int:
    """Python's Monday=0 mapped to Sunday=0."""
    return (day.weekday() + 1) % 7


def effective_anchor_day(anchor_day: int, year: int, month: int) -> int:
    last = calendar.monthrange(year, month)[1]
    return min(anchor_day, last)


def _frequency(pattern: RecurrencePattern) -> Frequency:
    try:
        return Frequency((pattern.frequency or "").strip().lower())
    except ValueError:
        raise UnsupportedFrequency(pattern.frequency) from None


def is_due_on(pattern: RecurrencePattern, target_date: date) -> bool:
    freq = _frequency(pattern)

    if freq is Frequency.DAILY:
        return True

    if freq is Frequency.WEEKLY:
        return weekday_index(target_date) in pattern.days_of_week

    if pattern.anchor_day is None:
        return False
    return target_date.day == effective_anchor_day(pattern.anchor_day, target_date.year, target_date.month)


def next_due_date(pattern: RecurrencePattern, after: date) -> date:
    """
    First date strictly after `after` on which the pattern is due.

    Raises UnsupportedFrequency for unknown tags, ValueError for patterns that can never fire.
    """
    freq = _frequency(pattern)

    if freq is Frequency.DAILY:
        return after + timedelta(days=1)

    if freq is Frequency.WEEKLY:
        if not pattern.days_of_week:
            raise ValueError("weekly pattern without days never fires")
        for offset in range(1, 8):
            candidate = after + timedelta(days=offset)
            if weekday_index(candidate) in pattern.days_of_week:
                return candidate
        raise ValueError(f"weekly pattern has no valid days: {sorted(pattern.days_of_week)}")

    if pattern.anchor_day is None:
        raise ValueError("monthly pattern without anchor day never fires")

    year, month = after.year, after.month
    this_month = date(year, month, effective_anchor_day(pattern.anchor_day, year, month))
    if this_month > after:
        return this_month
    year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return date(year, month, effective_anchor_day(pattern.anchor_day, year, month))


def start_of_day(day: date, tz_name: str | None) -> datetime:
    """Local midnight of `day` in tz_name, as a UTC instant."""
    return local_instant(day, time(0, 0), tz_name)


def next_due_at(pattern: RecurrencePattern, after: date, tz_name: str | None) -> datetime:
    return start_of_day(next_due_date(pattern, after), tz_name)
