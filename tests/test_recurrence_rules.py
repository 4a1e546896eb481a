# tests/test_recurrence_rules.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from ops_cadence.core.errors import UnsupportedFrequency
from ops_cadence.recurrence.models import RecurrencePattern
from ops_cadence.recurrence.rules import is_due_on, next_due_at, next_due_date, weekday_index

# 2024-01-07 is a Sunday.
SUNDAY = date(2024, 1, 7)


def test_weekday_index_is_sunday_based() -> None:
    assert [weekday_index(SUNDAY + timedelta(days=i)) for i in range(7)] == [0, 1, 2, 3, 4, 5, 6]


def test_daily_is_always_due() -> None:
    pattern = RecurrencePattern.daily()
    for i in range(40):
        assert is_due_on(pattern, date(2024, 2, 1) + timedelta(days=i))


def test_weekly_matches_only_listed_days() -> None:
    pattern = RecurrencePattern.weekly({1, 3, 5})
    due = {i for i in range(7) if is_due_on(pattern, SUNDAY + timedelta(days=i))}
    assert due == {1, 3, 5}

    assert is_due_on(pattern, date(2024, 1, 8))  # Monday
    assert is_due_on(pattern, date(2024, 1, 10))  # Wednesday
    assert is_due_on(pattern, date(2024, 1, 12))  # Friday
    assert not is_due_on(pattern, date(2024, 1, 9))  # Tuesday


def test_monthly_anchor_matches_day_of_month() -> None:
    pattern = RecurrencePattern.monthly(15)
    assert is_due_on(pattern, date(2024, 3, 15))
    assert not is_due_on(pattern, date(2024, 3, 14))
    assert not is_due_on(pattern, date(2024, 3, 16))


def test_monthly_anchor_31_clamps_to_last_day_of_short_month() -> None:
    pattern = RecurrencePattern.monthly(31)

    # April has 30 days: fires on the 30th, never on the 29th.
    assert is_due_on(pattern, date(2024, 4, 30))
    assert not is_due_on(pattern, date(2024, 4, 29))

    # Leap and non-leap February.
    assert is_due_on(pattern, date(2024, 2, 29))
    assert not is_due_on(pattern, date(2024, 2, 28))
    assert is_due_on(pattern, date(2023, 2, 28))

    # Long months still use the real anchor.
    assert is_due_on(pattern, date(2024, 5, 31))
    assert not is_due_on(pattern, date(2024, 5, 30))


def test_unknown_frequency_raises() -> None:
    with pytest.raises(UnsupportedFrequency) as exc_info:
        is_due_on(RecurrencePattern(frequency="fortnightly"), date(2024, 1, 1))
    assert exc_info.value.frequency == "fortnightly"

    with pytest.raises(UnsupportedFrequency):
        next_due_date(RecurrencePattern(frequency="yearly"), date(2024, 1, 1))


def test_next_due_date_per_frequency() -> None:
    assert next_due_date(RecurrencePattern.daily(), date(2024, 12, 31)) == date(2025, 1, 1)

    weekly = RecurrencePattern.weekly({1, 5})
    assert next_due_date(weekly, date(2024, 1, 8)) == date(2024, 1, 12)  # Mon -> Fri
    assert next_due_date(weekly, date(2024, 1, 12)) == date(2024, 1, 15)  # Fri -> Mon

    monthly = RecurrencePattern.monthly(31)
    assert next_due_date(monthly, date(2024, 1, 31)) == date(2024, 2, 29)
    assert next_due_date(monthly, date(2024, 3, 10)) == date(2024, 3, 31)
    assert next_due_date(monthly, date(2024, 4, 30)) == date(2024, 5, 31)
    assert next_due_date(RecurrencePattern.monthly(5), date(2024, 12, 20)) == date(2025, 1, 5)


def test_next_due_at_is_local_midnight() -> None:
    at = next_due_at(RecurrencePattern.daily(), date(2024, 1, 10), "Europe/Berlin")
    assert at == datetime(2024, 1, 10, 23, 0, tzinfo=UTC)

    assert next_due_at(RecurrencePattern.daily(), date(2024, 1, 10), "UTC") == datetime(
        2024, 1, 11, tzinfo=UTC
    )
