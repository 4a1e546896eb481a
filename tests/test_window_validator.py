# tests/test_window_validator.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from ops_cadence.windows.models import (
    Action,
    Allowed,
    Denied,
    DenialReason,
    InstanceStatus,
    ScheduledWindowInstance,
    WindowState,
)
from ops_cadence.windows.validator import authorize, ceil_minutes, classify, resolve_window

from .fakes import FakeWindowRepo


def _instance(
    status: InstanceStatus = InstanceStatus.PENDING,
    start: str | None = "22:00",
    end: str | None = "02:00",
    day: date = date(2024, 1, 10),
    tz: str = "UTC",
) -> ScheduledWindowInstance:
    return ScheduledWindowInstance(
        id=7,
        date=day,
        status=status,
        window_start=start,
        window_end=end,
        timezone=tz,
    )


def _at(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (_at(2024, 1, 10, 23, 0), WindowState.OPEN),
        (_at(2024, 1, 11, 1, 30), WindowState.OPEN),
        (_at(2024, 1, 11, 3, 0), WindowState.EXPIRED),
        (_at(2024, 1, 10, 21, 0), WindowState.NOT_YET_OPEN),
    ],
)
def test_overnight_window_classification(now: datetime, expected: WindowState) -> None:
    window = resolve_window(_instance())
    assert window is not None
    assert window.start == _at(2024, 1, 10, 22, 0)
    assert window.end == _at(2024, 1, 11, 2, 0)
    assert classify(window, now) is expected


def test_window_bounds_are_inclusive() -> None:
    window = resolve_window(_instance(start="08:00", end="10:00"))
    assert window is not None
    assert classify(window, _at(2024, 1, 10, 8, 0)) is WindowState.OPEN
    assert classify(window, _at(2024, 1, 10, 10, 0)) is WindowState.OPEN
    assert classify(window, _at(2024, 1, 10, 10, 0) + timedelta(seconds=1)) is WindowState.EXPIRED


def test_equal_start_and_end_spans_a_full_day() -> None:
    window = resolve_window(_instance(start="06:00", end="06:00"))
    assert window is not None
    assert window.end - window.start == timedelta(days=1)


def test_window_uses_instance_timezone() -> None:
    window = resolve_window(_instance(start="08:00", end="10:00", tz="America/New_York"))
    assert window is not None
    assert window.start == _at(2024, 1, 10, 13, 0)
    assert window.end == _at(2024, 1, 10, 15, 0)


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize(
    "status", [InstanceStatus.VERIFIED, InstanceStatus.REJECTED, InstanceStatus.EXPIRED]
)
def test_finalized_status_denies_everything(status: InstanceStatus, action: Action) -> None:
    inside = _at(2024, 1, 10, 23, 0)
    decision = authorize(_instance(status=status), action, inside)
    assert decision == Denied(DenialReason.ALREADY_FINALIZED)


def test_verified_submit_is_denied_at_any_time() -> None:
    inst = _instance(status=InstanceStatus.VERIFIED)
    for now in (_at(2024, 1, 10, 21, 0), _at(2024, 1, 10, 23, 0), _at(2024, 1, 12, 0, 0)):
        decision = authorize(inst, "submit", now)
        assert isinstance(decision, Denied)
        assert decision.reason is DenialReason.ALREADY_FINALIZED


def test_no_window_allows_progress_actions() -> None:
    inst = _instance(start=None, end=None)
    assert not inst.has_window
    assert authorize(inst, Action.EXECUTE, _at(2030, 1, 1)) == Allowed()
    assert authorize(inst, Action.SUBMIT, _at(2000, 1, 1)) == Allowed()


def test_open_window_reports_minutes_remaining() -> None:
    decision = authorize(_instance(), Action.EXECUTE, _at(2024, 1, 11, 1, 30))
    assert decision == Allowed(minutes_remaining=30)
    assert decision.allowed


def test_minutes_remaining_rounds_up() -> None:
    inst = _instance(start="08:00", end="10:00")
    now = _at(2024, 1, 10, 10, 0) - timedelta(seconds=61)

    decision = authorize(inst, Action.SUBMIT, now)

    assert isinstance(decision, Allowed)
    assert decision.minutes_remaining == 2

    one_second_left = authorize(inst, Action.SUBMIT, _at(2024, 1, 10, 10, 0) - timedelta(seconds=1))
    assert isinstance(one_second_left, Allowed)
    assert one_second_left.minutes_remaining == 1


def test_not_yet_open_reports_minutes_until_open() -> None:
    decision = authorize(_instance(), Action.EXECUTE, _at(2024, 1, 10, 21, 0) + timedelta(seconds=30))
    assert decision == Denied(DenialReason.NOT_YET_OPEN, minutes_until_open=60)
    assert not decision.allowed


def test_expired_progress_action_expires_instance() -> None:
    inst = _instance()
    repo = FakeWindowRepo([inst])

    decision = authorize(inst, Action.SUBMIT, _at(2024, 1, 11, 3, 0), repo=repo)

    assert decision == Denied(DenialReason.EXPIRED)
    assert repo.status_writes == [(7, InstanceStatus.EXPIRED)]
    assert repo.instances[7].status is InstanceStatus.EXPIRED

    # A later check on the fresh row short-circuits on the terminal status.
    again = authorize(repo.instances[7], Action.SUBMIT, _at(2024, 1, 11, 4, 0), repo=repo)
    assert again == Denied(DenialReason.ALREADY_FINALIZED)
    assert len(repo.status_writes) == 1


def test_verify_of_submitted_bypasses_expired_window() -> None:
    inst = _instance(status=InstanceStatus.SUBMITTED)
    repo = FakeWindowRepo([inst])

    decision = authorize(inst, Action.VERIFY, _at(2024, 1, 12, 12, 0), repo=repo)

    assert decision == Allowed()
    assert repo.status_writes == []


@pytest.mark.parametrize("status", [InstanceStatus.PENDING, InstanceStatus.IN_PROGRESS])
def test_verify_requires_submitted(status: InstanceStatus) -> None:
    inside = _at(2024, 1, 10, 23, 0)
    assert authorize(_instance(status=status), Action.VERIFY, inside) == Denied(
        DenialReason.INVALID_ACTION_FOR_STATUS
    )
    assert authorize(_instance(status=status), "reject", inside) == Denied(
        DenialReason.INVALID_ACTION_FOR_STATUS
    )


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("status", [InstanceStatus.PENDING, InstanceStatus.IN_PROGRESS, InstanceStatus.SUBMITTED])
def test_no_window_allows_every_action_on_open_status(status: InstanceStatus, action: Action) -> None:
    inst = _instance(status=status, start=None, end=None)
    assert authorize(inst, action, _at(2024, 1, 10, 9, 0)) == Allowed()


def test_naive_now_is_rejected() -> None:
    with pytest.raises(ValueError):
        authorize(_instance(), Action.EXECUTE, datetime(2024, 1, 10, 23, 0))


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(ValueError):
        authorize(_instance(), "delete", _at(2024, 1, 10, 23, 0))


def test_ceil_minutes() -> None:
    assert ceil_minutes(timedelta(seconds=0)) == 0
    assert ceil_minutes(timedelta(seconds=-5)) == 0
    assert ceil_minutes(timedelta(seconds=1)) == 1
    assert ceil_minutes(timedelta(seconds=60)) == 1
    assert ceil_minutes(timedelta(seconds=61)) == 2
