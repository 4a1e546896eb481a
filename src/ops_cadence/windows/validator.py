# src/ops_cadence/windows/validator.py

"""
Time window validator.

Decides whether an action against a scheduled instance may proceed right now.

Key invariants:
- a terminal status (verified / rejected / expired) denies everything, before any time logic,
- the window is the instance's local date + HH:MM bounds in the instance timezone;
  end <= start means the window ends on the next calendar day,
- the window is closed on both ends: start <= now <= end is open,
- an instance without a window allows every action its status allows,
- on a windowed instance, review actions (verify / reject) ignore the clock and
  only need status=submitted,
- minute counts are rounded up, so 1 second left still reads as 1 minute.

Denials are returned as values (Denied), never raised.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, time, timedelta

from ..core.clock import local_instant, require_aware
from ..core.ports import WindowRepo
from ..core.records import parse_clock_time
from .expiry import expire_if_needed
from .models import (
    PROGRESS_ACTIONS,
    REVIEW_ACTIONS,
    Action,
    Allowed,
    Decision,
    Denied,
    DenialReason,
    InstanceStatus,
    ResolvedWindow,
    ScheduledWindowInstance,
    WindowState,
)

logger = logging.getLogger(__name__)


def ceil_minutes(delta: timedelta) -> int:
    seconds = delta.total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60.0)


def resolve_window(instance: ScheduledWindowInstance) -> ResolvedWindow | None:
    """
    Concrete UTC bounds of the instance window, or None if it declares none.

    A window with only one bound is open-ended on the other side of the day:
    missing start = local midnight, missing end = end of the local day.
    """
    if not instance.has_window:
        return None

    start_t = parse_clock_time(instance.window_start) if instance.window_start else time(0, 0)
    end_day = instance.date
    if instance.window_end:
        end_t = parse_clock_time(instance.window_end)
    else:
        end_t = time(0, 0)
        end_day = instance.date + timedelta(days=1)

    if instance.window_end and end_t <= start_t:
        end_day = instance.date + timedelta(days=1)

    start = local_instant(instance.date, start_t, instance.timezone)
    end = local_instant(end_day, end_t, instance.timezone)
    return ResolvedWindow(start=start, end=end)


def classify(window: ResolvedWindow, now: datetime) -> WindowState:
    now = require_aware(now)
    if now < window.start:
        return WindowState.NOT_YET_OPEN
    if now > window.end:
        return WindowState.EXPIRED
    return WindowState.OPEN


def authorize(
    instance: ScheduledWindowInstance,
    action: Action | str,
    now: datetime,
    *,
    repo: WindowRepo | None = None,
) -> Decision:
    """
    Authorize `action` on `instance` at the server instant `now`.

    When a progress action finds the window expired, the instance is moved to
    `expired` through repo (if given) before the denial is returned.
    """
    now = require_aware(now)
    action = Action(action)

    if instance.status.is_terminal:
        return Denied(DenialReason.ALREADY_FINALIZED)

    window = resolve_window(instance)
    if window is None:
        return Allowed()

    if action in REVIEW_ACTIONS:
        if instance.status is not InstanceStatus.SUBMITTED:
            return Denied(DenialReason.INVALID_ACTION_FOR_STATUS)
        return Allowed()

    state = classify(window, now)

    if action in PROGRESS_ACTIONS:
        if state is WindowState.OPEN:
            return Allowed(minutes_remaining=ceil_minutes(window.end - now))

        if state is WindowState.EXPIRED:
            if repo is not None:
                expire_if_needed(instance, repo)
            else:
                logger.debug("Instance %s expired but no repo given; status left unchanged", instance.id)
            return Denied(DenialReason.EXPIRED)

        return Denied(DenialReason.NOT_YET_OPEN, minutes_until_open=ceil_minutes(window.start - now))

    # Action enum is closed; unreachable unless a new action is added without a rule.
    raise ValueError(f"no authorization rule for action {action.value!r}")
