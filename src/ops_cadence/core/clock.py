# src/ops_cadence/core/clock.py

"""
Clock sources.

Only SystemClock is wired in production (cli/bootstrap.py). Time-gated decisions
must never be taken on a caller-supplied instant: a client that could send "now"
could open a closed checklist window.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class SystemClock:
    """Server wall clock, always UTC-aware."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def get_zone(name: str | None) -> ZoneInfo:
    """Resolve an IANA zone name; empty means UTC. Unknown names raise ValueError."""
    key = (name or "").strip() or "UTC"
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone: {key!r}") from exc


def require_aware(now: datetime) -> datetime:
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware (use the server clock)")
    return now


def local_date(now: datetime, tz_name: str | None) -> date:
    """Calendar date of `now` as seen in the given zone."""
    return require_aware(now).astimezone(get_zone(tz_name)).date()


def local_instant(day: date, at: time, tz_name: str | None) -> datetime:
    """Combine a local date and wall time into a UTC instant."""
    return datetime.combine(day, at, tzinfo=get_zone(tz_name)).astimezone(UTC)
