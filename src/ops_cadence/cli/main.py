# src/ops_cadence/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one command:
- generate / materialize: a single pass (for cron-style triggers),
- run: both passes on a polling loop until interrupted,
- authorize: check an action against an instance using the server clock,
- add-task / add-checklist: seed definitions and templates.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from .bootstrap import create_initial_state
from ..config import get_settings
from ..core.clock import get_zone
from ..core.errors import CadenceError
from ..core.records import parse_clock_time, parse_weekdays
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging
from ..recurrence.generator import generate_due_occurrences, run_generation_loop
from ..recurrence.models import RecurrencePattern
from ..windows.materializer import materialize_checklists
from ..windows.models import Action, Allowed

logger = logging.getLogger(__name__)

EXIT_DENIED = 3


def _print_json(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _cmd_generate(state: AppState, args: argparse.Namespace) -> int:
    report = generate_due_occurrences(state.recurrence_store, state.notifier, now=state.clock.now())
    _print_json(report.to_dict())
    return 1 if report.errors else 0


def _cmd_materialize(state: AppState, args: argparse.Namespace) -> int:
    report = materialize_checklists(
        state.window_store,
        state.notifier,
        now=state.clock.now(),
        upcoming_lead_minutes=state.settings.upcoming_lead_minutes,
    )
    _print_json(report.to_dict())
    return 1 if report.errors else 0


async def _materialize_loop(state: AppState, interval_seconds: float) -> None:
    while True:
        try:
            materialize_checklists(
                state.window_store,
                state.notifier,
                now=state.clock.now(),
                upcoming_lead_minutes=state.settings.upcoming_lead_minutes,
            )
        except Exception:
            logger.exception("materializer pass failed; retrying in %.1fs", interval_seconds)
        await asyncio.sleep(interval_seconds)


async def _run_forever(state: AppState) -> None:
    interval = state.settings.generation_interval_seconds
    await asyncio.gather(
        run_generation_loop(state.recurrence_store, state.notifier, state.clock, interval_seconds=interval),
        _materialize_loop(state, interval),
    )


def _cmd_run(state: AppState, args: argparse.Namespace) -> int:
    logger.info("Polling every %.1fs. Press Ctrl+C to stop.", state.settings.generation_interval_seconds)
    try:
        asyncio.run(_run_forever(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    return 0


def _cmd_authorize(state: AppState, args: argparse.Namespace) -> int:
    decision = state.gate.authorize(args.instance_id, args.action)
    if isinstance(decision, Allowed):
        _print_json({"allowed": True, "minutesRemaining": decision.minutes_remaining})
        return 0
    _print_json(
        {
            "allowed": False,
            "reason": decision.reason.value,
            "minutesUntilOpen": decision.minutes_until_open,
        }
    )
    return EXIT_DENIED


def _cmd_add_task(state: AppState, args: argparse.Namespace) -> int:
    tz = args.tz or state.settings.default_timezone
    get_zone(tz)

    if args.frequency == "weekly":
        pattern = RecurrencePattern.weekly(parse_weekdays(args.days))
        if not pattern.days_of_week:
            raise SystemExit("--days is required for weekly tasks")
    elif args.frequency == "monthly":
        if args.anchor is None:
            raise SystemExit("--anchor is required for monthly tasks")
        if not 1 <= args.anchor <= 31:
            raise ValueError(f"anchor day out of range 1..31: {args.anchor}")
        pattern = RecurrencePattern.monthly(args.anchor)
    else:
        pattern = RecurrencePattern.daily()

    definition_id = state.recurrence_store.add_definition(
        title=args.title,
        pattern=pattern,
        next_due_at=state.clock.now(),
        organization_id=args.org,
        assigned_user_ids=args.users or [],
        timezone=tz,
    )
    _print_json({"id": definition_id})
    return 0


def _cmd_add_checklist(state: AppState, args: argparse.Namespace) -> int:
    tz = args.tz or state.settings.default_timezone
    get_zone(tz)
    for raw in (args.start, args.end):
        if raw:
            parse_clock_time(raw)

    template_id = state.window_store.add_template(
        name=args.name,
        organization_id=args.org,
        team_id=args.team,
        scheduled_days=parse_weekdays(args.days),
        window_start=args.start,
        window_end=args.end,
        timezone=tz,
        recipient_ids=args.recipients or [],
    )
    _print_json({"id": template_id})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ops-cadence", description=__doc__.split("\n\n")[0].strip())
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("generate", help="generate due recurring-task occurrences once").set_defaults(
        handler=_cmd_generate
    )
    sub.add_parser("materialize", help="create today's checklist instances once").set_defaults(
        handler=_cmd_materialize
    )
    sub.add_parser("run", help="poll generate + materialize until interrupted").set_defaults(handler=_cmd_run)

    p_auth = sub.add_parser("authorize", help="authorize an action on a checklist instance (server clock)")
    p_auth.add_argument("instance_id", type=int)
    p_auth.add_argument("action", choices=[a.value for a in Action])
    p_auth.set_defaults(handler=_cmd_authorize)

    p_task = sub.add_parser("add-task", help="add a recurring task definition")
    p_task.add_argument("--title", required=True)
    p_task.add_argument("--frequency", choices=["daily", "weekly", "monthly"], default="daily")
    p_task.add_argument("--days", nargs="*", help="weekdays: 0-6 (0=Sunday) or names")
    p_task.add_argument("--anchor", type=int, help="day of month 1-31 (clamped in short months)")
    p_task.add_argument("--users", nargs="*", help="assigned user ids")
    p_task.add_argument("--org")
    p_task.add_argument("--tz", help="IANA timezone (default: CADENCE_DEFAULT_TIMEZONE)")
    p_task.set_defaults(handler=_cmd_add_task)

    p_check = sub.add_parser("add-checklist", help="add a checklist template")
    p_check.add_argument("--name", required=True)
    p_check.add_argument("--days", nargs="*", help="weekdays (empty = every day)")
    p_check.add_argument("--start", help="window start HH:MM")
    p_check.add_argument("--end", help="window end HH:MM (<= start crosses midnight)")
    p_check.add_argument("--recipients", nargs="*")
    p_check.add_argument("--org")
    p_check.add_argument("--team")
    p_check.add_argument("--tz")
    p_check.set_defaults(handler=_cmd_add_checklist)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=level_from_name(settings.log_level))

    logger.info("Starting %s (%s), log file %s", settings.app_name, args.command, log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        return int(args.handler(state, args))
    except (CadenceError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
