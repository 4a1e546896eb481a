# src/ops_cadence/recurrence/generator.py

from __future__ import annotations

"""
Occurrence generator.

One pass:
- fetches recurring definitions whose next_due_at <= now,
- evaluates each pattern against the definition's local calendar date,
- asks the repo to atomically create the occurrence and advance next_due_at,
- notifies assignees (best-effort),
- collects per-item failures instead of raising them.

Idempotency is the repo's job (compare-and-set + unique cycle). The generator keeps
no state between passes; every decision is re-derived from `now` and fresh rows.
"""

import asyncio
import logging
import uuid
from datetime import datetime

from ..core.clock import local_date, require_aware
from ..core.errors import ConflictError, DataAccessFailure, MalformedRecord, UnsupportedFrequency
from ..core.ports import Clock, NotificationEvent, Notifier, RecurrenceRepo
from .models import GenerationReport, ItemError, RecurringTaskDefinition
from .rules import is_due_on, next_due_at

logger = logging.getLogger(__name__)

OCCURRENCE_CREATED = "task_occurrence_created"


def _notify_assignees(
        notifier: Notifier,
        definition: RecurringTaskDefinition,
        occurrence_id: int,
        correlation_id: str,
) -> None:
    """One notify call per assignee; a failing recipient never blocks the others."""
    event = NotificationEvent(
        type=OCCURRENCE_CREATED,
        occurrence_id=occurrence_id,
        organization_id=definition.organization_id,
        dedupe_key=f"{definition.organization_id or 'no-org'}:{OCCURRENCE_CREATED}:{occurrence_id}",
        payload={"parentId": definition.id, "title": definition.title},
    )
    for user_id in definition.assigned_user_ids:
        try:
            notifier.notify([user_id], event)
        except Exception:
            logger.exception(
                "notify failed occurrence=%s user=%s correlation=%s",
                occurrence_id,
                user_id,
                correlation_id,
            )


def generate_due_occurrences(
        repo: RecurrenceRepo,
        notifier: Notifier,
        *,
        now: datetime,
) -> GenerationReport:
    """
    Materialize every occurrence due at `now`.

    Raises DataAccessFailure only if the candidate fetch fails; everything after that
    is reported in GenerationReport.errors.
    """
    now = require_aware(now)
    report = GenerationReport(correlation_id=str(uuid.uuid4()))
    cid = report.correlation_id

    logger.info("Occurrence generation started now=%s correlation=%s", now.isoformat(), cid)

    rejects: list[MalformedRecord] = []
    try:
        candidates = repo.find_due_recurring_definitions(now, on_malformed=rejects.append)
    except DataAccessFailure:
        raise
    except Exception as exc:
        logger.exception("find_due_recurring_definitions failed correlation=%s", cid)
        raise DataAccessFailure(f"failed to fetch due recurring definitions: {exc}") from exc

    report.total_candidates = len(candidates) + len(rejects)
    for bad in rejects:
        report.errors.append(ItemError(id=bad.record_id, message=str(bad)))

    for definition in candidates:
        # Instances and non-recurring rows never generate, whatever the store returns.
        if not definition.is_recurring or definition.parent_id is not None:
            logger.warning("Ignoring non-definition row id=%s correlation=%s", definition.id, cid)
            report.skipped_count += 1
            continue

        try:
            today = local_date(now, definition.timezone)
            due = is_due_on(definition.pattern, today)
            upcoming = next_due_at(definition.pattern, today, definition.timezone)
        except UnsupportedFrequency as exc:
            logger.warning("Definition %s: %s correlation=%s", definition.id, exc, cid)
            report.errors.append(ItemError(id=definition.id, message=str(exc)))
            continue
        except ValueError as exc:
            logger.warning("Definition %s has an unusable pattern: %s correlation=%s", definition.id, exc, cid)
            report.errors.append(ItemError(id=definition.id, message=str(exc)))
            continue

        if not due:
            report.skipped_count += 1
            try:
                repo.advance_next_due(
                    definition.id,
                    expected_next_due_at=definition.next_due_at,
                    next_due_at=upcoming,
                )
            except Exception as exc:
                logger.exception("advance_next_due failed id=%s correlation=%s", definition.id, cid)
                report.errors.append(ItemError(id=definition.id, message=str(exc)))
            else:
                logger.debug("Definition %s not due on %s; next %s", definition.id, today, upcoming.isoformat())
            continue

        try:
            occurrence_id = repo.create_occurrence_and_advance(
                definition.id,
                cycle_date=today,
                expected_next_due_at=definition.next_due_at,
                next_due_at=upcoming,
            )
        except ConflictError as exc:
            logger.info("Definition %s already generated for %s (%s) correlation=%s", definition.id, today, exc, cid)
            report.skipped_count += 1
            continue
        except Exception as exc:
            logger.exception("create_occurrence_and_advance failed id=%s correlation=%s", definition.id, cid)
            report.errors.append(ItemError(id=definition.id, message=str(exc)))
            continue

        report.generated_count += 1
        logger.info(
            "Occurrence %s created for definition %s cycle=%s correlation=%s",
            occurrence_id,
            definition.id,
            today,
            cid,
        )
        _notify_assignees(notifier, definition, occurrence_id, cid)

    logger.info(
        "Occurrence generation finished generated=%s skipped=%s candidates=%s errors=%s correlation=%s",
        report.generated_count,
        report.skipped_count,
        report.total_candidates,
        len(report.errors),
        cid,
    )
    return report


async def run_generation_loop(
        repo: RecurrenceRepo,
        notifier: Notifier,
        clock: Clock,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling trigger.

    Every interval_seconds: take `now` from the server clock and run one
    generation pass. A failed pass is logged and retried on the next tick.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            generate_due_occurrences(repo, notifier, now=clock.now())
        except DataAccessFailure:
            logger.exception("generation pass aborted; retrying in %.1fs", sleep_s)
        except Exception:
            logger.exception("generation pass crashed; retrying in %.1fs", sleep_s)

        await asyncio.sleep(sleep_s)
