# src/ops_cadence/windows/materializer.py

from __future__ import annotations

"""
Checklist materializer.

Once per (template, local day) create a `pending` instance carrying the template
window. "Today" and the weekday are taken in each template's own timezone.

Every pass also looks at today's instance, new or existing: while it is still
`pending` and its window opens within upcoming_lead_minutes, the template recipients
get one `checklist_upcoming` notification with a stable dedupe_key. The store flag
claimed before sending keeps it to one per instance; a failed send releases the
flag for the next pass. Notification never undoes the created instance.
"""

import logging
import uuid
from datetime import datetime

from ..core.clock import local_date, require_aware
from ..core.errors import ConflictError, DataAccessFailure
from ..core.ports import ChecklistRepo, NotificationEvent, Notifier
from ..recurrence.models import ItemError, RecurrencePattern
from ..recurrence.rules import is_due_on
from .models import ChecklistTemplate, InstanceStatus, MaterializationReport, ScheduledWindowInstance
from .validator import resolve_window

logger = logging.getLogger(__name__)

CHECKLIST_UPCOMING = "checklist_upcoming"


def template_pattern(template: ChecklistTemplate) -> RecurrencePattern:
    if not template.scheduled_days:
        return RecurrencePattern.daily()
    return RecurrencePattern.weekly(template.scheduled_days)


def upcoming_dedupe_key(template: ChecklistTemplate, instance_id: int) -> str:
    return (
        f"{template.organization_id or 'no-org'}:{template.team_id or 'no-team'}:"
        f"{CHECKLIST_UPCOMING}:{template.id}:{instance_id}"
    )


def _maybe_notify_upcoming(
        repo: ChecklistRepo,
        notifier: Notifier,
        template: ChecklistTemplate,
        instance: ScheduledWindowInstance,
        now: datetime,
        lead_minutes: int,
        correlation_id: str,
) -> bool:
    if instance.status is not InstanceStatus.PENDING:
        return False
    if not template.recipient_ids or not instance.window_start:
        return False

    window = resolve_window(instance)
    if window is None:
        return False

    minutes_until_start = (window.start - now).total_seconds() / 60.0
    if not 0 < minutes_until_start <= lead_minutes:
        return False

    event = NotificationEvent(
        type=CHECKLIST_UPCOMING,
        occurrence_id=instance.id,
        organization_id=template.organization_id,
        dedupe_key=upcoming_dedupe_key(template, instance.id),
        payload={
            "checklistId": template.id,
            "checklistTitle": template.name,
            "teamId": template.team_id,
            "runId": instance.id,
            "startTime": window.start.isoformat(),
            "endTime": window.end.isoformat(),
            "minutesUntilStart": round(minutes_until_start),
        },
    )
    claimed = False
    try:
        claimed = repo.claim_upcoming_notice(instance.id)
        if not claimed:
            return False
        notifier.notify(list(template.recipient_ids), event)
    except Exception:
        logger.exception(
            "upcoming notification failed template=%s instance=%s correlation=%s",
            template.id,
            instance.id,
            correlation_id,
        )
        if claimed:
            try:
                repo.release_upcoming_notice(instance.id)
            except Exception:
                logger.exception("could not release upcoming notice instance=%s", instance.id)
        return False
    return True


def materialize_checklists(
        repo: ChecklistRepo,
        notifier: Notifier,
        *,
        now: datetime,
        upcoming_lead_minutes: int = 30,
) -> MaterializationReport:
    """
    Create today's instance for every active template that is scheduled today.

    Raises DataAccessFailure only if listing templates fails.
    """
    now = require_aware(now)
    report = MaterializationReport(correlation_id=str(uuid.uuid4()))
    cid = report.correlation_id

    try:
        templates = repo.list_active_templates()
    except Exception as exc:
        logger.exception("list_active_templates failed correlation=%s", cid)
        raise DataAccessFailure(f"failed to fetch checklist templates: {exc}") from exc

    logger.info("Checklist materializer started templates=%s correlation=%s", len(templates), cid)

    for template in templates:
        if not template.is_active:
            report.skipped_count += 1
            continue

        try:
            today = local_date(now, template.timezone)
            if not is_due_on(template_pattern(template), today):
                logger.debug("Template %s not scheduled on %s", template.id, today)
                report.skipped_count += 1
                continue

            try:
                instance_id = repo.create_instance(template, date=today, status=InstanceStatus.PENDING)
            except ConflictError:
                logger.debug("Instance already exists template=%s date=%s", template.id, today)
                report.skipped_count += 1
                existing = repo.find_instance(template.id, today)
                if existing is not None:
                    _maybe_notify_upcoming(repo, notifier, template, existing, now, upcoming_lead_minutes, cid)
                continue

            instance = ScheduledWindowInstance(
                id=instance_id,
                date=today,
                status=InstanceStatus.PENDING,
                window_start=template.window_start,
                window_end=template.window_end,
                timezone=template.timezone,
                template_id=template.id,
                organization_id=template.organization_id,
                team_id=template.team_id,
            )
        except Exception as exc:
            logger.exception("materialize failed template=%s correlation=%s", template.id, cid)
            report.errors.append(ItemError(id=template.id, message=str(exc)))
            continue

        report.created_count += 1
        logger.info("Created instance %s for template %s on %s correlation=%s", instance_id, template.id, today, cid)
        _maybe_notify_upcoming(repo, notifier, template, instance, now, upcoming_lead_minutes, cid)

    logger.info(
        "Checklist materializer finished created=%s skipped=%s errors=%s correlation=%s",
        report.created_count,
        report.skipped_count,
        len(report.errors),
        cid,
    )
    return report
