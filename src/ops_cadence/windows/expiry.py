# src/ops_cadence/windows/expiry.py

from __future__ import annotations

import logging

from ..core.ports import WindowRepo
from .models import InstanceStatus, ScheduledWindowInstance

logger = logging.getLogger(__name__)


def expire_if_needed(instance: ScheduledWindowInstance, repo: WindowRepo) -> None:
    """
    Move an instance whose window has passed to `expired`.

    Safe to call repeatedly (e.g. two concurrent validations): an instance that is
    already expired is left alone, and repo.set_instance_status is itself idempotent.
    """
    if instance.status is InstanceStatus.EXPIRED:
        return

    repo.set_instance_status(instance.id, InstanceStatus.EXPIRED)
    logger.info("Instance %s -> expired (was %s)", instance.id, instance.status.value)
