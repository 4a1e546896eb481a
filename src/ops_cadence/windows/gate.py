# src/ops_cadence/windows/gate.py

from __future__ import annotations

import logging

from ..core.errors import InstanceNotFound
from ..core.ports import Clock, WindowRepo
from .models import Action, Decision
from .validator import authorize

logger = logging.getLogger(__name__)


class ActionGate:
    """
    Authorization entry point for request handlers.

    Handlers pass only the instance id and the action; the instance is re-read from
    the repo and the instant comes from the injected server clock. There is no
    parameter through which a request can supply its own time.
    """

    def __init__(self, repo: WindowRepo, clock: Clock) -> None:
        self._repo = repo
        self._clock = clock

    def authorize(self, instance_id: int, action: Action | str) -> Decision:
        instance = self._repo.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFound(instance_id)

        decision = authorize(instance, action, self._clock.now(), repo=self._repo)
        logger.debug("authorize instance=%s action=%s -> %s", instance_id, action, decision)
        return decision
