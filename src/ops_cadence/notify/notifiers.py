# src/ops_cadence/notify/notifiers.py

from __future__ import annotations

import logging

from ..core.ports import NotificationEvent, Notifier
from ..core.request_cache import RequestCache

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """
    Default sink: records the event in the log.

    Real delivery (in-app rows, email, push) lives outside the engine; wire a
    different Notifier in cli/bootstrap.py to use it.
    """

    def notify(self, user_ids: list[str], event: NotificationEvent) -> None:
        if not user_ids:
            return
        logger.info(
            "notify type=%s occurrence=%s org=%s users=%s",
            event.type,
            event.occurrence_id,
            event.organization_id,
            ",".join(user_ids),
        )


class DedupingNotifier:
    """
    Wraps a Notifier and drops repeats of the same (recipients, event) within the cache TTL.

    The key is the event's dedupe_key when present, otherwise (type, occurrence_id).
    If the inner call raises, the key is forgotten so the next attempt can go through.
    """

    def __init__(self, inner: Notifier, cache: RequestCache) -> None:
        self._inner = inner
        self._cache = cache

    @staticmethod
    def signature(user_ids: list[str], event: NotificationEvent) -> tuple[object, ...]:
        ident: object = event.dedupe_key or (event.type, event.occurrence_id)
        return (tuple(sorted(user_ids)), ident)

    def notify(self, user_ids: list[str], event: NotificationEvent) -> None:
        key = self.signature(user_ids, event)
        if not self._cache.check_and_add(key):
            logger.debug("notify deduped key=%s", key)
            return
        try:
            self._inner.notify(user_ids, event)
        except Exception:
            self._cache.forget(key)
            raise
