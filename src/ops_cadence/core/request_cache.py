# src/ops_cadence/core/request_cache.py

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)


class RequestCache:
    """
    Injectable "seen recently" cache keyed by a request signature.

    Used to avoid repeating identical outbound calls (e.g. the same notification
    for the same occurrence) within ttl_seconds. There is no process-wide instance:
    whoever needs deduplication gets one injected.

    Thread-safety:
    - a single lock guards the dict; entries are pruned lazily on access
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 4096,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._max_entries = max(1, int(max_entries))
        self._expires: dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._expires)

    def _prune(self, now: float) -> None:
        stale = [k for k, exp in self._expires.items() if exp <= now]
        for k in stale:
            del self._expires[k]

    def check_and_add(self, key: Hashable) -> bool:
        """
        Return True if key was NOT seen within the TTL (caller should proceed),
        False if it is a duplicate. The key is recorded either way only on first sight.
        """
        now = self._clock()
        with self._lock:
            exp = self._expires.get(key)
            if exp is not None and exp > now:
                return False

            if len(self._expires) >= self._max_entries:
                self._prune(now)
                if len(self._expires) >= self._max_entries:
                    # Drop the entry closest to expiry.
                    oldest = min(self._expires, key=self._expires.__getitem__)
                    del self._expires[oldest]

            self._expires[key] = now + self._ttl
            return True

    def forget(self, key: Hashable) -> None:
        """Allow an immediate retry of key (e.g. after the guarded call failed)."""
        with self._lock:
            self._expires.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._expires.clear()
        logger.debug("RequestCache cleared")
