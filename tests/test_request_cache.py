# tests/test_request_cache.py

from __future__ import annotations

import pytest

from ops_cadence.core.request_cache import RequestCache


class _Ticker:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def test_duplicate_within_ttl_then_allowed_after() -> None:
    tick = _Ticker()
    cache = RequestCache(10.0, clock=tick)

    assert cache.check_and_add("a") is True
    assert cache.check_and_add("a") is False

    tick.t = 9.9
    assert cache.check_and_add("a") is False

    tick.t = 10.0
    assert cache.check_and_add("a") is True


def test_forget_allows_immediate_retry() -> None:
    cache = RequestCache(60.0, clock=_Ticker())
    assert cache.check_and_add(("u1", "k"))
    cache.forget(("u1", "k"))
    assert cache.check_and_add(("u1", "k"))


def test_len_prunes_expired_and_clear_empties() -> None:
    tick = _Ticker()
    cache = RequestCache(5.0, clock=tick)
    cache.check_and_add("a")
    tick.t = 3.0
    cache.check_and_add("b")
    assert len(cache) == 2

    tick.t = 6.0
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_max_entries_evicts_soonest_to_expire() -> None:
    tick = _Ticker()
    cache = RequestCache(100.0, clock=tick, max_entries=2)
    cache.check_and_add("a")
    tick.t = 1.0
    cache.check_and_add("b")
    tick.t = 2.0
    cache.check_and_add("c")

    assert len(cache) == 2
    # "a" was evicted, "b" is still remembered.
    assert cache.check_and_add("b") is False
    assert cache.check_and_add("a") is True


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RequestCache(0)
