from __future__ import annotations

import pytest
from jobpulse.cache import SearchCache, build_search_key

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_search_key_ignores_keyword_and_source_order() -> None:
    first = build_search_key(["react", "python"], ["jobicy", "remotive"], "7d")
    second = build_search_key(["python", "react"], ["remotive", "jobicy"], "7d")
    assert first == second
    assert first != build_search_key(["python", "react"], ["remotive", "jobicy"], "24h")


def test_entries_expire_after_ttl(make_listing) -> None:
    clock = FakeClock()
    cache = SearchCache(300, clock=clock)
    listing = make_listing()
    cache.put("key", [listing])

    clock.now += 299
    assert cache.get("key") == [listing]

    clock.now += 1
    assert cache.get("key") is None
    assert len(cache) == 0


def test_sweep_evicts_only_expired_entries(make_listing) -> None:
    clock = FakeClock()
    cache = SearchCache(60, clock=clock)
    cache.put("old", [make_listing()])
    clock.now += 30
    cache.put("new", [])
    clock.now += 40

    assert cache.sweep() == 1
    assert cache.get("old") is None
    assert cache.get("new") == []

    cache.clear()
    assert len(cache) == 0
