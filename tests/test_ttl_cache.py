"""In-process TTL cache tests."""

import pytest

from sift.ttl_cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_get_returns_stored_value(clock):
    cache: TTLCache[str] = TTLCache(max_entries=4, ttl_seconds=10, clock=clock)
    cache.set("a", "alpha")

    assert cache.get("a") == "alpha"


def test_missing_key_returns_none(clock):
    cache: TTLCache[str] = TTLCache(max_entries=4, ttl_seconds=10, clock=clock)

    assert cache.get("missing") is None


def test_entries_expire_after_ttl(clock):
    cache: TTLCache[str] = TTLCache(max_entries=4, ttl_seconds=10, clock=clock)
    cache.set("a", "alpha")

    clock.now = 9.9
    assert cache.get("a") == "alpha"

    clock.now = 10.0
    assert cache.get("a") is None


def test_per_entry_ttl_overrides_default(clock):
    cache: TTLCache[str] = TTLCache(max_entries=4, ttl_seconds=10, clock=clock)
    cache.set("short", "s", ttl_seconds=1)
    cache.set("long", "l")

    clock.now = 5

    assert cache.get("short") is None
    assert cache.get("long") == "l"


def test_least_recently_used_entry_evicted(clock):
    cache: TTLCache[int] = TTLCache(max_entries=2, ttl_seconds=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")  # a is now most recently used

    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        TTLCache(max_entries=0, ttl_seconds=10)


def test_instances_do_not_share_state(clock):
    first: TTLCache[int] = TTLCache(max_entries=2, ttl_seconds=10, clock=clock)
    second: TTLCache[int] = TTLCache(max_entries=2, ttl_seconds=10, clock=clock)

    first.set("a", 1)

    assert second.get("a") is None
