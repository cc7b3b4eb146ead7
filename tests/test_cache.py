"""
Tests for the TTL cache.
"""

import pytest

from zaruka.utils.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1_000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_entries_expire(clock):
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("English", ["one moment"])

    clock.now += 59
    assert cache.get("English") == ["one moment"]
    assert "English" in cache

    clock.now += 1
    assert cache.get("English") is None
    assert "English" not in cache
    assert len(cache) == 0


def test_set_resets_lifetime(clock):
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", 1)
    clock.now += 8
    cache.set("k", 2)
    clock.now += 8

    assert cache.get("k") == 2


def test_pop_and_clear(clock):
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.pop("a") == 1
    assert cache.pop("a", "gone") == "gone"
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_stored_falsy_values_are_found(clock):
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("empty", [])

    assert "empty" in cache


def test_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0)
