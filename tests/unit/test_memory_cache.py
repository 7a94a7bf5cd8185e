"""
Unit Tests for MemoryCache

Expiry is tested with an injected clock, so nothing here sleeps.

Run with:
    pytest tests/unit/test_memory_cache.py -v
"""

import pytest

from storage.memory_cache import MemoryCache


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def evicted():
    return []


@pytest.fixture
def cache(clock, evicted):
    return MemoryCache(
        ttl=10,
        max_entries=3,
        clock=clock,
        on_evict=lambda key, value: evicted.append((key, value))
    )


class TestConstruction:

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError, match="ttl"):
            MemoryCache(ttl=0, max_entries=1)

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError, match="max_entries"):
            MemoryCache(ttl=1, max_entries=0)


class TestGetSet:
    """Tests for basic storage"""

    def test_get_missing_returns_none(self, cache):
        assert cache.get("BTCUSDT") is None

    def test_set_then_get(self, cache):
        cache.set("BTCUSDT", 42000.0)

        assert cache.get("BTCUSDT") == 42000.0
        assert "BTCUSDT" in cache
        assert len(cache) == 1

    def test_set_replaces_value(self, cache):
        cache.set("BTCUSDT", 1.0)
        cache.set("BTCUSDT", 2.0)

        assert cache.get("BTCUSDT") == 2.0
        assert len(cache) == 1

    def test_clear_does_not_fire_callback(self, cache, evicted):
        cache.set("A", 1)
        cache.set("B", 2)
        cache.clear()

        assert len(cache) == 0
        assert evicted == []


class TestExpiry:
    """Tests for TTL expiry"""

    def test_value_survives_until_ttl(self, cache, clock):
        cache.set("BTCUSDT", 1.0)
        clock.advance(9.9)

        assert cache.get("BTCUSDT") == 1.0

    def test_value_expires_at_ttl(self, cache, clock, evicted):
        cache.set("BTCUSDT", 1.0)
        clock.advance(10)

        assert cache.get("BTCUSDT") is None
        assert evicted == [("BTCUSDT", 1.0)]
        assert len(cache) == 0

    def test_set_resets_expiry(self, cache, clock):
        cache.set("BTCUSDT", 1.0)
        clock.advance(8)
        cache.set("BTCUSDT", 2.0)
        clock.advance(8)

        assert cache.get("BTCUSDT") == 2.0

    def test_get_does_not_extend_expiry(self, cache, clock):
        cache.set("BTCUSDT", 1.0)
        clock.advance(8)
        cache.get("BTCUSDT")
        clock.advance(3)

        assert cache.get("BTCUSDT") is None

    def test_purge_expired(self, cache, clock, evicted):
        cache.set("A", 1)
        clock.advance(5)
        cache.set("B", 2)
        clock.advance(6)

        assert cache.purge_expired() == 1
        assert evicted == [("A", 1)]
        assert len(cache) == 1
        assert cache.get("B") == 2


class TestLRUEviction:
    """Tests for capacity-based eviction"""

    def test_oldest_entry_evicted_when_full(self, cache, evicted):
        for key in ("A", "B", "C", "D"):
            cache.set(key, key.lower())

        assert cache.get("A") is None
        assert len(cache) == 3
        assert all(key in cache for key in ("B", "C", "D"))
        assert evicted == [("A", "a")]

    def test_get_marks_entry_as_recently_used(self, cache, evicted):
        cache.set("A", 1)
        cache.set("B", 2)
        cache.set("C", 3)
        cache.get("A")
        cache.set("D", 4)

        assert "A" in cache
        assert evicted == [("B", 2)]

    def test_rewrite_marks_entry_as_recently_used(self, cache, evicted):
        cache.set("A", 1)
        cache.set("B", 2)
        cache.set("C", 3)
        cache.set("A", 10)
        cache.set("D", 4)

        assert cache.get("A") == 10
        assert evicted == [("B", 2)]

    def test_no_callback_is_fine(self, clock):
        cache = MemoryCache(ttl=10, max_entries=1, clock=clock)
        cache.set("A", 1)
        cache.set("B", 2)

        assert len(cache) == 1
        assert cache.get("B") == 2
