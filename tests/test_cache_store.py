"""Tests for the TTL-class memory cache."""

import pytest

from cryptodash.services.cache_store import HISTORY, QUOTES, SERIES, CacheStore
from cryptodash.utils.config import CacheConfig, TTLClassConfig
from cryptodash.utils.event_store import CACHE_LOOKUP, EventStore


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def small_cache(timer):
    settings = CacheConfig(
        quotes=TTLClassConfig(maxsize=2, ttl=120),
        series=TTLClassConfig(maxsize=3, ttl=900),
        history=TTLClassConfig(maxsize=2, ttl=600),
    )
    return CacheStore(settings, timer=timer)


class TestCacheStore:
    """Tests for TTL classes, expiry and eviction."""

    def test_default_classes(self):
        cache = CacheStore(CacheConfig())
        stats = cache.stats()
        assert stats[QUOTES]["maxsize"] == 100 and stats[QUOTES]["ttl"] == 120
        assert stats[SERIES]["maxsize"] == 500 and stats[SERIES]["ttl"] == 900
        assert stats[HISTORY]["maxsize"] == 200 and stats[HISTORY]["ttl"] == 600

    def test_miss_then_hit(self, small_cache):
        assert small_cache.get(QUOTES, "k") is None
        small_cache.set(QUOTES, "k", [1, 2])
        assert small_cache.get(QUOTES, "k") == [1, 2]

    def test_classes_do_not_share_keys(self, small_cache):
        small_cache.set(SERIES, ("bitcoin", 1), "series")
        assert small_cache.get(HISTORY, ("bitcoin", 1)) is None
        assert small_cache.get(QUOTES, ("bitcoin", 1)) is None

    def test_entry_expires_after_ttl(self, small_cache, timer):
        small_cache.set(QUOTES, "k", "v")
        timer.now = 119
        assert small_cache.get(QUOTES, "k") == "v"
        timer.now = 121
        assert small_cache.get(QUOTES, "k") is None

    def test_ttls_are_independent(self, small_cache, timer):
        small_cache.set(QUOTES, "k", "quote")
        small_cache.set(SERIES, "k", "series")
        timer.now = 300
        assert small_cache.get(QUOTES, "k") is None
        assert small_cache.get(SERIES, "k") == "series"

    def test_overflow_evicts_least_recently_used(self, small_cache):
        small_cache.set(QUOTES, "a", 1)
        small_cache.set(QUOTES, "b", 2)
        assert small_cache.get(QUOTES, "a") == 1  # b is now least recently used
        small_cache.set(QUOTES, "c", 3)

        assert small_cache.get(QUOTES, "b") is None
        assert small_cache.get(QUOTES, "a") == 1
        assert small_cache.get(QUOTES, "c") == 3

    def test_overflow_in_one_class_leaves_others_alone(self, small_cache):
        small_cache.set(HISTORY, "h", "kept")
        for key in "abcd":
            small_cache.set(QUOTES, key, key)
        assert small_cache.get(HISTORY, "h") == "kept"

    def test_unknown_class_is_rejected(self, small_cache):
        with pytest.raises(KeyError, match="Unknown TTL class"):
            small_cache.get("prices", "k")

    def test_stats_count_hits_and_misses(self, small_cache):
        small_cache.get(SERIES, "x")
        small_cache.set(SERIES, "x", 1)
        small_cache.get(SERIES, "x")
        small_cache.get(SERIES, "x")
        stats = small_cache.stats()[SERIES]
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_lookups_are_recorded_as_events(self, timer):
        store = EventStore()
        cache = CacheStore(CacheConfig(), event_store=store, timer=timer)
        cache.get(QUOTES, "k")
        cache.set(QUOTES, "k", "v")
        cache.get(QUOTES, "k")

        events = store.get_events_by_type(CACHE_LOOKUP)
        assert [e.context["hit"] for e in events] == [False, True]

    def test_clear_single_class(self, small_cache):
        small_cache.set(QUOTES, "k", 1)
        small_cache.set(SERIES, "k", 2)
        small_cache.clear(QUOTES)
        assert small_cache.get(QUOTES, "k") is None
        assert small_cache.get(SERIES, "k") == 2
