"""Memory cache partitioned into named TTL classes."""

import time
from collections import defaultdict
from typing import Any, Callable, Hashable

from cachetools import TTLCache

from cryptodash.utils.config import CacheConfig, config
from cryptodash.utils.event_store import CACHE_LOOKUP, EventStore
from cryptodash.utils.logger import StructuredLogger

QUOTES = "quotes"
SERIES = "series"
HISTORY = "history"


class CacheStore:
    """
    Keyed, TTL-bounded store with independent TTL classes.

    Each class is its own TTLCache: entries expire ``ttl`` seconds after
    insertion and the least recently used entry is evicted once ``maxsize`` is
    reached. Classes never share keys or eviction state. Expired entries are
    dropped lazily when the cache is touched, not by a background sweep.
    """

    def __init__(
        self,
        settings: CacheConfig | None = None,
        event_store: EventStore | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        settings = settings or config.cache
        self._classes: dict[str, TTLCache] = {
            name: TTLCache(maxsize=ttl_class.maxsize, ttl=ttl_class.ttl, timer=timer)
            for name, ttl_class in settings.classes().items()
        }
        self._hits: dict[str, int] = defaultdict(int)
        self._misses: dict[str, int] = defaultdict(int)
        self.event_store = event_store
        self.logger = StructuredLogger("CacheStore")

    @property
    def class_names(self) -> list[str]:
        return list(self._classes)

    def _partition(self, ttl_class: str) -> TTLCache:
        try:
            return self._classes[ttl_class]
        except KeyError:
            raise KeyError(f"Unknown TTL class: {ttl_class}") from None

    def get(self, ttl_class: str, key: Hashable) -> Any | None:
        """
        Look up a key within one TTL class.

        Returns:
            The cached value, or None when the key is absent or expired
        """
        value = self._partition(ttl_class).get(key)
        hit = value is not None
        if hit:
            self._hits[ttl_class] += 1
            self.logger.debug("Memory cache hit", context={"ttl_class": ttl_class, "key": str(key)})
        else:
            self._misses[ttl_class] += 1
        if self.event_store is not None:
            self.event_store.add_event(
                event_type=CACHE_LOOKUP,
                component="CacheStore",
                message=f"{ttl_class} lookup",
                context={"ttl_class": ttl_class, "hit": hit},
            )
        return value

    def set(self, ttl_class: str, key: Hashable, value: Any) -> None:
        self._partition(ttl_class)[key] = value

    def clear(self, ttl_class: str | None = None) -> None:
        """Drop every entry of one class, or of all classes."""
        names = [ttl_class] if ttl_class else self.class_names
        for name in names:
            self._partition(name).clear()

    def stats(self) -> dict[str, dict[str, Any]]:
        """Per-class size, capacity, TTL and hit/miss counters."""
        return {
            name: {
                "size": cache.currsize,
                "maxsize": cache.maxsize,
                "ttl": cache.ttl,
                "hits": self._hits[name],
                "misses": self._misses[name],
            }
            for name, cache in self._classes.items()
        }
