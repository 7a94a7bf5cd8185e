"""
In-Memory Cache

Bounded TTL + LRU cache used for the realtime price and candle snapshots.

- Entries expire `ttl` seconds after they were last written.
- When `max_entries` is reached, the least recently used entry is evicted.
- The clock is injected (defaults to time.monotonic) so expiry can be tested
  without sleeping.
- An optional `on_evict(key, value)` callback fires for expired and evicted
  entries, which lets owners release resources tied to a key.

Not thread-safe; meant to be used from the asyncio event loop.
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar


V = TypeVar("V")


class MemoryCache(Generic[V]):
    """
    Bounded in-memory TTL cache.

    Example:
        >>> cache = MemoryCache(ttl=60, max_entries=2)
        >>> cache.set("BTCUSDT", 42000.0)
        >>> cache.get("BTCUSDT")
        42000.0
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Optional[Callable[[Hashable, V], None]] = None
    ):
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")

        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._on_evict = on_evict
        self._store: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[V]:
        """Return the cached value, or None if missing or expired."""
        item = self._store.get(key)
        if item is None:
            return None

        expires_at, value = item
        if expires_at <= self._clock():
            self._evict(key)
            return None

        self._store.move_to_end(key)
        return value

    def set(self, key: Hashable, value: V) -> None:
        """Insert or replace a value and reset its expiry."""
        if key in self._store:
            self._store.move_to_end(key)
        self._store[key] = (self._clock() + self.ttl, value)

        while len(self._store) > self.max_entries:
            oldest = next(iter(self._store))
            self._evict(oldest)

    def purge_expired(self) -> int:
        """Drop all expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._store.items() if expires_at <= now]
        for key in expired:
            self._evict(key)
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._store)

    def _evict(self, key: Hashable) -> None:
        _, value = self._store.pop(key)
        if self._on_evict is not None:
            self._on_evict(key, value)
