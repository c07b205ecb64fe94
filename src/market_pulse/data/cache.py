"""Bounded, time-limited memoisation of upstream fetch results."""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from market_pulse.utils import now_ms

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

HISTORY_TTL_SECONDS = 5 * 60
FEED_TTL_SECONDS = 15 * 60


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Cached payload stamped with its fetch time in epoch milliseconds."""

    data: T
    timestamp: int


def make_key(*parts: object) -> str:
    """Join key parts as ``"<symbol>-<range>"`` or ``"<kind>-<channel>-<limit>"``."""

    return "-".join(str(part) for part in parts)


class TTLCache(Generic[T]):
    """LRU map whose entries are only served while younger than ``ttl_seconds``.

    Stale entries are not evicted eagerly; they stay until a ``put`` replaces them or the
    capacity bound pushes them out.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        capacity: int = 256,
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ttl_ms = int(ttl_seconds * 1000)
        self._capacity = capacity
        self._clock = clock
        self._logger = logger or LOGGER
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def get(self, key: str) -> T | None:
        """Return the cached value if it is still fresh."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self._ttl_ms:
            return None
        self._entries.move_to_end(key)
        return entry.data

    def entry(self, key: str) -> CacheEntry[T] | None:
        """Return the raw entry regardless of freshness."""

        return self._entries.get(key)

    def put(self, key: str, data: T) -> CacheEntry[T]:
        entry = CacheEntry(data=data, timestamp=self._clock())
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._logger.debug("Evicted cache entry %s", evicted)
        return entry

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheEntry", "FEED_TTL_SECONDS", "HISTORY_TTL_SECONDS", "TTLCache", "make_key"]
