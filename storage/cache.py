"""
In-Memory TTL Cache

Time-based response cache that sits between the HTTP handlers and the market
data provider. Each entry remembers when it was stored; a read treats an entry
as absent once it is TTL milliseconds old or older. Stale entries are not
removed by reads, they are simply ignored until the key is written again.

Capacity:
    With ``max_entries=0`` (default) the store has no bound: a long-running
    process keeps one entry per distinct key it has ever served. Setting
    ``max_entries`` to a positive number evicts the least recently used entry
    when a write would exceed the bound.

Usage:
    cache = CacheStore(ttl_ms=300_000)

    quotes = cache.get("quotes_PBR")
    if quotes is None:
        quotes = cache.set("quotes_PBR", await fetch())
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from core.logging import log_cache_event


DEFAULT_TTL_MS = 300_000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float  # milliseconds, same clock as CacheStore.clock


class CacheStore:
    """
    Key-value store with per-entry freshness tracking and a fixed TTL.

    All access goes through a single lock, so get/set are atomic with respect
    to each other even when the store is used from worker threads.

    Attributes:
        ttl_ms: Entry time-to-live in milliseconds
        max_entries: Capacity bound for LRU eviction (0 = unbounded)
        clock: Callable returning the current time in milliseconds
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_entries: int = 0,
        clock: Optional[Callable[[], float]] = None
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        if max_entries < 0:
            raise ValueError(f"max_entries cannot be negative, got {max_entries}")

        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.clock = clock or _monotonic_ms
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at < self.ttl_ms

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value for ``key``, or None if absent or stale.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry, self.clock()):
                return None
            if self.max_entries:
                self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any) -> Any:
        """
        Store ``value`` under ``key``, replacing any previous entry.

        Returns:
            The stored value, unchanged, so callers can write
            ``return cache.set(key, normalize(raw))``.
        """
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self.clock())
            self._entries.move_to_end(key)
            if self.max_entries:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    log_cache_event("evict", evicted, f"max_entries={self.max_entries}")
        return value

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        """Entry counts and configuration, for the health endpoint."""
        with self._lock:
            now = self.clock()
            fresh = sum(1 for entry in self._entries.values() if self._is_fresh(entry, now))
            return {
                "entries": len(self._entries),
                "fresh_entries": fresh,
                "ttl_ms": self.ttl_ms,
                "max_entries": self.max_entries,
            }

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<CacheStore entries={len(self)} ttl_ms={self.ttl_ms} max_entries={self.max_entries}>"
