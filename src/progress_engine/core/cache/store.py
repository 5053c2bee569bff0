"""
In-memory TTL cache store.

Purpose
-------
Generic ``key -> (value, stored_at)`` store with lazy TTL expiry and explicit
invalidation by exact key or key prefix. It fronts the remote data source so
reads render instantly while staying eventually consistent.

Responsibilities
----------------
- ``get(key, ttl_ms)``: value while ``now - stored_at < ttl_ms``, else absent
- ``set(key, value)``: overwrite and stamp the current time
- ``invalidate(key)`` / ``invalidate_scope(prefix)``
- Optional capacity bound with least-recently-written eviction
- Per-store metrics

Non-Responsibilities
--------------------
- Background sweeping: expiry is checked lazily on read, stale entries may
  linger until read, evicted or purged explicitly via ``purge_expired``
- Persistence across process restarts
- Knowing which keys depend on which entity (see ``cache.keys``)

Design Notes
------------
- An explicit instance owned by the caller; nothing is module-global.
- A single ``threading.RLock`` guards the map, so parallel prefetches from
  several threads serving the same learner are safe.
- ``OrderedDict`` keeps write order: rewriting a key moves it to the end,
  and eviction pops from the front. ``get`` does not reorder.
- Time comes from an injectable millisecond clock (monotonic by default).
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from progress_engine.core.cache.metrics import CacheMetrics
from progress_engine.core.config.config import Config
from progress_engine.core.exceptions import StoreClosedError
from progress_engine.core.logging.logger import get_logger

logger = get_logger(__name__)

MillisClock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached value and the instant it was written.

    Attributes
    ----------
    key : str
        Composite string key (e.g. ``"mission_S3M2"``)
    value : Any
        Cached payload (records are immutable, so sharing them is safe)
    stored_at : float
        Clock reading in milliseconds at write time
    """

    key: str
    value: Any
    stored_at: float

    def age_ms(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float, ttl_ms: float) -> bool:
        return now - self.stored_at < ttl_ms


class CacheStore:
    """
    Thread-safe TTL cache with prefix invalidation.

    Parameters
    ----------
    max_entries : Optional[int]
        Capacity bound; ``None`` reads ``Config.CACHE_MAX_ENTRIES``, and
        ``0`` means unbounded.
    clock : Optional[MillisClock]
        Millisecond clock, injectable for tests.
    name : str
        Label used in logs and errors.

    Examples
    --------
    >>> with CacheStore() as cache:
    ...     cache.set("mission_S1M1", mission)
    ...     cache.get("mission_S1M1", ttl_ms=120_000)
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        clock: Optional[MillisClock] = None,
        name: str = "cache",
    ) -> None:
        if max_entries is None:
            max_entries = Config.CACHE_MAX_ENTRIES
        if max_entries < 0:
            raise ValueError(f"max_entries must be non-negative, got {max_entries}")

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._clock: MillisClock = clock or monotonic_ms
        self._max_entries = max_entries
        self._closed = False
        self.name = name
        self.metrics = CacheMetrics()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Drop every entry and refuse further use."""
        with self._lock:
            if self._closed:
                return
            dropped = len(self._entries)
            self._entries.clear()
            self._closed = True
        logger.debug("Cache store closed", extra={"store": self.name, "dropped": dropped})

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise StoreClosedError(self.name, operation)

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    def get(self, key: str, ttl_ms: float) -> Optional[Any]:
        """
        Return the cached value if it is younger than ``ttl_ms``.

        An entry whose age equals the TTL is already expired. Expired entries
        are removed as they are read.
        """
        if ttl_ms < 0:
            raise ValueError(f"ttl_ms must be non-negative, got {ttl_ms}")

        with self._lock:
            self._ensure_open("get")
            entry = self._entries.get(key)
            if entry is None:
                self.metrics.record_miss()
                return None

            if not entry.is_fresh(self._clock(), ttl_ms):
                del self._entries[key]
                self.metrics.record_expiration()
                self.metrics.record_miss()
                return None

            self.metrics.record_hit()
            return entry.value

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Raw entry regardless of age; does not touch metrics."""
        with self._lock:
            self._ensure_open("peek")
            return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, stamping the current time."""
        if value is None:
            raise ValueError("None cannot be cached; invalidate the key instead")

        with self._lock:
            self._ensure_open("set")
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
            self._entries.move_to_end(key)
            self.metrics.record_set()

            if self._max_entries:
                while len(self._entries) > self._max_entries:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self.metrics.record_eviction()
                    logger.debug(
                        "Cache capacity eviction",
                        extra={"store": self.name, "key": evicted_key},
                    )

    # =========================================================================
    # INVALIDATION
    # =========================================================================

    def invalidate(self, key: str) -> bool:
        """Remove a single entry; returns whether it existed."""
        with self._lock:
            self._ensure_open("invalidate")
            removed = self._entries.pop(key, None) is not None
            if removed:
                self.metrics.record_invalidation()
            return removed

    def invalidate_scope(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``; returns the count."""
        if not prefix:
            raise ValueError("invalidate_scope requires a non-empty prefix")

        with self._lock:
            self._ensure_open("invalidate_scope")
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            if doomed:
                self.metrics.record_invalidation(len(doomed))
            return len(doomed)

    def purge_expired(self, ttl_for_key: Callable[[str], float]) -> int:
        """
        Maintenance sweep: drop entries that are expired under ``ttl_for_key``.

        Never called by the store itself; callers run it when they want to
        reclaim memory from entries nobody reads any more.
        """
        with self._lock:
            self._ensure_open("purge_expired")
            now = self._clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if not entry.is_fresh(now, ttl_for_key(key))
            ]
            for key in expired:
                del self._entries[key]
                self.metrics.record_expiration()
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._ensure_open("clear")
            self._entries.clear()

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def keys(self) -> List[str]:
        """Keys in write order (oldest first), including not-yet-purged stale ones."""
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
