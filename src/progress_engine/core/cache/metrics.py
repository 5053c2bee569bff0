"""
Cache metrics tracking for the in-memory cache store.

Purpose
-------
Provides thread-safe counters for cache operations and derived indicators
(hit rate, total operations) for observability.

Responsibilities
----------------
- Count hits, misses, sets, invalidations, capacity evictions and lazy expirations
- Derive hit rate and health status on demand
- Reset counters for tests and monitoring cycles

Non-Responsibilities
--------------------
- Cache storage or retrieval (handled by ``CacheStore``)
- Logging operations (handled by logger)

Architecture Notes
------------------
- One metrics instance per store, so separate stores never share counters
- Guarded by a ``threading.Lock``; every update is O(1)
"""

from __future__ import annotations

import threading
from typing import Any, Dict


class CacheMetrics:
    """
    Thread-safe cache performance metrics tracker.

    Example
    -------
    >>> metrics = CacheMetrics()
    >>> metrics.record_hit()
    >>> metrics.snapshot()["hits"]
    1
    """

    _COUNTERS = (
        "hits",
        "misses",
        "sets",
        "invalidations",
        "evictions",
        "expirations",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in self._COUNTERS}

    def _increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def record_hit(self) -> None:
        self._increment("hits")

    def record_miss(self) -> None:
        self._increment("misses")

    def record_set(self) -> None:
        self._increment("sets")

    def record_invalidation(self, count: int = 1) -> None:
        self._increment("invalidations", count)

    def record_eviction(self) -> None:
        self._increment("evictions")

    def record_expiration(self) -> None:
        self._increment("expirations")

    def hit_rate(self) -> float:
        """
        Cache hit rate percentage (0-100); 0.0 when no reads were recorded.
        """
        with self._lock:
            total = self._counters["hits"] + self._counters["misses"]
            if total == 0:
                return 0.0
            return self._counters["hits"] / total * 100

    def snapshot(self) -> Dict[str, Any]:
        """
        Raw counters plus derived metrics.

        Returns
        -------
        Dict[str, Any]
            Counters, ``hit_rate`` (rounded to 2 decimals) and ``total_operations``.
        """
        with self._lock:
            data: Dict[str, Any] = dict(self._counters)
        total_gets = data["hits"] + data["misses"]
        data["hit_rate"] = round(data["hits"] / total_gets * 100, 2) if total_gets else 0.0
        data["total_operations"] = total_gets + data["sets"]
        return data

    def is_healthy(self, min_hit_rate: float) -> bool:
        """Healthy until enough reads happened to judge, then hit rate must reach the floor."""
        with self._lock:
            total = self._counters["hits"] + self._counters["misses"]
            hits = self._counters["hits"]
        if total < 20:
            return True
        return hits / total * 100 >= min_hit_rate

    def reset(self) -> None:
        with self._lock:
            self._counters = {name: 0 for name in self._COUNTERS}
