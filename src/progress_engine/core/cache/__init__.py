"""
Cache infrastructure: TTL store, key/TTL policy, drafts and metrics.
"""

from progress_engine.core.cache.drafts import Draft, DraftStore
from progress_engine.core.cache.keys import (
    DEFAULT_TTLS_MS,
    KEY_TEMPLATES,
    CacheKeyPolicy,
    EntityKind,
    InvalidationPlan,
    cache_key,
    dependent_scopes,
    kind_for_key,
)
from progress_engine.core.cache.metrics import CacheMetrics
from progress_engine.core.cache.store import CacheEntry, CacheStore, monotonic_ms

__all__ = [
    "CacheEntry",
    "CacheStore",
    "CacheMetrics",
    "CacheKeyPolicy",
    "EntityKind",
    "InvalidationPlan",
    "KEY_TEMPLATES",
    "DEFAULT_TTLS_MS",
    "cache_key",
    "dependent_scopes",
    "kind_for_key",
    "monotonic_ms",
    "Draft",
    "DraftStore",
]
