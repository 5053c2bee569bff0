"""
GPS Lab progress and reward engine.

Computes curriculum progress roll-ups, retry rights and tiered rewards for the
Adventure → Stage → Mission → Bite hierarchy, fronted by a TTL cache with
scope-based invalidation and local draft reconciliation.

Layers
------
- ``progress_engine.core``: configuration, logging, infrastructure errors, cache
- ``progress_engine.domain``: curriculum table and rich domain models
- ``progress_engine.modules``: reward tables/calculator and the progress service
"""

__version__ = "1.0.0"
