"""
Pytest Configuration and Fixtures for the Progress Engine Tests
===============================================================

Purpose
-------
Centralized fixtures for the progress engine test suite: injectable clocks,
cache and draft stores, an in-memory data source and a wired progress service.

Responsibilities
----------------
- Force the testing environment before anything reads configuration
- Deterministic clocks (millisecond cache clock, UTC wall clock)
- Store, data source and service factories
- Record builders for completed bites/missions

Architecture Notes
------------------
- Everything is in-process; the Redis data source is exercised against a
  mocked async client
- Fixtures are function-scoped so every test starts from a clean slate
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Iterable, List

import pytest
import pytest_asyncio

from progress_engine.core.cache.drafts import DraftStore
from progress_engine.core.cache.keys import CacheKeyPolicy
from progress_engine.core.cache.store import CacheStore
from progress_engine.domain.models.curriculum import bite_id, iter_mission_ids, parse_mission_id
from progress_engine.domain.models.progress import Bite, Mission
from progress_engine.modules.progress.data_source import InMemoryDataSource
from progress_engine.modules.progress.service import ProgressService

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"

    from progress_engine.core.config.config import Config

    Config.load()


# ============================================================================
# CLOCKS
# ============================================================================


class FakeMillisClock:
    """Manually advanced millisecond clock for the cache store."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeWallClock:
    """Manually advanced UTC clock for timestamps and retry expiry."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def ms_clock() -> FakeMillisClock:
    return FakeMillisClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc))


# ============================================================================
# STORES
# ============================================================================


@pytest.fixture
def cache(ms_clock) -> CacheStore:
    store = CacheStore(max_entries=0, clock=ms_clock, name="test-cache")
    yield store
    if not store.closed:
        store.close()


@pytest.fixture
def drafts(wall_clock) -> DraftStore:
    return DraftStore(clock=wall_clock)


@pytest.fixture
def policy() -> CacheKeyPolicy:
    return CacheKeyPolicy()


# ============================================================================
# RECORD BUILDERS
# ============================================================================


def completed_mission(identifier: str, checkpoint_passed: bool = True) -> Mission:
    """A mission whose five bites are all completed."""
    stage_number, mission_number = parse_mission_id(identifier)
    return Mission(
        stage_number,
        mission_number,
        tuple(
            Bite(
                bite_id(stage_number, mission_number, n),
                is_completed=True,
                checkpoint_passed=checkpoint_passed,
                attempts=1,
            )
            for n in range(1, 6)
        ),
    )


def completed_prefix(count: int) -> List[Mission]:
    """The first ``count`` missions of the curriculum, completed."""
    ids: Iterable[str] = list(iter_mission_ids())[:count]
    return [completed_mission(i) for i in ids]


@pytest.fixture
def make_completed_mission():
    return completed_mission


@pytest.fixture
def make_completed_prefix():
    return completed_prefix


# ============================================================================
# DATA SOURCE & SERVICE
# ============================================================================


@pytest.fixture
def data_source() -> InMemoryDataSource:
    return InMemoryDataSource(briefings={"S1M1": {"title": "Welcome", "objectives": ["Meet your party"]}})


@pytest_asyncio.fixture
async def service(data_source, cache, drafts, policy, wall_clock):
    async with ProgressService(
        data_source, cache=cache, drafts=drafts, policy=policy, clock=wall_clock
    ) as svc:
        yield svc
