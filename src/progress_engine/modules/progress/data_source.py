"""
Data-source collaborators for the progress service.

Purpose
-------
Define the boundary between the engine and the authoritative store of
learner progress, and ship two implementations of it.

Responsibilities
----------------
- ``ProgressDataSource`` protocol: ``fetch(kind, id)`` and
  ``persist(kind, id, change)``
- ``EntityChange`` mutation description and the pure ``apply_change``
  function every implementation shares
- ``InMemoryDataSource``: reference implementation used by tests and embeds
- ``RedisDataSource``: one JSON document per mission under a learner
  namespace, via ``redis.asyncio``

Non-Responsibilities
--------------------
- Caching, lock checks and retry gating (the service does those)
- Transport-level retries: failures propagate unchanged

Design Notes
------------
- Missions are the unit of storage. Bites, stages and adventures are
  assembled from mission documents on fetch.
- Any id inside the curriculum is known; a learner with no stored document
  for it sees a fresh record. Ids outside the curriculum raise
  ``NotFoundError``.
- Mission briefings are opaque mappings keyed by mission id and are not
  learner-specific.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from progress_engine.core.cache.keys import EntityKind
from progress_engine.core.config.config import Config
from progress_engine.core.exceptions import CorruptRecordError
from progress_engine.core.logging.logger import get_logger
from progress_engine.domain.models.base import DomainValidationError, utc_now
from progress_engine.domain.models.curriculum import (
    MISSIONS_PER_STAGE,
    adventure_info,
    iter_mission_ids,
    mission_id as make_mission_id,
    mission_of_bite,
    parse_bite_id,
    parse_mission_id,
    validate_stage_number,
)
from progress_engine.domain.models.progress import Adventure, Bite, Mission, Stage
from progress_engine.domain.models.retry import RetryState
from progress_engine.modules.shared.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)

BITE_ACTIONS = frozenset({"start", "pause", "resume", "submit", "complete"})
MISSION_ACTIONS = frozenset({"update_retry"})


# ============================================================================
# CHANGE DESCRIPTION
# ============================================================================


@dataclass(frozen=True)
class EntityChange:
    """
    A mutation request for one bite or mission.

    Attributes
    ----------
    action : str
        Bite: ``start``, ``pause``, ``resume``, ``submit``, ``complete``.
        Mission: ``update_retry``.
    payload : Mapping[str, Any]
        Action arguments (``checkpoint_passed`` for submit/complete, ``retry``
        for update_retry)
    at : datetime
        When the change happened (UTC); stamps ``started_at``/``completed_at``
    """

    action: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=utc_now)


def _apply_bite_change(bite: Bite, change: EntityChange) -> Bite:
    action = change.action
    payload = change.payload
    started_at = bite.started_at or change.at

    if action == "start":
        if bite.is_completed:
            raise InvalidTransitionError("start", "completed", f"bite {bite.bite_id} is already complete")
        return replace(bite, started_at=started_at, is_paused=False)

    if action == "pause":
        if bite.is_completed:
            raise InvalidTransitionError("pause", "completed", f"bite {bite.bite_id} is already complete")
        if not bite.has_started:
            raise InvalidTransitionError("pause", "not_started", f"bite {bite.bite_id} was never started")
        return replace(bite, is_paused=True)

    if action == "resume":
        if not bite.is_paused:
            raise InvalidTransitionError("resume", "active", f"bite {bite.bite_id} is not paused")
        return replace(bite, is_paused=False)

    if action == "submit":
        passed = bool(payload.get("checkpoint_passed", False))
        return replace(
            bite,
            attempts=bite.attempts + 1,
            checkpoint_passed=bite.checkpoint_passed or passed,
            started_at=started_at,
            is_paused=False,
        )

    # complete: never undone, so re-completing keeps the original timestamp
    passed = bool(payload.get("checkpoint_passed", True))
    return replace(
        bite,
        is_completed=True,
        checkpoint_passed=bite.checkpoint_passed or passed,
        started_at=started_at,
        completed_at=bite.completed_at or change.at,
        is_paused=False,
    )


def _apply_mission_change(mission: Mission, change: EntityChange) -> Mission:
    retry = change.payload.get("retry")
    if isinstance(retry, RetryState):
        return mission.with_retry(retry)
    if isinstance(retry, Mapping):
        return mission.with_retry(RetryState.from_dict(retry))
    raise ValidationError("retry", "update_retry requires a RetryState or mapping payload")


def apply_change(kind: EntityKind, mission: Mission, identifier: str, change: EntityChange) -> Mission:
    """
    Apply ``change`` to the mission that owns ``identifier``.

    Pure: returns the updated mission and never touches storage.

    Raises
    ------
    ValidationError
        Unknown action for the entity kind, or a malformed payload.
    InvalidTransitionError
        The action does not apply to the bite's current state.
    """
    kind = EntityKind(kind)
    if kind is EntityKind.BITE:
        if change.action not in BITE_ACTIONS:
            raise ValidationError("action", f"unknown bite action {change.action!r}")
        bite_number = parse_bite_id(identifier)[2]
        return mission.with_bite(_apply_bite_change(mission.bite(bite_number), change))

    if kind is EntityKind.MISSION:
        if change.action not in MISSION_ACTIONS:
            raise ValidationError("action", f"unknown mission action {change.action!r}")
        return _apply_mission_change(mission, change)

    raise ValidationError("kind", f"{kind.value} entities are not mutable")


def entity_for(kind: EntityKind, identifier: str, mission: Mission) -> Any:
    """The bite or mission a persisted change returns."""
    if EntityKind(kind) is EntityKind.BITE:
        return mission.bite(parse_bite_id(identifier)[2])
    return mission


# ============================================================================
# PROTOCOL
# ============================================================================


@runtime_checkable
class ProgressDataSource(Protocol):
    """Authoritative store the progress service reads through and writes to."""

    async def fetch(self, kind: EntityKind, identifier: str) -> Any:
        ...

    async def persist(self, kind: EntityKind, identifier: str, change: EntityChange) -> Any:
        ...


def _owning_mission_id(kind: EntityKind, identifier: str) -> str:
    """Mission id that stores ``identifier``; ids outside the curriculum are not found."""
    try:
        if kind is EntityKind.BITE:
            return mission_of_bite(identifier)
        return make_mission_id(*parse_mission_id(identifier))
    except ValidationError as e:
        raise NotFoundError(kind.value.title().replace("_", ""), identifier) from e


def _stage_number(identifier: Any) -> int:
    try:
        number = int(identifier)
        validate_stage_number(number)
    except (TypeError, ValueError, ValidationError) as e:
        raise NotFoundError("Stage", identifier) from e
    return number


def _adventure_number(identifier: Any) -> int:
    try:
        number = int(identifier)
        adventure_info(number)
    except (TypeError, ValueError, ValidationError) as e:
        raise NotFoundError("Adventure", identifier) from e
    return number


class _MissionDocumentSource(ABC):
    """
    Shared fetch/persist logic over a mission-document store.

    Subclasses implement ``_load_missions``, ``_save_mission`` and ``_load_briefing``.
    """

    @abstractmethod
    async def _load_missions(self, mission_ids: List[str]) -> Dict[str, Mission]:
        """Missions keyed by id; ids with no stored document map to a fresh record."""

    @abstractmethod
    async def _save_mission(self, mission: Mission) -> None:
        ...

    @abstractmethod
    async def _load_briefing(self, mission_id: str) -> Optional[Mapping[str, Any]]:
        ...

    async def _mission(self, mission_id: str) -> Mission:
        return (await self._load_missions([mission_id]))[mission_id]

    async def fetch(self, kind: EntityKind, identifier: Any) -> Any:
        kind = EntityKind(kind)

        if kind in (EntityKind.BITE, EntityKind.BITE_LIST, EntityKind.MISSION):
            lookup_kind = EntityKind.BITE if kind is EntityKind.BITE else EntityKind.MISSION
            mission = await self._mission(_owning_mission_id(lookup_kind, str(identifier)))
            if kind is EntityKind.BITE:
                return entity_for(kind, str(identifier), mission)
            if kind is EntityKind.BITE_LIST:
                return mission.bites
            return mission

        if kind is EntityKind.MISSION_BRIEFING:
            mission_id = _owning_mission_id(EntityKind.MISSION, str(identifier))
            briefing = await self._load_briefing(mission_id)
            if briefing is None:
                raise NotFoundError("MissionBriefing", mission_id)
            return dict(briefing)

        if kind in (EntityKind.STAGE, EntityKind.STAGE_MISSIONS):
            stage_number = _stage_number(identifier)
            ids = [make_mission_id(stage_number, n) for n in range(1, MISSIONS_PER_STAGE + 1)]
            missions = await self._load_missions(ids)
            stage = Stage(stage_number, tuple(missions[i] for i in ids))
            return stage if kind is EntityKind.STAGE else stage.missions

        if kind in (EntityKind.ADVENTURE, EntityKind.ADVENTURE_MISSIONS):
            info = adventure_info(_adventure_number(identifier))
            ids = [make_mission_id(s, n) for s in info.stages for n in range(1, MISSIONS_PER_STAGE + 1)]
            missions = await self._load_missions(ids)
            adventure = Adventure(
                info.number,
                tuple(
                    Stage(s, tuple(missions[make_mission_id(s, n)] for n in range(1, MISSIONS_PER_STAGE + 1)))
                    for s in info.stages
                ),
            )
            return adventure if kind is EntityKind.ADVENTURE else tuple(adventure.iter_missions())

        raise ValidationError("kind", f"{kind.value} is not served by the data source")

    async def persist(self, kind: EntityKind, identifier: str, change: EntityChange) -> Any:
        kind = EntityKind(kind)
        if kind not in (EntityKind.BITE, EntityKind.MISSION):
            raise ValidationError("kind", f"{kind.value} entities are not mutable")
        mission = await self._mission(_owning_mission_id(kind, identifier))
        updated = apply_change(kind, mission, identifier, change)
        await self._save_mission(updated)
        logger.debug(
            "Change persisted",
            extra={"kind": kind.value, "identifier": identifier, "action": change.action},
        )
        return entity_for(kind, identifier, updated)


# ============================================================================
# IN-MEMORY
# ============================================================================


class InMemoryDataSource(_MissionDocumentSource):
    """
    Process-local data source.

    Parameters
    ----------
    missions : Iterable[Mission]
        Seed records; every other mission starts fresh
    briefings : Optional[Mapping[str, Mapping[str, Any]]]
        Briefing content keyed by mission id

    Example
    -------
    >>> source = InMemoryDataSource([Mission.empty("S1M1")])
    >>> mission = await source.fetch(EntityKind.MISSION, "S1M1")
    """

    def __init__(
        self,
        missions: Iterable[Mission] = (),
        briefings: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        self._missions: Dict[str, Mission] = {m.mission_id: m for m in missions}
        self._briefings: Dict[str, Mapping[str, Any]] = dict(briefings or {})
        self._lock = asyncio.Lock()

    async def _load_missions(self, mission_ids: List[str]) -> Dict[str, Mission]:
        return {i: self._missions.get(i) or Mission.empty(i) for i in mission_ids}

    async def _save_mission(self, mission: Mission) -> None:
        self._missions[mission.mission_id] = mission

    async def _load_briefing(self, mission_id: str) -> Optional[Mapping[str, Any]]:
        return self._briefings.get(mission_id)

    async def persist(self, kind: EntityKind, identifier: str, change: EntityChange) -> Any:
        async with self._lock:
            return await super().persist(kind, identifier, change)

    def seed(self, missions: Iterable[Mission]) -> None:
        for mission in missions:
            self._missions[mission.mission_id] = mission

    def snapshot(self) -> Tuple[Mission, ...]:
        """Every mission in curriculum order, fresh ones included."""
        return tuple(self._missions.get(i) or Mission.empty(i) for i in iter_mission_ids())


# ============================================================================
# REDIS
# ============================================================================


class RedisDataSource(_MissionDocumentSource):
    """
    Redis-backed data source: one JSON mission document per key.

    Keys
    ----
    - ``{prefix}:{learner_id}:mission:{mission_id}``  learner's mission document
    - ``{prefix}:briefing:{mission_id}``              shared briefing document

    Parameters
    ----------
    client : redis.asyncio.Redis
        Client created with ``decode_responses=True``
    learner_id : str
        Namespace for the learner's documents
    key_prefix : Optional[str]
        Defaults to ``Config.REDIS_KEY_PREFIX``
    """

    def __init__(self, client: AsyncRedis, learner_id: str, key_prefix: Optional[str] = None) -> None:
        if not learner_id:
            raise ValidationError("learner_id", "must not be empty")
        self._client = client
        self.learner_id = learner_id
        self.key_prefix = key_prefix if key_prefix is not None else Config.REDIS_KEY_PREFIX

    @classmethod
    def from_url(cls, learner_id: str, url: Optional[str] = None, **kwargs: Any) -> "RedisDataSource":
        client = AsyncRedis.from_url(url or Config.REDIS_URL, decode_responses=True)
        return cls(client, learner_id, **kwargs)

    def mission_key(self, mission_id: str) -> str:
        return f"{self.key_prefix}:{self.learner_id}:mission:{mission_id}"

    def briefing_key(self, mission_id: str) -> str:
        return f"{self.key_prefix}:briefing:{mission_id}"

    def _log_failure(self, operation: str, key: str, exc: Exception, **context: Any) -> None:
        logger.error(
            f"Redis {operation} operation failed",
            extra={
                "key": key,
                "learner_id": self.learner_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
                **context,
            },
            exc_info=True,
        )

    def _decode(self, key: str, raw: Any) -> Dict[str, Any]:
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning(
                "Failed to deserialize progress document",
                extra={"key": key, "error": str(exc)},
            )
            raise CorruptRecordError(key, exc) from exc
        if not isinstance(data, dict):
            raise CorruptRecordError(key, TypeError(f"expected an object, got {type(data).__name__}"))
        return data

    async def _load_missions(self, mission_ids: List[str]) -> Dict[str, Mission]:
        keys = [self.mission_key(i) for i in mission_ids]
        try:
            values = await self._client.mget(keys)
        except RedisError as exc:
            self._log_failure("MGET", keys[0], exc, count=len(keys))
            raise

        missions: Dict[str, Mission] = {}
        for mission_id, key, raw in zip(mission_ids, keys, values):
            if raw is None:
                missions[mission_id] = Mission.empty(mission_id)
                continue
            try:
                missions[mission_id] = Mission.from_dict(self._decode(key, raw))
            except (KeyError, TypeError, ValueError, DomainValidationError, ValidationError) as exc:
                raise CorruptRecordError(key, exc) from exc
        return missions

    async def _save_mission(self, mission: Mission) -> None:
        payload = json.dumps(mission.to_dict(), separators=(",", ":"), ensure_ascii=False)
        key = self.mission_key(mission.mission_id)
        try:
            await self._client.set(key, payload)
        except RedisError as exc:
            self._log_failure("SET", key, exc)
            raise

    async def _load_briefing(self, mission_id: str) -> Optional[Mapping[str, Any]]:
        key = self.briefing_key(mission_id)
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            self._log_failure("GET", key, exc)
            raise
        if raw is None:
            return None
        return self._decode(key, raw)

    async def close(self) -> None:
        await self._client.aclose()
