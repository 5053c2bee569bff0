"""
Progress Service

Purpose
-------
Cache-fronted orchestration of a learner's curriculum progress. Reads go
through a TTL cache to an injected data source; mutations are validated
against lock and retry rules, persisted, followed by cache invalidation and
draft reconciliation, and answered with the recomputed progress chain plus
the rewards the change earned.

Responsibilities
----------------
- ``read(kind, id)``: cache hit, else fetch from the data source and cache
- ``mutate(kind, id, change)``: lock gate, retry gate, retry-rights
  transitions, persist, invalidation, drafts, upward recomputation
  (bite → mission → stage → adventure → overall), reward quotes
- Convenience operations for every bite and retry action
- Draft access and the cached overall snapshot

Non-Responsibilities
--------------------
- Storage (``ProgressDataSource``)
- Roll-up math (``aggregator``) and reward math (``rewards``)
- Transport retries: data-source failures propagate unchanged

Design Notes
------------
- A failed ``persist`` returns before any invalidation or draft change, so
  cache and drafts are left exactly as they were.
- Lock and retry refusals happen before ``persist`` for the same reason.
- Cached values are immutable records; the cache never hands out something a
  caller could mutate in place.
- Invalidation is exact keys plus prefix scopes from ``dependent_scopes``.
  Entries cached by other sessions are not refreshed; they expire by TTL.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple

from progress_engine.core.cache.drafts import Draft, DraftStore
from progress_engine.core.cache.keys import CacheKeyPolicy, EntityKind, cache_key, dependent_scopes
from progress_engine.core.cache.store import CacheStore
from progress_engine.domain.models.base import DomainEvent, utc_now
from progress_engine.domain.models.curriculum import (
    ADVENTURE_COUNT,
    adventure_for_stage,
    mission_id as make_mission_id,
    mission_of_bite,
    parse_bite_id,
    parse_mission_id,
    previous_mission_id,
)
from progress_engine.domain.models.progress import Adventure, Bite, Mission, ProgressStatus
from progress_engine.domain.models.retry import RetryRights, RetryState
from progress_engine.domain.models.reward import (
    AdventureOptions,
    CheckpointOptions,
    MissionOptions,
    MultiplierContext,
    RewardCurrency,
    RewardQuote,
    StageOptions,
)
from progress_engine.modules.progress.aggregator import (
    AdventureProgress,
    BiteProgress,
    CompletionEstimate,
    Milestone,
    MissionProgress,
    OverallProgress,
    StageProgress,
    estimate_time_to_completion,
    next_milestone,
    overall_progress,
)
from progress_engine.modules.progress.data_source import EntityChange
from progress_engine.modules.rewards.calculator import (
    adventure_reward,
    checkpoint_reward,
    mission_reward,
    stage_reward,
)
from progress_engine.modules.shared.base_service import BaseService
from progress_engine.modules.shared.exceptions import (
    LockedContentError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from progress_engine.core.config.manager import ConfigManager
    from progress_engine.modules.progress.data_source import ProgressDataSource


RETRY_ACTIONS = frozenset({"record_result", "grant_provisional", "grant_full", "convert_provisional"})
OVERALL_ID = "overall"

REWARD_CURRENCIES: Tuple[RewardCurrency, ...] = (RewardCurrency.XP, RewardCurrency.BARAKA)


# ============================================================================
# RESULT
# ============================================================================


@dataclass(frozen=True)
class MutationResult:
    """
    Everything a successful mutation changed.

    Attributes
    ----------
    kind, identifier
        The mutated entity
    entity
        Bite or Mission record as persisted
    bite
        Recomputed bite progress (``None`` for mission mutations)
    mission, stage, adventure, overall
        Recomputed progress up the chain
    rewards
        XP and Baraka quotes for every node the change completed, bottom-up
    events
        Domain events raised by retry-rights transitions
    draft
        The entity's draft after reconciliation, if any
    """

    kind: EntityKind
    identifier: str
    entity: Any
    bite: Optional[BiteProgress]
    mission: MissionProgress
    stage: StageProgress
    adventure: AdventureProgress
    overall: OverallProgress
    rewards: Tuple[RewardQuote, ...]
    events: Tuple[DomainEvent, ...]
    draft: Optional[Draft]

    @property
    def total_xp(self) -> int:
        return sum(q.final_amount for q in self.rewards if q.currency is RewardCurrency.XP)

    @property
    def total_baraka(self) -> int:
        return sum(q.final_amount for q in self.rewards if q.currency is RewardCurrency.BARAKA)


# ============================================================================
# SERVICE
# ============================================================================


class ProgressService(BaseService):
    """
    Cache-fronted progress service for one learner.

    Args:
        data_source: Authoritative store (``InMemoryDataSource``,
            ``RedisDataSource`` or any ``ProgressDataSource``)
        cache: TTL cache; a private one is created (and owned) when omitted
        drafts: Draft store; a private one is created (and owned) when omitted
        policy: Key/TTL policy; defaults to configuration
        clock: UTC wall clock used for timestamps and retry expiry
        config_manager: Configuration manager override
        logger: Logger override

    Public Methods
    --------------
    - read() / mutate()
    - start_bite() / pause_bite() / resume_bite() / submit_bite() / complete_bite()
    - record_mission_result() / grant_provisional_retry() / grant_full_retry()
      / convert_provisional_retry()
    - save_draft() / get_draft() / progress() / retry_state()
    - close()
    """

    def __init__(
        self,
        data_source: ProgressDataSource,
        cache: Optional[CacheStore] = None,
        drafts: Optional[DraftStore] = None,
        policy: Optional[CacheKeyPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        config_manager: Optional[type[ConfigManager]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(config_manager, logger)
        self.data_source = data_source
        self._clock = clock or utc_now
        self._owns_cache = cache is None
        self._owns_drafts = drafts is None
        self.cache = cache if cache is not None else CacheStore(name="progress")
        self.drafts = drafts if drafts is not None else DraftStore(clock=self._clock)
        self.policy = policy or CacheKeyPolicy()

    async def __aenter__(self) -> "ProgressService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the stores this service created; injected stores stay open."""
        if self._owns_cache:
            self.cache.close()
        if self._owns_drafts:
            self.drafts.close()
        self.log.debug("Progress service closed")

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def read(self, kind: EntityKind, identifier: Any) -> Any:
        """
        Read an entity through the cache.

        Raises:
            NotFoundError: If the id is not part of the curriculum or the
                data source does not know it
        """
        kind = EntityKind(kind)
        try:
            key = cache_key(kind, identifier)
        except ValidationError as e:
            raise NotFoundError(kind.value, identifier) from e

        cached = self.cache.get(key, self.policy.ttl_for(kind))
        if cached is not None:
            return cached

        value = await self.data_source.fetch(kind, identifier)
        self.cache.set(key, value)
        self.log.debug("Cache fill", extra={"key": key, "kind": kind.value})
        return value

    async def progress(self) -> OverallProgress:
        """Overall progress snapshot, cached under ``progress_overall``."""
        key = cache_key(EntityKind.PROGRESS, OVERALL_ID)
        cached = self.cache.get(key, self.policy.ttl_for(EntityKind.PROGRESS))
        if cached is not None:
            return cached

        overall = await self._compute_overall()
        self.cache.set(key, overall)
        return overall

    async def milestone(self, thresholds: Optional[Mapping[str, int]] = None) -> Optional[Milestone]:
        return next_milestone(await self.progress(), thresholds)

    async def completion_estimate(self, daily_bites: Optional[int] = None) -> CompletionEstimate:
        """
        Time to finish the curriculum at the learner's pace.

        Args:
            daily_bites: Bites per day; defaults to ``progress.default_daily_bites``

        Raises:
            ConfigurationError: No pace given and none configured
            ValidationError: Pace is not a positive integer
        """
        if daily_bites is None:
            daily_bites = self.get_config("progress.default_daily_bites", required=True)
        self.validate_positive_int(daily_bites, "daily_bites")
        return estimate_time_to_completion(await self.progress(), daily_bites)

    async def retry_state(self, mission_id: str) -> Dict[str, Any]:
        """Retry-rights view of a mission as of now (expiry already applied)."""
        mission: Mission = await self.read(EntityKind.MISSION, mission_id)
        return mission.retry.to_view(self._clock())

    def get_draft(self, entity_id: str) -> Optional[Draft]:
        return self.drafts.get(entity_id)

    def save_draft(self, entity_id: str, data: Mapping[str, Any]) -> Draft:
        return self.drafts.save(entity_id, data)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def mutate(
        self,
        kind: EntityKind,
        identifier: str,
        change: EntityChange,
        context: Optional[MultiplierContext] = None,
    ) -> MutationResult:
        """
        Apply a change and return the recomputed progress chain.

        Bite changes take the data-source actions (``start``, ``pause``,
        ``resume``, ``submit``, ``complete``). Mission changes take the
        retry-rights actions ``record_result`` (payload ``passed``),
        ``grant_provisional`` (optional ``expires_at``), ``grant_full`` and
        ``convert_provisional``, or a raw ``update_retry``.

        Args:
            kind: ``EntityKind.BITE`` or ``EntityKind.MISSION``
            identifier: Bite id (``"S3M2B4"``) or mission id (``"S3M2"``)
            change: What to do
            context: Multiplier context for the reward quotes

        Raises:
            NotFoundError: Unknown id
            LockedContentError: The owning mission is locked
            RetryExhaustedError: Bite work on a failed mission with no usable
                retry right, or a retry transition past the limit
            InvalidTransitionError: The action does not apply in the current state
            ValidationError: Unknown action or malformed payload
        """
        kind = EntityKind(kind)
        mission_id = self._owning_mission(kind, identifier)

        self.log_operation(
            "mutate", kind=kind.value, identifier=identifier, action=change.action
        )

        before = await self._compute_overall()
        if before.mission(mission_id).is_locked:
            raise LockedContentError(mission_id, previous_mission_id(mission_id))

        events: List[DomainEvent] = []
        persisted_change = change
        if kind is EntityKind.BITE:
            mission: Mission = await self.read(EntityKind.MISSION, mission_id)
            RetryRights(mission_id, mission.retry).ensure_can_work(change.at)
        elif change.action in RETRY_ACTIONS:
            mission = await self.read(EntityKind.MISSION, mission_id)
            new_state, events = self._transition_retry(mission_id, mission.retry, change)
            persisted_change = EntityChange("update_retry", {"retry": new_state}, at=change.at)

        try:
            entity = await self.data_source.persist(kind, identifier, persisted_change)
        except Exception as e:
            self.log_error("mutate", e, kind=kind.value, identifier=identifier, action=change.action)
            raise

        self._invalidate(kind, identifier)
        draft = self._reconcile_draft(kind, identifier, change, entity)
        self.log_domain_events(events)

        after = await self._compute_overall()
        self.cache.set(cache_key(EntityKind.PROGRESS, OVERALL_ID), after)

        stage_number, _ = parse_mission_id(mission_id)
        mission_after = after.mission(mission_id)
        bite_after = None
        if kind is EntityKind.BITE:
            bite_after = mission_after.bite_progress[parse_bite_id(identifier)[2] - 1]

        rewards = self._rewards_for(before, after, mission_id, entity, context)
        if rewards:
            self.log.info(
                "Progress rewards earned",
                extra={
                    "identifier": identifier,
                    "quotes": len(rewards),
                    "xp": sum(q.final_amount for q in rewards if q.currency is RewardCurrency.XP),
                    "baraka": sum(q.final_amount for q in rewards if q.currency is RewardCurrency.BARAKA),
                },
            )

        return MutationResult(
            kind=kind,
            identifier=identifier,
            entity=entity,
            bite=bite_after,
            mission=mission_after,
            stage=after.stage(stage_number),
            adventure=after.adventure(adventure_for_stage(stage_number)),
            overall=after,
            rewards=rewards,
            events=tuple(events),
            draft=draft,
        )

    async def start_bite(self, bite_id: str, context: Optional[MultiplierContext] = None) -> MutationResult:
        return await self.mutate(EntityKind.BITE, bite_id, self._change("start"), context)

    async def pause_bite(
        self, bite_id: str, workspace: Optional[Mapping[str, Any]] = None
    ) -> MutationResult:
        """Pause a bite and keep ``workspace`` as its draft for resume."""
        return await self.mutate(
            EntityKind.BITE, bite_id, self._change("pause", workspace=dict(workspace or {}))
        )

    async def resume_bite(self, bite_id: str) -> Optional[Draft]:
        """Resume a paused bite; returns the draft saved at pause, if any."""
        result = await self.mutate(EntityKind.BITE, bite_id, self._change("resume"))
        return result.draft

    async def submit_bite(
        self,
        bite_id: str,
        checkpoint_passed: bool = False,
        context: Optional[MultiplierContext] = None,
    ) -> MutationResult:
        """Submit a checkpoint attempt; clears the bite's draft."""
        return await self.mutate(
            EntityKind.BITE,
            bite_id,
            self._change("submit", checkpoint_passed=checkpoint_passed),
            context,
        )

    async def complete_bite(
        self,
        bite_id: str,
        checkpoint_passed: bool = True,
        context: Optional[MultiplierContext] = None,
    ) -> MutationResult:
        return await self.mutate(
            EntityKind.BITE,
            bite_id,
            self._change("complete", checkpoint_passed=checkpoint_passed),
            context,
        )

    async def record_mission_result(self, mission_id: str, passed: bool) -> MutationResult:
        return await self.mutate(
            EntityKind.MISSION, mission_id, self._change("record_result", passed=passed)
        )

    async def grant_provisional_retry(
        self, mission_id: str, expires_at: Optional[datetime] = None
    ) -> MutationResult:
        return await self.mutate(
            EntityKind.MISSION, mission_id, self._change("grant_provisional", expires_at=expires_at)
        )

    async def grant_full_retry(self, mission_id: str) -> MutationResult:
        return await self.mutate(EntityKind.MISSION, mission_id, self._change("grant_full"))

    async def convert_provisional_retry(self, mission_id: str) -> MutationResult:
        return await self.mutate(EntityKind.MISSION, mission_id, self._change("convert_provisional"))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _change(self, action: str, **payload: Any) -> EntityChange:
        return EntityChange(action, payload, at=self._clock())

    @staticmethod
    def _owning_mission(kind: EntityKind, identifier: str) -> str:
        try:
            if kind is EntityKind.BITE:
                return mission_of_bite(identifier)
            if kind is EntityKind.MISSION:
                return make_mission_id(*parse_mission_id(identifier))
        except ValidationError as e:
            raise NotFoundError(kind.value, identifier) from e
        raise ValidationError("kind", f"{kind.value} entities are not mutable")

    async def _compute_overall(self) -> OverallProgress:
        adventures: List[Adventure] = [
            await self.read(EntityKind.ADVENTURE, number) for number in range(ADVENTURE_COUNT)
        ]
        return overall_progress(adventures)

    def _transition_retry(
        self, mission_id: str, state: RetryState, change: EntityChange
    ) -> Tuple[RetryState, List[DomainEvent]]:
        rights = RetryRights(mission_id, state)
        now = change.at
        action = change.action

        if action == "record_result":
            if "passed" not in change.payload:
                raise ValidationError("passed", "record_result requires a 'passed' flag")
            new_state = rights.record_attempt(bool(change.payload["passed"]), now)
        elif action == "grant_provisional":
            new_state = rights.grant_provisional(change.payload.get("expires_at"), now)
        elif action == "grant_full":
            new_state = rights.grant_full(now)
        else:
            new_state = rights.convert_provisional(now)

        return new_state, rights.clear_domain_events()

    def _invalidate(self, kind: EntityKind, identifier: str) -> None:
        plan = dependent_scopes(kind, identifier)
        removed = sum(int(self.cache.invalidate(key)) for key in plan.keys)
        removed += sum(self.cache.invalidate_scope(scope) for scope in plan.scopes)
        self.log.debug(
            "Cache invalidated",
            extra={"identifier": identifier, "keys": list(plan.keys), "scopes": list(plan.scopes), "removed": removed},
        )

    def _reconcile_draft(
        self, kind: EntityKind, identifier: str, change: EntityChange, entity: Any
    ) -> Optional[Draft]:
        action = change.action
        if kind is EntityKind.BITE and action == "pause":
            return self.drafts.save(identifier, change.payload.get("workspace") or {})
        if kind is EntityKind.BITE and action in ("submit", "complete"):
            self.drafts.clear(identifier)
            return None
        if kind is EntityKind.BITE and action == "resume":
            return self.drafts.get(identifier)

        if self.drafts.get(identifier) is None:
            return None
        return self.drafts.reconcile(identifier, entity.to_dict(), merge=True)

    def _rewards_for(
        self,
        before: OverallProgress,
        after: OverallProgress,
        mission_id: str,
        entity: Any,
        context: Optional[MultiplierContext],
    ) -> Tuple[RewardQuote, ...]:
        """Quotes for each node that went from not-completed to completed."""
        stage_number, _ = parse_mission_id(mission_id)
        adventure_number = adventure_for_stage(stage_number)
        base_context = context or MultiplierContext()
        local_context = base_context
        if local_context.adventure_number is None:
            local_context = replace(local_context, adventure_number=adventure_number)

        def newly_completed(old: Any, new: Any) -> bool:
            return old.status is not ProgressStatus.COMPLETED and new.status is ProgressStatus.COMPLETED

        mission_before = before.mission(mission_id)
        mission_after = after.mission(mission_id)
        attempts = {entity.bite_id: entity.attempts} if isinstance(entity, Bite) else {}
        quotes: List[RewardQuote] = []

        for old, new in zip(mission_before.bite_progress, mission_after.bite_progress):
            if newly_completed(old, new):
                options = CheckpointOptions(is_first_try=attempts.get(new.bite_id, 1) <= 1)
                quotes.extend(checkpoint_reward(options, local_context, c) for c in REWARD_CURRENCIES)

        if newly_completed(mission_before, mission_after):
            options = MissionOptions(checkpoints_completed=mission_after.checkpoints.completed)
            quotes.extend(mission_reward(options, local_context, c) for c in REWARD_CURRENCIES)

        if newly_completed(before.stage(stage_number), after.stage(stage_number)):
            options = StageOptions(stage_number=stage_number)
            quotes.extend(stage_reward(options, base_context, c) for c in REWARD_CURRENCIES)

        if newly_completed(before.adventure(adventure_number), after.adventure(adventure_number)):
            options = AdventureOptions(adventure_number=adventure_number)
            quotes.extend(adventure_reward(options, base_context, c) for c in REWARD_CURRENCIES)

        return tuple(quotes)


__all__ = ["ProgressService", "MutationResult", "RETRY_ACTIONS"]
