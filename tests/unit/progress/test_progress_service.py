"""
Unit Tests for ProgressService
==============================

Test Coverage
-------------
- Read-through caching, TTL refresh and unknown ids
- Mutation pipeline: lock gate, retry gate, persist, invalidation,
  recomputed progress chain
- Failure atomicity: refused or failed mutations leave cache and drafts alone
- Draft lifecycle across pause / resume / submit
- Reward quotes for newly completed nodes
- Retry-rights flow with provisional expiry on the wall clock
- Store ownership on close

Testing Strategy
----------------
- In-memory data source, fake millisecond and wall clocks
- ``mocker.spy`` / ``mocker.patch.object`` on the data source
- AAA pattern (Arrange, Act, Assert)
"""

import pytest

from progress_engine.core.cache.keys import EntityKind
from progress_engine.domain.models.curriculum import parse_mission_id
from progress_engine.domain.models.progress import Bite, Mission, ProgressStatus
from progress_engine.domain.models.retry import RetryState, StudyLoopState
from progress_engine.domain.models.reward import ActivityKind, MultiplierContext, RewardCurrency
from progress_engine.modules.progress import EntityChange, ProgressService
from progress_engine.core.exceptions import ConfigurationError
from progress_engine.modules.shared.exceptions import (
    InvalidTransitionError,
    LockedContentError,
    NotFoundError,
    RetryExhaustedError,
    ValidationError,
)


def cache_state(cache):
    return {key: cache.peek(key) for key in cache.keys()}


def almost_done_mission(identifier: str) -> Mission:
    """Bites 1-4 completed, bite 5 fresh."""
    stage_number, mission_number = parse_mission_id(identifier)
    bites = tuple(
        Bite(f"{identifier}B{n}", is_completed=True, checkpoint_passed=True, attempts=1)
        for n in range(1, 5)
    )
    return Mission(stage_number, mission_number, bites)


# ============================================================================
# READS
# ============================================================================


@pytest.mark.service
class TestReads:
    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, service, data_source, mocker):
        # Arrange
        fetch = mocker.spy(data_source, "fetch")

        # Act
        first = await service.read(EntityKind.MISSION, "S1M1")
        second = await service.read(EntityKind.MISSION, "S1M1")

        # Assert
        assert first is second
        assert fetch.call_count == 1
        assert "mission_S1M1" in service.cache.keys()

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, service, data_source, policy, ms_clock, mocker):
        fetch = mocker.spy(data_source, "fetch")
        await service.read(EntityKind.BITE, "S1M1B1")

        ms_clock.advance(policy.ttl_for(EntityKind.BITE))
        await service.read(EntityKind.BITE, "S1M1B1")

        assert fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_briefing(self, service):
        briefing = await service.read(EntityKind.MISSION_BRIEFING, "S1M1")

        assert briefing["title"] == "Welcome"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind, identifier",
        [
            (EntityKind.MISSION, "S36M1"),
            (EntityKind.BITE, "S1M1B6"),
            (EntityKind.STAGE, 0),
            (EntityKind.ADVENTURE, 8),
            (EntityKind.MISSION_BRIEFING, "S1M2"),
        ],
    )
    async def test_unknown_ids(self, service, kind, identifier):
        with pytest.raises(NotFoundError):
            await service.read(kind, identifier)

    @pytest.mark.asyncio
    async def test_progress_is_cached(self, service, data_source, mocker):
        # Arrange
        fetch = mocker.spy(data_source, "fetch")

        # Act
        first = await service.progress()
        second = await service.progress()

        # Assert
        assert first is second
        assert fetch.call_count == 8
        assert first.current_position.mission_id == "S1M1"

    @pytest.mark.asyncio
    async def test_retry_state_view(self, service):
        view = await service.retry_state("S1M1")

        assert view["effective_state"] == "initial"
        assert view["retries_remaining"] == 3


# ============================================================================
# MUTATIONS
# ============================================================================


@pytest.mark.service
class TestMutations:
    @pytest.mark.asyncio
    async def test_complete_recomputes_chain(self, service):
        # Act
        result = await service.complete_bite("S1M1B1")

        # Assert
        assert result.entity.is_completed
        assert result.bite.status is ProgressStatus.COMPLETED
        assert result.mission.bites.completed == 1
        assert result.mission.status is ProgressStatus.IN_PROGRESS
        assert result.stage.stage_number == 1
        assert result.adventure.adventure_number == 0
        assert result.overall.bites.completed == 1
        assert result.overall.status is ProgressStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_mutation_invalidates_dependent_entries(self, service):
        # Arrange
        stale_bite = await service.read(EntityKind.BITE, "S1M1B1")
        await service.read(EntityKind.BITE_LIST, "S1M1")
        await service.read(EntityKind.STAGE_MISSIONS, 1)
        await service.read(EntityKind.BITE, "S1M1B2")

        # Act
        await service.complete_bite("S1M1B1")

        # Assert
        keys = service.cache.keys()
        assert "bite_S1M1B1" not in keys
        assert "bites_mission_S1M1" not in keys
        assert "stage_1_missions" not in keys
        assert "bite_S1M1B2" in keys
        assert not stale_bite.is_completed
        assert (await service.read(EntityKind.BITE, "S1M1B1")).is_completed

    @pytest.mark.asyncio
    async def test_progress_reflects_mutation(self, service):
        await service.progress()

        await service.complete_bite("S1M1B1")

        assert (await service.progress()).bites.completed == 1

    @pytest.mark.asyncio
    async def test_completing_a_mission_unlocks_the_next(self, service, data_source):
        data_source.seed([almost_done_mission("S1M1")])

        result = await service.complete_bite("S1M1B5")

        assert result.mission.status is ProgressStatus.COMPLETED
        assert not result.overall.mission("S1M2").is_locked
        assert result.overall.current_position.mission_id == "S1M2"

    @pytest.mark.asyncio
    async def test_locked_mission_refused_without_touching_cache(self, service, drafts):
        # Arrange
        await service.progress()
        drafts.save("S1M2B1", {"notes": "early"})
        before = cache_state(service.cache)

        # Act
        with pytest.raises(LockedContentError) as exc_info:
            await service.start_bite("S1M2B1")

        # Assert
        assert exc_info.value.entity_id == "S1M2"
        assert exc_info.value.blocking_id == "S1M1"
        assert cache_state(service.cache) == before
        assert drafts.get("S1M2B1").data == {"notes": "early"}

    @pytest.mark.asyncio
    async def test_failed_persist_leaves_cache_and_drafts(self, service, data_source, drafts, mocker):
        # Arrange
        await service.progress()
        await service.read(EntityKind.MISSION, "S1M1")
        await service.read(EntityKind.BITE, "S1M1B1")
        draft = drafts.save("S1M1B1", {"answer": "draft"})
        before = cache_state(service.cache)
        mocker.patch.object(data_source, "persist", side_effect=ConnectionError("store unavailable"))

        # Act
        with pytest.raises(ConnectionError):
            await service.complete_bite("S1M1B1")

        # Assert
        assert cache_state(service.cache) == before
        assert drafts.get("S1M1B1") == draft

    @pytest.mark.asyncio
    async def test_invalid_transition_propagates(self, service):
        with pytest.raises(InvalidTransitionError):
            await service.resume_bite("S1M1B1")

    @pytest.mark.asyncio
    async def test_unknown_and_immutable_targets(self, service):
        with pytest.raises(NotFoundError):
            await service.start_bite("S1M9B1")
        with pytest.raises(ValidationError):
            await service.mutate(EntityKind.STAGE, "1", EntityChange("start"))

    @pytest.mark.asyncio
    async def test_record_result_requires_flag(self, service):
        with pytest.raises(ValidationError):
            await service.mutate(EntityKind.MISSION, "S1M1", EntityChange("record_result", {}))

    @pytest.mark.asyncio
    async def test_padded_mission_id_cannot_overwrite_stored_bites(self, service, data_source):
        # Arrange
        await service.complete_bite("S1M1B1")
        await service.complete_bite("S1M1B2")

        # Act
        with pytest.raises(NotFoundError):
            await service.record_mission_result("S01M1", passed=False)

        # Assert
        stored = await data_source.fetch(EntityKind.MISSION, "S1M1")
        assert stored.completed_bites == 2
        assert stored.retry.retry_attempts == 0

    @pytest.mark.asyncio
    async def test_padded_ids_leave_cached_mission_alone(self, service):
        # Arrange
        await service.read(EntityKind.MISSION, "S1M1")
        before = cache_state(service.cache)

        # Act
        with pytest.raises(NotFoundError):
            await service.record_mission_result("S01M1", passed=False)
        with pytest.raises(NotFoundError):
            await service.start_bite("S01M1B1")

        # Assert
        assert "mission_S1M1" in service.cache.keys()
        assert cache_state(service.cache) == before
        assert (await service.retry_state("S1M1"))["retry_attempts"] == 0


# ============================================================================
# DRAFTS
# ============================================================================


@pytest.mark.service
class TestDrafts:
    @pytest.mark.asyncio
    async def test_pause_resume_submit(self, service):
        # Arrange
        workspace = {"code": "print('fix')", "cursor": 12}
        await service.start_bite("S1M1B1")

        # Act
        paused = await service.pause_bite("S1M1B1", workspace)
        resumed = await service.resume_bite("S1M1B1")
        submitted = await service.submit_bite("S1M1B1", checkpoint_passed=True)

        # Assert
        assert paused.entity.is_paused
        assert paused.draft.data == workspace
        assert resumed.data == workspace
        assert submitted.draft is None
        assert service.get_draft("S1M1B1") is None
        assert submitted.entity.attempts == 1

    @pytest.mark.asyncio
    async def test_existing_draft_is_merged_with_confirmed_record(self, service):
        service.save_draft("S1M1B1", {"notes": "local only"})

        result = await service.start_bite("S1M1B1")

        assert result.draft.data["notes"] == "local only"
        assert result.draft.data["started_at"] is not None

    @pytest.mark.asyncio
    async def test_no_draft_created_without_one(self, service):
        result = await service.start_bite("S1M1B1")

        assert result.draft is None


# ============================================================================
# REWARDS
# ============================================================================


@pytest.mark.service
class TestRewards:
    @pytest.mark.asyncio
    async def test_checkpoint_only(self, service):
        result = await service.complete_bite("S1M1B1")

        assert [q.activity for q in result.rewards] == [ActivityKind.CHECKPOINT, ActivityKind.CHECKPOINT]
        assert [q.currency for q in result.rewards] == [RewardCurrency.XP, RewardCurrency.BARAKA]
        assert result.total_xp == 20
        assert result.total_baraka == 1

    @pytest.mark.asyncio
    async def test_finishing_the_first_adventure(self, service, data_source, make_completed_prefix):
        # Arrange: S1M1-S1M4 done, S1M5 one bite short
        data_source.seed(make_completed_prefix(4) + [almost_done_mission("S1M5")])

        # Act
        result = await service.complete_bite("S1M5B5")

        # Assert
        assert [q.activity for q in result.rewards] == [
            ActivityKind.CHECKPOINT,
            ActivityKind.CHECKPOINT,
            ActivityKind.MISSION,
            ActivityKind.MISSION,
            ActivityKind.STAGE,
            ActivityKind.STAGE,
            ActivityKind.ADVENTURE,
            ActivityKind.ADVENTURE,
        ]
        assert result.total_xp == 20 + 25 + 100 + 500
        assert result.total_baraka == 1 + 10 + 25 + 100

    @pytest.mark.asyncio
    async def test_context_multipliers_apply(self, service):
        result = await service.complete_bite("S1M1B1", context=MultiplierContext(double_xp=True))

        assert result.total_xp == 40

    @pytest.mark.asyncio
    async def test_repeat_submission_earns_nothing(self, service):
        await service.complete_bite("S1M1B1")

        result = await service.submit_bite("S1M1B1", checkpoint_passed=True)

        assert result.rewards == ()


# ============================================================================
# RETRY RIGHTS
# ============================================================================


@pytest.mark.service
class TestRetryFlow:
    @pytest.mark.asyncio
    async def test_failed_mission_blocks_bite_work(self, service):
        # Act
        failed = await service.record_mission_result("S1M1", passed=False)

        # Assert
        assert [e.event_name for e in failed.events] == ["mission.failed"]
        assert failed.entity.retry.retry_attempts == 1
        with pytest.raises(RetryExhaustedError):
            await service.start_bite("S1M1B1")

    @pytest.mark.asyncio
    async def test_provisional_grant_expires(self, service, wall_clock):
        # Arrange
        await service.record_mission_result("S1M1", passed=False)
        granted = await service.grant_provisional_retry("S1M1")
        await service.start_bite("S1M1B1")

        # Act
        wall_clock.advance(hours=49)
        view = await service.retry_state("S1M1")

        # Assert
        assert granted.events[0].event_name == "retry.provisional_granted"
        assert view["state"] == "provisional_active"
        assert view["effective_state"] == "failed_awaiting_retry"
        assert view["can_retry"] is False
        with pytest.raises(InvalidTransitionError):
            await service.convert_provisional_retry("S1M1")
        with pytest.raises(RetryExhaustedError):
            await service.pause_bite("S1M1B1", {"notes": "late"})

    @pytest.mark.asyncio
    async def test_convert_then_pass(self, service, wall_clock):
        await service.record_mission_result("S1M1", passed=False)
        await service.grant_provisional_retry("S1M1")
        wall_clock.advance(hours=1)

        converted = await service.convert_provisional_retry("S1M1")
        passed = await service.record_mission_result("S1M1", passed=True)

        assert converted.entity.retry.state is StudyLoopState.FULL_ACTIVE
        assert passed.entity.retry.state is StudyLoopState.PASSED
        assert (await service.retry_state("S1M1"))["effective_state"] == "passed"

    @pytest.mark.asyncio
    async def test_retry_limit(self, service, data_source):
        exhausted = RetryState(retry_attempts=3, max_retries=3, state=StudyLoopState.FAILED_AWAITING_RETRY)
        data_source.seed([Mission(1, 1, retry=exhausted)])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await service.grant_full_retry("S1M1")

        assert exc_info.value.reason == "retry limit reached"
        assert (await service.retry_state("S1M1"))["is_dead_end"] is True


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.service
class TestLifecycle:
    def test_close_only_owned_stores(self, data_source, cache):
        service = ProgressService(data_source, cache=cache)

        service.close()

        assert not cache.closed
        assert service.drafts.closed

    @pytest.mark.asyncio
    async def test_context_manager_closes_private_stores(self, data_source):
        async with ProgressService(data_source) as service:
            await service.read(EntityKind.MISSION, "S1M1")

        assert service.cache.closed
        assert service.drafts.closed


# ============================================================================
# PROJECTIONS
# ============================================================================


@pytest.mark.service
class TestProjections:
    @pytest.mark.asyncio
    async def test_estimate_uses_configured_pace(self, service):
        estimate = await service.completion_estimate()

        assert estimate.daily_bites == 5
        assert estimate.days_needed == 175

    @pytest.mark.asyncio
    async def test_estimate_follows_progress(self, service):
        await service.complete_bite("S1M1B1")

        estimate = await service.completion_estimate(daily_bites=2)

        assert estimate.bites_remaining == 874
        assert estimate.days_needed == 437

    @pytest.mark.asyncio
    @pytest.mark.parametrize("daily", [0, -1, True, 1.5])
    async def test_estimate_rejects_bad_pace(self, service, daily):
        with pytest.raises(ValidationError):
            await service.completion_estimate(daily_bites=daily)

    @pytest.mark.asyncio
    async def test_estimate_without_configured_pace(self, data_source, mocker):
        config_manager = mocker.Mock()
        config_manager.get.return_value = None

        async with ProgressService(data_source, config_manager=config_manager) as svc:
            with pytest.raises(ConfigurationError):
                await svc.completion_estimate()

        config_manager.get.assert_called_once_with("progress.default_daily_bites", None)

    @pytest.mark.asyncio
    async def test_milestone(self, service):
        milestone = await service.milestone()

        assert (milestone.level, milestone.identifier, milestone.remaining) == ("adventure", "0", 1)
