"""
Unit Tests for the Progress Aggregator
======================================

Test Coverage
-------------
- Per-level roll-ups (bite → mission → stage → adventure → overall)
- Lock chain: only S1M1 open at start, monotonic unlock
- Aggregation consistency on random completion assignments
- Current position, milestones and completion estimates

Testing Strategy
----------------
- Pure functions over in-memory records
- Seeded ``random.Random`` for the randomized checks
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from progress_engine.domain.models.curriculum import iter_mission_ids, parse_mission_id
from progress_engine.domain.models.progress import (
    Bite,
    Mission,
    ProgressStatus,
    Stage,
    UnitCount,
    build_curriculum,
)
from progress_engine.modules.progress import (
    bite_progress,
    derive_locks,
    estimate_time_to_completion,
    mission_progress,
    next_milestone,
    overall_progress,
    stage_progress,
)
from progress_engine.modules.shared.exceptions import NotFoundError, ValidationError

MISSION_IDS = list(iter_mission_ids())


def random_missions(rng: random.Random):
    missions = []
    for identifier in MISSION_IDS:
        stage_number, mission_number = parse_mission_id(identifier)
        bites = tuple(
            Bite(
                f"{identifier}B{n}",
                is_completed=rng.random() < 0.6,
                checkpoint_passed=rng.random() < 0.5,
            )
            for n in range(1, 6)
        )
        missions.append(Mission(stage_number, mission_number, bites))
    return missions


def sum_counts(counts):
    total = UnitCount(0, 0)
    for count in counts:
        total = total + count
    return total


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.unit
class TestLevelRollups:
    def test_bite_states(self):
        started = datetime(2025, 3, 1, tzinfo=timezone.utc)

        assert bite_progress(Bite("S1M1B1")).progress == 0
        assert bite_progress(Bite("S1M1B1", attempts=1)).status is ProgressStatus.IN_PROGRESS
        assert bite_progress(Bite("S1M1B1"), locked=True).status is ProgressStatus.LOCKED

        done = bite_progress(
            Bite("S1M1B1", is_completed=True, started_at=started, completed_at=started + timedelta(minutes=12))
        )
        assert done.progress == 100
        assert done.duration == timedelta(minutes=12)
        assert done.snapshot.completed_count == 1

    def test_mission_partial(self):
        bites = (Bite("S1M1B1", is_completed=True, checkpoint_passed=True), Bite("S1M1B2", attempts=1))
        mission = Mission(1, 1, bites)

        progress = mission_progress(mission)

        assert progress.status is ProgressStatus.IN_PROGRESS
        assert progress.percentage == 20
        assert progress.checkpoints.completed == 1

    def test_mission_locked_overrides_completion(self, make_completed_mission):
        progress = mission_progress(make_completed_mission("S1M2"), locked=True)

        assert progress.status is ProgressStatus.LOCKED
        assert progress.bites.completed == 5

    def test_stage_chain(self, make_completed_mission):
        # Arrange
        stage = Stage(1, (make_completed_mission("S1M1"), make_completed_mission("S1M2")))

        # Act
        progress = stage_progress(stage, previous_completed=True)

        # Assert
        statuses = [m.status for m in progress.mission_progress]
        assert statuses == [
            ProgressStatus.COMPLETED,
            ProgressStatus.COMPLETED,
            ProgressStatus.NOT_STARTED,
            ProgressStatus.LOCKED,
            ProgressStatus.LOCKED,
        ]
        assert progress.missions.completed == 2
        assert progress.bites.completed == 10
        assert progress.percentage == 40
        assert progress.status is ProgressStatus.IN_PROGRESS

    def test_stage_uses_stored_flags_without_chain(self):
        stage = Stage(2, (Mission(2, 1, is_locked=True),))

        progress = stage_progress(stage)

        assert progress.mission_progress[0].is_locked
        assert not progress.mission_progress[1].is_locked


# ============================================================================
# LOCKS
# ============================================================================


@pytest.mark.unit
class TestLockChain:
    def test_initial_state_only_first_mission_open(self):
        overall = overall_progress(build_curriculum())

        open_missions = [m.mission_id for m in overall.iter_missions() if not m.is_locked]
        assert open_missions == ["S1M1"]
        assert overall.current_position.mission_id == "S1M1"
        assert overall.status is ProgressStatus.NOT_STARTED

    def test_initial_stage_and_adventure_locks(self):
        overall = overall_progress(build_curriculum())

        assert not overall.stage(1).is_locked
        assert all(overall.stage(n).is_locked for n in range(2, 36))
        assert not overall.adventure(0).is_locked
        assert all(overall.adventure(n).is_locked for n in range(1, 8))

    @pytest.mark.parametrize("count", [1, 4, 5, 6, 24, 174])
    def test_completing_a_prefix_opens_exactly_the_next_mission(self, count, make_completed_prefix):
        overall = overall_progress(build_curriculum(make_completed_prefix(count)))

        locked = [m.is_locked for m in overall.iter_missions()]
        assert locked == [False] * (count + 1) + [True] * (175 - count - 1)
        assert overall.current_position.mission_id == MISSION_IDS[count]

    def test_unlock_is_monotonic(self, make_completed_prefix):
        previous_open = 1
        for count in range(0, 40):
            locks = derive_locks(make_completed_prefix(count))
            open_count = sum(1 for locked in locks.values() if not locked)
            assert open_count >= previous_open
            previous_open = open_count

    def test_next_mission_opens_across_stage_boundary(self, make_completed_prefix):
        overall = overall_progress(build_curriculum(make_completed_prefix(5)))

        assert overall.stage(1).status is ProgressStatus.COMPLETED
        assert not overall.stage(2).is_locked
        assert overall.adventure(0).status is ProgressStatus.COMPLETED
        assert overall.current_position.adventure_number == 1
        assert overall.current_position.stage_number == 2

    def test_gap_keeps_later_missions_locked(self, make_completed_mission):
        # Arrange: S1M2 is complete but S1M1 is not
        overall = overall_progress(build_curriculum([make_completed_mission("S1M2")]))

        # Assert
        assert overall.mission("S1M2").is_locked
        assert overall.mission("S1M3").is_locked
        assert overall.bites.completed == 5

    def test_derive_locks_matches_overall(self, make_completed_mission, make_completed_prefix):
        rng = random.Random(7)
        missions = make_completed_prefix(12) + [make_completed_mission(i) for i in rng.sample(MISSION_IDS[13:], 20)]

        locks = derive_locks(missions)
        overall = overall_progress(build_curriculum(missions))

        assert locks == {m.mission_id: m.is_locked for m in overall.iter_missions()}

    def test_everything_complete(self, make_completed_prefix):
        overall = overall_progress(build_curriculum(make_completed_prefix(175)))

        assert overall.status is ProgressStatus.COMPLETED
        assert overall.current_position is None
        assert overall.percentage == 100
        assert overall.adventures.completed == 8


# ============================================================================
# CONSISTENCY
# ============================================================================


@pytest.mark.unit
class TestAggregationConsistency:
    @pytest.mark.parametrize("seed", [1, 2, 3, 42, 2025])
    def test_counts_add_up_at_every_level(self, seed):
        # Arrange
        missions = random_missions(random.Random(seed))
        expected_bites = sum(m.completed_bites for m in missions)
        expected_checkpoints = sum(m.passed_checkpoints for m in missions)

        # Act
        overall = overall_progress(build_curriculum(missions))

        # Assert
        assert overall.bites.completed == expected_bites
        assert overall.checkpoints.completed == expected_checkpoints
        assert (overall.bites.total, overall.missions.total, overall.stages.total, overall.adventures.total) == (
            875,
            175,
            35,
            8,
        )
        for adventure in overall.adventure_progress:
            assert adventure.bites == sum_counts(s.bites for s in adventure.stage_progress)
            for stage in adventure.stage_progress:
                assert stage.bites == sum_counts(m.bites for m in stage.mission_progress)
                assert 0 <= stage.percentage <= 100

    @pytest.mark.parametrize("seed", [5, 11])
    def test_locks_follow_completed_prefix(self, seed):
        missions = random_missions(random.Random(seed))
        overall = overall_progress(build_curriculum(missions))

        all_done_before = True
        for mission, progress in zip(missions, overall.iter_missions()):
            assert progress.is_locked == (not all_done_before)
            all_done_before = all_done_before and mission.is_complete

    def test_duplicate_adventure_rejected(self):
        adventures = build_curriculum()

        with pytest.raises(ValidationError):
            overall_progress(list(adventures) + [adventures[0]])

    def test_unknown_node_lookup(self):
        overall = overall_progress(build_curriculum())

        with pytest.raises(NotFoundError):
            overall.stage(99)
        with pytest.raises(NotFoundError):
            overall.adventure(8)


# ============================================================================
# SUPPLEMENTS
# ============================================================================


@pytest.mark.unit
class TestMilestonesAndEstimates:
    def test_milestone_near_mission_end(self):
        bites = tuple(Bite(f"S1M1B{n}", is_completed=True) for n in range(1, 4))
        overall = overall_progress(build_curriculum([Mission(1, 1, bites)]))

        milestone = next_milestone(overall)

        assert (milestone.level, milestone.identifier, milestone.remaining, milestone.unit) == (
            "mission",
            "S1M1",
            2,
            "bites",
        )

    def test_milestone_adventure_with_single_stage(self):
        milestone = next_milestone(overall_progress(build_curriculum()))

        assert (milestone.level, milestone.identifier, milestone.remaining) == ("adventure", "0", 1)

    def test_milestone_threshold_override(self):
        milestone = next_milestone(
            overall_progress(build_curriculum()), {"adventure_stages_remaining": 0}
        )

        assert (milestone.level, milestone.identifier, milestone.remaining) == ("mission", "S1M1", 5)

    def test_milestone_stage_end(self, make_completed_prefix):
        overall = overall_progress(build_curriculum(make_completed_prefix(9)))

        milestone = next_milestone(overall)

        assert (milestone.level, milestone.identifier, milestone.remaining) == ("stage", "2", 1)

    def test_no_milestone_when_finished(self, make_completed_prefix):
        assert next_milestone(overall_progress(build_curriculum(make_completed_prefix(175)))) is None

    def test_estimate_defaults_to_config(self):
        estimate = estimate_time_to_completion(overall_progress(build_curriculum()))

        assert estimate.bites_remaining == 875
        assert estimate.daily_bites == 5
        assert estimate.days_needed == 175
        assert estimate.weeks_needed == 25

    def test_estimate_rounds_up(self, make_completed_prefix):
        overall = overall_progress(build_curriculum(make_completed_prefix(1)))

        estimate = estimate_time_to_completion(overall, daily_bites=100)

        assert estimate.bites_remaining == 870
        assert estimate.days_needed == 9
        assert estimate.weeks_needed == 2

    @pytest.mark.parametrize("daily", [0, -3, True, 2.5])
    def test_estimate_rejects_bad_rate(self, daily):
        with pytest.raises(ValidationError):
            estimate_time_to_completion(overall_progress(build_curriculum()), daily_bites=daily)
