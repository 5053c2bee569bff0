"""
Unit tests for balance tiers and the level curve.
"""

import pytest

from progress_engine.modules.rewards import (
    TIERS,
    baraka_issuance_cap,
    level_cap_for_adventure,
    level_from_xp,
    level_title,
    next_tier,
    project_time_to_level,
    tier_for,
    tier_progress,
    total_xp_for_level,
    xp_for_level,
)
from progress_engine.modules.shared.exceptions import ValidationError


# ============================================================================
# BALANCE TIERS
# ============================================================================


@pytest.mark.unit
class TestBalanceTiers:
    def test_table_is_monotonic(self):
        thresholds = [t.threshold for t in TIERS]
        multipliers = [t.multiplier for t in TIERS]

        assert thresholds == sorted(thresholds)
        assert multipliers == sorted(multipliers)
        assert len(set(thresholds)) == len(TIERS)

    @pytest.mark.parametrize(
        "balance, name",
        [(-5, "Starter"), (0, "Starter"), (999, "Starter"), (1_000, "Beginner"), (2_000_000, "Legendary")],
    )
    def test_tier_for(self, balance, name):
        assert tier_for(balance).name == name

    def test_tier_for_never_decreases(self):
        previous = tier_for(0).threshold
        for balance in range(0, 1_200_000, 7_919):
            current = tier_for(balance).threshold
            assert current >= previous
            previous = current

    def test_next_tier_progress_is_absolute(self):
        upcoming = next_tier(950)

        assert upcoming.tier.name == "Beginner"
        assert upcoming.needed == 50
        assert upcoming.progress_percent == 95.0

    def test_no_tier_above_the_top(self):
        assert next_tier(1_000_000) is None
        assert tier_progress(1_000_000).is_max_tier

    def test_tier_progress_is_relative(self):
        progress = tier_progress(5_500)

        assert progress.current.name == "Beginner"
        assert progress.next.name == "Intermediate"
        assert progress.progress_percent == 50.0
        assert progress.needed == 4_500


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.unit
class TestLevelCurve:
    def test_first_steps(self):
        assert [xp_for_level(n) for n in range(1, 6)] == [0, 100, 150, 225, 337]

    def test_cumulative(self):
        assert total_xp_for_level(1) == 0
        assert total_xp_for_level(3) == 250
        assert total_xp_for_level(5) == 812

    @pytest.mark.parametrize("level", [82, 90, 100])
    def test_high_levels_are_exact(self, level):
        # 100 * 1.5 ** (level - 2), floored, with no double-precision rounding
        assert xp_for_level(level) == 100 * 3 ** (level - 2) // 2 ** (level - 2)

    def test_steps_never_shrink(self):
        steps = [xp_for_level(n) for n in range(2, 101)]

        assert steps == sorted(steps)

    @pytest.mark.parametrize("level", range(1, 101))
    def test_threshold_maps_back_to_its_level(self, level):
        assert level_from_xp(total_xp_for_level(level)).level == level

    def test_one_below_threshold(self):
        assert level_from_xp(total_xp_for_level(10) - 1).level == 9

    def test_mid_level(self):
        info = level_from_xp(260)

        assert (info.level, info.xp_into_level, info.xp_needed) == (3, 10, 215)
        assert not info.is_max_level

    def test_negative_xp_is_level_one(self):
        assert level_from_xp(-40).level == 1

    def test_cap(self):
        info = level_from_xp(total_xp_for_level(100) * 2)

        assert info.level == 100
        assert info.is_max_level
        assert info.progress_percent == 100.0
        assert info.xp_needed == 0

    @pytest.mark.parametrize(
        "level, title",
        [(1, "Newcomer"), (4, "Newcomer"), (12, "Apprentice"), (59, "Master"), (100, "GPS Luminary")],
    )
    def test_titles(self, level, title):
        assert level_title(level) == title

    @pytest.mark.parametrize("adventure, cap", [(0, 10), (1, 10), (3, 35), (7, 100)])
    def test_level_caps(self, adventure, cap):
        assert level_cap_for_adventure(adventure) == cap


@pytest.mark.unit
class TestLevelProjection:
    def test_days_and_weeks_round_up(self):
        projection = project_time_to_level(0, 3, 100)

        assert projection.xp_needed == 250
        assert projection.days_needed == 3
        assert projection.weeks_needed == 1
        assert not projection.already_reached

    def test_already_reached(self):
        projection = project_time_to_level(260, 2, 10)

        assert projection.already_reached
        assert projection.days_needed == 0

    @pytest.mark.parametrize("daily_xp, target", [(0, 5), (-10, 5), (10, 0), (10, 101)])
    def test_invalid_input(self, daily_xp, target):
        with pytest.raises(ValidationError):
            project_time_to_level(0, target, daily_xp)


# ============================================================================
# ISSUANCE
# ============================================================================


@pytest.mark.unit
class TestIssuanceCap:
    @pytest.mark.parametrize(
        "stage, start, cap, cumulative",
        [
            (1, 1, 0, 0),
            (2, 2, 5_000, 5_000),
            (5, 2, 5_000, 5_000),
            (6, 6, 15_000, 20_000),
            (12, 11, 80_000, 100_000),
            (30, 26, 200_000, 800_000),
            (35, 31, 200_000, 1_000_000),
        ],
    )
    def test_cap_for_stage(self, stage, start, cap, cumulative):
        result = baraka_issuance_cap(stage)

        assert result.stage_number == stage
        assert (result.schedule_start, result.cap, result.cumulative) == (start, cap, cumulative)

    @pytest.mark.parametrize("stage", [0, 36, -1])
    def test_out_of_range_stage_rejected(self, stage):
        with pytest.raises(ValidationError):
            baraka_issuance_cap(stage)
