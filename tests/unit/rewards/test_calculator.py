"""
Unit Tests for the Reward Calculator
====================================

Test Coverage
-------------
- General rule: bonuses against base, Decimal multiplier product, floor
- Multiplier stacking (weekend suppressed under double XP)
- Checkpoint / mission / stage / adventure helpers in both currencies
- Streak milestones

Testing Strategy
----------------
- Unit tests, pure functions
- Expected values worked out by hand from the reward tables
"""

import pytest

from progress_engine.domain.models.reward import (
    ActivityKind,
    AdventureOptions,
    BonusFlags,
    CheckpointOptions,
    MissionOptions,
    MultiplierContext,
    RewardCurrency,
    StageOptions,
    SubscriptionTier,
)
from progress_engine.modules.rewards import (
    adventure_reward,
    checkpoint_reward,
    mission_reward,
    multiplier_stack,
    next_streak_milestone,
    quote,
    stage_reward,
    streak_reward,
)
from progress_engine.modules.shared.exceptions import ValidationError

BARAKA = RewardCurrency.BARAKA


# ============================================================================
# GENERAL RULE
# ============================================================================


@pytest.mark.unit
class TestQuote:
    def test_plain_base(self):
        result = quote(ActivityKind.MISSION, 100)

        assert result.final_amount == 100
        assert result.bonuses == ()
        assert result.applied_multipliers == ()
        assert result.multiplier == 1.0

    def test_streak_bonus_against_base(self):
        result = quote(ActivityKind.MISSION, 100, BonusFlags(streak_days=10))

        assert result.bonuses == (("Streak Bonus", 16),)
        assert result.final_amount == 116

    def test_short_streak_earns_nothing(self):
        assert quote(ActivityKind.MISSION, 100, BonusFlags(streak_days=2)).bonuses == ()

    def test_speed_bonus_capped(self):
        result = quote(ActivityKind.MISSION, 100, BonusFlags(days_ahead=20))

        assert result.bonuses == (("Speed Bonus", 50),)

    def test_multipliers_stack_multiplicatively(self):
        # Arrange
        context = MultiplierContext(
            subscription=SubscriptionTier.PATHFINDER,
            adventure_number=3,
            double_xp=True,
            weekend=True,
        )

        # Act
        result = quote(ActivityKind.MISSION, 100, None, context)

        # Assert
        assert result.final_amount == 288
        assert result.applied_multipliers == (
            ("PATHFINDER", 1.2),
            ("Adventure 3", 1.2),
            ("Double XP Event", 2.0),
        )

    def test_weekend_without_event(self):
        result = quote(ActivityKind.MISSION, 100, None, MultiplierContext(weekend=True))

        assert result.final_amount == 125

    def test_result_is_floored_without_float_drift(self):
        context = MultiplierContext(subscription=SubscriptionTier.CONTENDER)

        assert quote(ActivityKind.CHECKPOINT, 5, None, context).final_amount == 5
        assert quote(ActivityKind.CHECKPOINT, 10, None, context).final_amount == 11

    def test_balance_tier_multiplier(self):
        stack = multiplier_stack(MultiplierContext(balance=1_000))

        assert stack == [("Beginner Tier", 1.05)]

    def test_zero_base_bonus_is_multiplied(self):
        result = streak_reward(7, MultiplierContext(double_xp=True))

        assert result.base_amount == 0
        assert result.final_amount == 100

    @pytest.mark.parametrize("base", [-1, 1.5, True, "10"])
    def test_invalid_base(self, base):
        with pytest.raises(ValidationError):
            quote(ActivityKind.MISSION, base)

    def test_quote_to_dict(self):
        payload = quote(ActivityKind.MISSION, 100, BonusFlags(streak_days=10)).to_dict()

        assert payload["bonuses"] == [{"label": "Streak Bonus", "amount": 16}]
        assert payload["final_amount"] == 116


# ============================================================================
# PER-ACTIVITY HELPERS
# ============================================================================


@pytest.mark.unit
class TestActivityRewards:
    def test_checkpoint_first_try(self):
        assert checkpoint_reward().final_amount == 20
        assert checkpoint_reward(CheckpointOptions(is_first_try=False)).final_amount == 5

    def test_checkpoint_perfect(self):
        result = checkpoint_reward(CheckpointOptions(is_perfect=True, is_first_try=False))

        assert result.bonuses == (("Perfect Score", 10),)

    def test_mission_xp_excludes_checkpoints(self):
        assert mission_reward().final_amount == 25

    def test_mission_baraka_rolls_in_checkpoints(self):
        result = mission_reward(MissionOptions(checkpoints_completed=5), currency=BARAKA)

        assert result.bonuses == (("Checkpoint Rewards", 5),)
        assert result.final_amount == 10

    def test_mission_baraka_first_try(self):
        result = mission_reward(MissionOptions(is_first_try=True), currency=BARAKA)

        assert result.final_amount == 20

    def test_stage_difficulty_and_adventure_multiplier(self):
        options = StageOptions(stage_number=7)

        xp = stage_reward(options)
        baraka = stage_reward(options, currency=BARAKA)

        assert xp.bonuses == (("Stage Difficulty", 60),)
        assert xp.final_amount == 176
        assert baraka.final_amount == 35

    def test_first_stage_has_no_difficulty_line(self):
        assert stage_reward(StageOptions(stage_number=1)).bonuses == ()

    def test_adventure(self):
        options = AdventureOptions(adventure_number=3)

        assert adventure_reward(options).final_amount == 840
        assert adventure_reward(options, currency=BARAKA).final_amount == 120


# ============================================================================
# STREAKS
# ============================================================================


@pytest.mark.unit
class TestStreakRewards:
    def test_xp_milestones(self):
        result = streak_reward(30)

        assert result.bonuses == (("Week Streak", 50), ("Month Streak", 200))
        assert result.final_amount == 250

    def test_baraka_consistency(self):
        result = streak_reward(30, currency=BARAKA)

        assert result.bonuses == (("Weekly Consistency", 12), ("Month Streak", 10))
        assert result.final_amount == 22

    def test_no_streak(self):
        assert streak_reward(0).final_amount == 0

    def test_negative_streak(self):
        with pytest.raises(ValidationError):
            streak_reward(-1)

    def test_next_milestone(self):
        assert next_streak_milestone(10) == (30, 20)
        assert next_streak_milestone(10, BARAKA) == (30, 20)
        assert next_streak_milestone(120) is None
