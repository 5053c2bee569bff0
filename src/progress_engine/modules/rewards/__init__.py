"""
Rewards module: tier tables, reward calculator and retry pricing.
"""

from progress_engine.modules.rewards.calculator import (
    Achievement,
    AchievementTotal,
    PotentialEarnings,
    RemainingXP,
    StageEarnings,
    achievement_xp,
    achievements_xp,
    baraka_equivalent,
    estimate_remaining_xp,
    potential_earnings,
    xp_equivalent,
    adventure_reward,
    checkpoint_reward,
    compute_bonuses,
    mission_reward,
    multiplier_stack,
    next_streak_milestone,
    quote,
    stage_reward,
    streak_reward,
)
from progress_engine.modules.rewards.costs import (
    Affordability,
    can_afford,
    conversion_cost,
    provisional_retry_cost,
    retry_cost,
)
from progress_engine.modules.rewards.tiers import (
    TIERS,
    IssuanceCap,
    LevelInfo,
    LevelProjection,
    NextTier,
    RewardTier,
    TierProgress,
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

__all__ = [
    "quote",
    "compute_bonuses",
    "multiplier_stack",
    "checkpoint_reward",
    "mission_reward",
    "stage_reward",
    "adventure_reward",
    "streak_reward",
    "next_streak_milestone",
    "Achievement",
    "AchievementTotal",
    "achievement_xp",
    "achievements_xp",
    "xp_equivalent",
    "baraka_equivalent",
    "RemainingXP",
    "StageEarnings",
    "PotentialEarnings",
    "estimate_remaining_xp",
    "potential_earnings",
    "Affordability",
    "can_afford",
    "conversion_cost",
    "provisional_retry_cost",
    "retry_cost",
    "TIERS",
    "RewardTier",
    "NextTier",
    "TierProgress",
    "LevelInfo",
    "LevelProjection",
    "tier_for",
    "next_tier",
    "tier_progress",
    "xp_for_level",
    "total_xp_for_level",
    "level_from_xp",
    "level_title",
    "level_cap_for_adventure",
    "project_time_to_level",
    "IssuanceCap",
    "baraka_issuance_cap",
]
