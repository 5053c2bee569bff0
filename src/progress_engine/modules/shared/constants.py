"""
Progress Engine Domain Constants

Purpose
-------
Provide the reward, level and retry-pricing tables that define how learners
are rewarded for progressing through the curriculum.

IMPORTANT:
This module contains REWARD/PROGRESSION constants only. Infrastructure
concerns (cache TTLs, queue sizes, retry policy ceilings) belong in
``progress_engine.core.config``.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by concern (tiers, XP, Baraka, costs, levels, multipliers)
- Multipliers are floats; formulas combine them as ``Decimal(str(value))``
- Growth rates are strings so they convert to exact ``Fraction`` values
- Tables keyed by activity use the ``ActivityKind`` string values
"""

from __future__ import annotations

from typing import Dict, Final, Tuple

# ============================================================================
# BALANCE TIERS
# ============================================================================

# (key, name, threshold, multiplier, color), ascending by threshold
BALANCE_TIERS: Final[Tuple[Tuple[str, str, int, float, str], ...]] = (
    ("STARTER", "Starter", 0, 1.00, "#9ca3af"),
    ("BEGINNER", "Beginner", 1_000, 1.05, "#f97316"),
    ("INTERMEDIATE", "Intermediate", 10_000, 1.10, "#eab308"),
    ("ADVANCED", "Advanced", 50_000, 1.15, "#22c55e"),
    ("EXPERT", "Expert", 100_000, 1.20, "#3b82f6"),
    ("MASTER", "Master", 500_000, 1.25, "#8b5cf6"),
    ("LEGENDARY", "Legendary", 1_000_000, 1.30, "#f59e0b"),
)

# ============================================================================
# XP VALUES
# ============================================================================

XP_CHECKPOINT: Final[int] = 5
XP_MISSION: Final[int] = 25
XP_STAGE: Final[int] = 100
XP_ADVENTURE: Final[int] = 500

XP_PERFECT_CHECKPOINT: Final[int] = 10
XP_PERFECT_MISSION: Final[int] = 20  # per perfect mission in a stage
XP_FIRST_TRY: Final[int] = 15
XP_PARTY_CONTRIBUTION: Final[int] = 10

XP_STAGE_DIFFICULTY_STEP: Final[int] = 10  # per stage after the first
XP_ADVENTURE_LEVEL_STEP: Final[int] = 100  # per adventure after the first

# (streak days, xp, label)
XP_STREAK_MILESTONES: Final[Tuple[Tuple[int, int, str], ...]] = (
    (7, 50, "Week Streak"),
    (30, 200, "Month Streak"),
    (90, 500, "Quarter Streak"),
)

# ============================================================================
# BARAKA VALUES
# ============================================================================

BARAKA_CHECKPOINT: Final[int] = 1
BARAKA_MISSION: Final[int] = 5
BARAKA_STAGE: Final[int] = 25
BARAKA_ADVENTURE: Final[int] = 100

BARAKA_PERFECT_CHECKPOINT: Final[int] = 2
BARAKA_PARTY_CONTRIBUTION: Final[int] = 5
BARAKA_FIRST_MISSION: Final[int] = 10

BARAKA_STAGE_DIFFICULTY_PERCENT: Final[int] = 5  # +5% of base per stage after the first

BARAKA_CONSISTENCY_BONUS: Final[int] = 3  # per full week of streak
BARAKA_CONSISTENCY_INTERVAL_DAYS: Final[int] = 7
BARAKA_STREAK_MILESTONES: Final[Tuple[Tuple[int, int, str], ...]] = (
    (30, 10, "Month Streak"),
    (60, 20, "Two-Month Streak"),
    (90, 30, "Quarter Streak"),
)

# (start stage, cap for the range, cumulative cap), ascending by start stage
BARAKA_ISSUANCE_SCHEDULE: Final[Tuple[Tuple[int, int, int], ...]] = (
    (1, 0, 0),  # GPO Call issues nothing
    (2, 5_000, 5_000),
    (6, 15_000, 20_000),
    (11, 80_000, 100_000),
    (16, 250_000, 350_000),
    (21, 250_000, 600_000),
    (26, 200_000, 800_000),
    (31, 200_000, 1_000_000),
)

# Exchange ratio between the currencies per activity: (xp, baraka)
XP_TO_BARAKA_RATES: Final[Dict[str, Tuple[int, int]]] = {
    "checkpoint": (5, 1),
    "mission": (25, 5),
    "stage": (100, 25),
    "bonus": (50, 10),
}

# ============================================================================
# ACHIEVEMENTS (XP)
# ============================================================================

# achievement id -> (xp, display name)
XP_ACHIEVEMENTS: Final[Dict[str, Tuple[int, str]]] = {
    "complete_10_missions": (100, "10 Missions Complete"),
    "complete_50_missions": (500, "50 Missions Complete"),
    "complete_100_missions": (1_000, "100 Missions Complete"),
    "complete_all_missions": (5_000, "Mission Master"),
    "streak_7": (50, "Week Warrior"),
    "streak_30": (200, "Monthly Marvel"),
    "streak_90": (500, "Quarterly Champion"),
    "streak_365": (2_000, "Year-Round Solver"),
    "perfect_10_checkpoints": (100, "Perfectionist"),
    "perfect_100_checkpoints": (1_000, "Excellence Expert"),
    "no_retry_stage": (250, "First Try Wonder"),
    "honor_10_others": (50, "Encourager"),
    "honor_100_others": (500, "Community Champion"),
    "receive_10_honors": (100, "Respected"),
    "receive_100_honors": (1_000, "Beloved"),
    "first_to_complete": (500, "Trailblazer"),
    "help_new_member": (100, "Welcome Guide"),
    "top_of_leaderboard": (1_000, "Leaderboard Legend"),
}

# ============================================================================
# BONUS RULES
# ============================================================================

SPEED_BONUS_PERCENT_PER_DAY: Final[int] = 5
SPEED_BONUS_MAX_PERCENT: Final[int] = 50

STREAK_BONUS_MIN_DAYS: Final[int] = 3
STREAK_BONUS_PERCENT_PER_DAY: Final[int] = 2
STREAK_BONUS_MAX_PERCENT: Final[int] = 100

# Fixed per-unit bonuses by currency → activity
PERFECT_SCORE_BONUS: Final[Dict[str, Dict[str, int]]] = {
    "xp": {"checkpoint": XP_PERFECT_CHECKPOINT, "mission": XP_PERFECT_CHECKPOINT, "stage": XP_PERFECT_MISSION},
    "baraka": {"checkpoint": BARAKA_PERFECT_CHECKPOINT, "mission": BARAKA_PERFECT_CHECKPOINT},
}
FIRST_TRY_BONUS: Final[Dict[str, Dict[str, int]]] = {
    "xp": {"checkpoint": XP_FIRST_TRY, "mission": XP_FIRST_TRY},
    "baraka": {"mission": BARAKA_FIRST_MISSION},
}
PARTY_CONTRIBUTION_BONUS: Final[Dict[str, int]] = {
    "xp": XP_PARTY_CONTRIBUTION,
    "baraka": BARAKA_PARTY_CONTRIBUTION,
}

# ============================================================================
# MULTIPLIERS
# ============================================================================

SUBSCRIPTION_MULTIPLIERS: Final[Dict[str, float]] = {
    "FREE": 1.0,
    "CONTENDER": 1.1,
    "PATHFINDER": 1.2,
    "NAVIGATORS_CIRCLE": 1.3,
}

# Adventure 0 (GPO Call) and 1 carry no difficulty premium
ADVENTURE_MULTIPLIERS: Final[Dict[int, float]] = {
    0: 1.0,
    1: 1.0,
    2: 1.1,
    3: 1.2,
    4: 1.3,
    5: 1.4,
    6: 1.5,
    7: 1.6,
}

DOUBLE_XP_MULTIPLIER: Final[float] = 2.0
WEEKEND_MULTIPLIER: Final[float] = 1.25  # not applied during double XP
HOLIDAY_MULTIPLIER: Final[float] = 1.5

# ============================================================================
# RETRY COSTS (Baraka)
# ============================================================================

RETRY_BASE_COST: Final[int] = 50
RETRY_COST_GROWTH: Final[str] = "1.5"  # exact rational growth per attempt
PROVISIONAL_RETRY_COST: Final[int] = 100  # at a full stage (5 missions) remaining
CONVERSION_COST: Final[int] = 200

# ============================================================================
# LEVELS
# ============================================================================

LEVEL_BASE_XP: Final[int] = 100  # XP needed for level 2
LEVEL_GROWTH_RATE: Final[str] = "1.5"
MAX_LEVEL: Final[int] = 100

# Max level reachable while in adventure N (1..7)
LEVEL_CAPS: Final[Dict[int, int]] = {
    1: 10,
    2: 20,
    3: 35,
    4: 50,
    5: 65,
    6: 80,
    7: 100,
}

LEVEL_TITLES: Final[Dict[int, str]] = {
    1: "Newcomer",
    5: "Explorer",
    10: "Apprentice",
    15: "Learner",
    20: "Achiever",
    25: "Solver",
    30: "Contributor",
    35: "Leader",
    40: "Mentor",
    45: "Expert",
    50: "Master",
    60: "Champion",
    70: "Legend",
    80: "Visionary",
    90: "Pioneer",
    100: "GPS Luminary",
}
