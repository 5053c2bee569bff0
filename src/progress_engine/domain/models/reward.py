"""
Reward value objects.

Purpose
-------
Typed inputs and outputs of the reward calculator: the activity being
rewarded, the bonus flags earned, the multiplier context of the learner, the
per-activity option structs, and the resulting ``RewardQuote``.

Design Notes
------------
- All value objects are frozen dataclasses with explicit defaults;
  ``__post_init__`` validates ranges.
- A quote is a pure calculation result; nothing in the engine persists it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from progress_engine.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_range,
)
from progress_engine.domain.models.curriculum import (
    ADVENTURE_COUNT,
    BITES_PER_MISSION,
    MISSIONS_PER_STAGE,
    STAGE_COUNT,
)


class ActivityKind(str, Enum):
    CHECKPOINT = "checkpoint"
    MISSION = "mission"
    STAGE = "stage"
    ADVENTURE = "adventure"
    STREAK = "streak"


class RewardCurrency(str, Enum):
    XP = "xp"
    BARAKA = "baraka"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    CONTENDER = "CONTENDER"
    PATHFINDER = "PATHFINDER"
    NAVIGATORS_CIRCLE = "NAVIGATORS_CIRCLE"


@dataclass(frozen=True)
class BonusFlags:
    """
    Bonuses earned on top of an activity's base amount.

    Attributes
    ----------
    perfect_score : int
        Number of perfect-scored units (``True`` counts as one)
    first_try : bool
        Completed without a retry
    days_ahead : int
        Days ahead of schedule (speed bonus)
    streak_days : int
        Current daily streak (streak bonus from 3 days)
    party_contribution : bool
        Contributed to a party's success
    """

    perfect_score: int = 0
    first_try: bool = False
    days_ahead: int = 0
    streak_days: int = 0
    party_contribution: bool = False

    def __post_init__(self) -> None:
        validate_non_negative(int(self.perfect_score), "perfect_score")
        validate_non_negative(self.days_ahead, "days_ahead")
        validate_non_negative(self.streak_days, "streak_days")


@dataclass(frozen=True)
class MultiplierContext:
    """
    Everything about the learner and the moment that scales a reward.

    ``adventure_number`` and ``balance`` are optional; when absent their
    multipliers are 1.0.
    """

    subscription: SubscriptionTier = SubscriptionTier.FREE
    adventure_number: Optional[int] = None
    balance: Optional[int] = None
    double_xp: bool = False
    weekend: bool = False
    holiday: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "subscription", SubscriptionTier(self.subscription))
        if self.adventure_number is not None:
            validate_range(self.adventure_number, 0, ADVENTURE_COUNT - 1, "adventure_number")


# ============================================================================
# OPTION STRUCTS
# ============================================================================


@dataclass(frozen=True)
class CheckpointOptions:
    is_perfect: bool = False
    is_first_try: bool = True
    days_ahead: int = 0
    streak_days: int = 0

    def __post_init__(self) -> None:
        validate_non_negative(self.days_ahead, "days_ahead")
        validate_non_negative(self.streak_days, "streak_days")


@dataclass(frozen=True)
class MissionOptions:
    """
    Options for a completed mission.

    ``checkpoints_completed`` only contributes to Baraka quotes; checkpoint XP
    is awarded per checkpoint as it is passed.
    """

    checkpoints_completed: int = BITES_PER_MISSION
    perfect_checkpoints: int = 0
    is_first_try: bool = False
    is_party_mission: bool = False
    days_ahead: int = 0
    streak_days: int = 0

    def __post_init__(self) -> None:
        validate_range(self.checkpoints_completed, 0, BITES_PER_MISSION, "checkpoints_completed")
        validate_range(self.perfect_checkpoints, 0, self.checkpoints_completed, "perfect_checkpoints")
        validate_non_negative(self.days_ahead, "days_ahead")
        validate_non_negative(self.streak_days, "streak_days")


@dataclass(frozen=True)
class StageOptions:
    stage_number: int = 1
    perfect_missions: int = 0
    days_ahead: int = 0
    streak_days: int = 0

    def __post_init__(self) -> None:
        validate_range(self.stage_number, 1, STAGE_COUNT, "stage_number")
        validate_range(self.perfect_missions, 0, MISSIONS_PER_STAGE, "perfect_missions")
        validate_non_negative(self.days_ahead, "days_ahead")
        validate_non_negative(self.streak_days, "streak_days")


@dataclass(frozen=True)
class AdventureOptions:
    adventure_number: int = 1

    def __post_init__(self) -> None:
        validate_range(self.adventure_number, 0, ADVENTURE_COUNT - 1, "adventure_number")


# ============================================================================
# QUOTE
# ============================================================================


@dataclass(frozen=True)
class RewardQuote:
    """
    Result of a reward calculation.

    Attributes
    ----------
    activity : ActivityKind
    currency : RewardCurrency
    base_amount : int
        Amount before bonuses
    bonuses : Tuple[Tuple[str, int], ...]
        ``(label, amount)`` pairs added to the base before multipliers
    multiplier : float
        Product of every applied multiplier
    applied_multipliers : Tuple[Tuple[str, float], ...]
        ``(label, value)`` for each multiplier other than 1.0
    final_amount : int
        ``floor((base_amount + sum(bonuses)) * multiplier)``
    """

    activity: ActivityKind
    currency: RewardCurrency
    base_amount: int
    bonuses: Tuple[Tuple[str, int], ...]
    multiplier: float
    applied_multipliers: Tuple[Tuple[str, float], ...]
    final_amount: int

    def __post_init__(self) -> None:
        validate_non_negative(self.base_amount, "base_amount")
        validate_non_negative(self.final_amount, "final_amount")
        if self.multiplier <= 0:
            raise DomainValidationError("multiplier must be positive", field="multiplier")

    @property
    def bonus_total(self) -> int:
        return sum(amount for _, amount in self.bonuses)

    @property
    def adjusted_base(self) -> int:
        return self.base_amount + self.bonus_total

    @property
    def multiplier_gain(self) -> int:
        """Amount contributed by the multipliers alone."""
        return self.final_amount - self.adjusted_base

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity": self.activity.value,
            "currency": self.currency.value,
            "base_amount": self.base_amount,
            "bonuses": [{"label": label, "amount": amount} for label, amount in self.bonuses],
            "multiplier": self.multiplier,
            "applied_multipliers": [
                {"label": label, "value": value} for label, value in self.applied_multipliers
            ],
            "final_amount": self.final_amount,
        }
