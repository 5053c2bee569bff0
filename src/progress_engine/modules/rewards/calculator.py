"""
Reward Calculator

Purpose
-------
Turn a completed activity into an integer XP or Baraka amount: base value,
plus additive bonuses, times the multiplier stack, floored.

Responsibilities
----------------
- ``quote``: the general rule for any activity, base amount and flags
- Per-activity helpers (``checkpoint_reward``, ``mission_reward``,
  ``stage_reward``, ``adventure_reward``) deriving base and flags from the
  option structs and the XP/Baraka tables
- ``streak_reward``: milestone rewards for a running daily streak
- Achievement XP lookups, XP/Baraka equivalents and whole-curriculum
  projections (``estimate_remaining_xp``, ``potential_earnings``)

Non-Responsibilities
--------------------
- Applying quotes to a balance or ledger (callers do that)
- Deciding *when* an activity is complete (see the progress service)

Calculation Order
-----------------
1. Bonuses are computed against the *base* amount and summed with it
   (perfect score, first try, speed, streak, party contribution).
2. Multipliers are multiplied together as ``Decimal``: subscription,
   adventure difficulty, balance tier, then events (double XP, weekend
   unless double XP is active, holiday).
3. ``final_amount = floor((base + bonuses) * product)``.

A zero base with bonuses is still multiplied.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

from progress_engine.core.logging.logger import get_logger
from progress_engine.domain.models.curriculum import (
    BITES_PER_MISSION,
    MISSIONS_PER_STAGE,
    STAGE_COUNT,
    adventure_for_stage,
    validate_stage_number,
)
from progress_engine.domain.models.reward import (
    ActivityKind,
    AdventureOptions,
    BonusFlags,
    CheckpointOptions,
    MissionOptions,
    MultiplierContext,
    RewardCurrency,
    RewardQuote,
    StageOptions,
)
from progress_engine.modules.rewards.tiers import tier_for
from progress_engine.modules.shared import constants as C
from progress_engine.modules.shared.exceptions import ValidationError
from progress_engine.modules.shared.formulas import (
    apply_multiplier,
    combine_multipliers,
    percent_of,
    scale_by_percent_steps,
    speed_bonus_percent,
    streak_bonus_percent,
)

logger = get_logger(__name__)

Labelled = List[Tuple[str, int]]


# ============================================================================
# GENERAL RULE
# ============================================================================


def compute_bonuses(
    activity: ActivityKind,
    currency: RewardCurrency,
    base_amount: int,
    flags: BonusFlags,
) -> Labelled:
    """
    Bonus lines for ``flags``, each computed against ``base_amount``.

    Zero-valued bonuses are omitted.
    """
    activity = ActivityKind(activity)
    currency = RewardCurrency(currency)
    bonuses: Labelled = []

    perfect_unit = C.PERFECT_SCORE_BONUS[currency.value].get(activity.value, 0)
    if flags.perfect_score and perfect_unit:
        bonuses.append(("Perfect Score", perfect_unit * int(flags.perfect_score)))

    first_try = C.FIRST_TRY_BONUS[currency.value].get(activity.value, 0)
    if flags.first_try and first_try:
        bonuses.append(("First Try", first_try))

    speed_percent = speed_bonus_percent(
        flags.days_ahead, C.SPEED_BONUS_PERCENT_PER_DAY, C.SPEED_BONUS_MAX_PERCENT
    )
    if speed_percent:
        bonuses.append(("Speed Bonus", percent_of(base_amount, speed_percent)))

    streak_percent = streak_bonus_percent(
        flags.streak_days,
        C.STREAK_BONUS_MIN_DAYS,
        C.STREAK_BONUS_PERCENT_PER_DAY,
        C.STREAK_BONUS_MAX_PERCENT,
    )
    if streak_percent:
        bonuses.append(("Streak Bonus", percent_of(base_amount, streak_percent)))

    if flags.party_contribution:
        bonuses.append(("Party Contribution", C.PARTY_CONTRIBUTION_BONUS[currency.value]))

    return [(label, amount) for label, amount in bonuses if amount > 0]


def multiplier_stack(context: MultiplierContext) -> List[Tuple[str, float]]:
    """
    Every multiplier that applies in ``context``, in application order.

    Multipliers equal to 1.0 are left out.
    """
    stack: List[Tuple[str, float]] = []

    subscription = C.SUBSCRIPTION_MULTIPLIERS[context.subscription.value]
    stack.append((context.subscription.value, subscription))

    if context.adventure_number is not None:
        stack.append(
            (f"Adventure {context.adventure_number}", C.ADVENTURE_MULTIPLIERS[context.adventure_number])
        )

    if context.balance is not None:
        tier = tier_for(context.balance)
        stack.append((f"{tier.name} Tier", tier.multiplier))

    if context.double_xp:
        stack.append(("Double XP Event", C.DOUBLE_XP_MULTIPLIER))
    if context.weekend and not context.double_xp:
        stack.append(("Weekend Bonus", C.WEEKEND_MULTIPLIER))
    if context.holiday:
        stack.append(("Holiday Bonus", C.HOLIDAY_MULTIPLIER))

    return [(label, value) for label, value in stack if value != 1.0]


def quote(
    activity: ActivityKind,
    base_amount: int,
    bonus_flags: Optional[BonusFlags] = None,
    multiplier_context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
    extra_bonuses: Tuple[Tuple[str, int], ...] = (),
) -> RewardQuote:
    """
    Quote a reward for one activity.

    Parameters
    ----------
    activity : ActivityKind
    base_amount : int
        Non-negative base before bonuses
    bonus_flags : Optional[BonusFlags]
        Bonuses earned; none by default
    multiplier_context : Optional[MultiplierContext]
        Learner/event context; FREE with no adventure or balance by default
    currency : RewardCurrency
    extra_bonuses : Tuple[Tuple[str, int], ...]
        Pre-computed ``(label, amount)`` lines added alongside flag bonuses

    Example
    -------
    >>> q = quote(ActivityKind.MISSION, 100, BonusFlags(streak_days=10))
    >>> q.bonuses, q.final_amount
    ((('Streak Bonus', 16),), 116)
    """
    if isinstance(base_amount, bool) or not isinstance(base_amount, int) or base_amount < 0:
        raise ValidationError("base_amount", f"must be a non-negative integer, got {base_amount!r}")

    activity = ActivityKind(activity)
    currency = RewardCurrency(currency)
    flags = bonus_flags or BonusFlags()
    context = multiplier_context or MultiplierContext()

    bonuses = [(label, amount) for label, amount in extra_bonuses if amount > 0]
    bonuses.extend(compute_bonuses(activity, currency, base_amount, flags))

    applied = multiplier_stack(context)
    product = combine_multipliers(value for _, value in applied)
    adjusted = base_amount + sum(amount for _, amount in bonuses)
    final_amount = apply_multiplier(adjusted, product)

    logger.debug(
        "Reward quoted",
        extra={
            "activity": activity.value,
            "currency": currency.value,
            "base_amount": base_amount,
            "adjusted_base": adjusted,
            "multiplier": str(product),
            "final_amount": final_amount,
        },
    )

    return RewardQuote(
        activity=activity,
        currency=currency,
        base_amount=base_amount,
        bonuses=tuple(bonuses),
        multiplier=float(product),
        applied_multipliers=tuple(applied),
        final_amount=final_amount,
    )


# ============================================================================
# PER-ACTIVITY HELPERS
# ============================================================================


def checkpoint_reward(
    options: Optional[CheckpointOptions] = None,
    context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
) -> RewardQuote:
    options = options or CheckpointOptions()
    base = C.XP_CHECKPOINT if RewardCurrency(currency) is RewardCurrency.XP else C.BARAKA_CHECKPOINT
    flags = BonusFlags(
        perfect_score=int(options.is_perfect),
        first_try=options.is_first_try,
        days_ahead=options.days_ahead,
        streak_days=options.streak_days,
    )
    return quote(ActivityKind.CHECKPOINT, base, flags, context, currency)


def mission_reward(
    options: Optional[MissionOptions] = None,
    context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
) -> RewardQuote:
    """
    Reward for completing a mission.

    Baraka quotes roll the mission's checkpoint rewards into the quote;
    XP quotes do not, since checkpoint XP is granted as each one passes.
    """
    options = options or MissionOptions()
    currency = RewardCurrency(currency)
    extra: Tuple[Tuple[str, int], ...] = ()
    if currency is RewardCurrency.XP:
        base = C.XP_MISSION
    else:
        base = C.BARAKA_MISSION
        extra = (("Checkpoint Rewards", options.checkpoints_completed * C.BARAKA_CHECKPOINT),)

    flags = BonusFlags(
        perfect_score=options.perfect_checkpoints,
        first_try=options.is_first_try,
        days_ahead=options.days_ahead,
        streak_days=options.streak_days,
        party_contribution=options.is_party_mission,
    )
    return quote(ActivityKind.MISSION, base, flags, context, currency, extra)


def stage_reward(
    options: Optional[StageOptions] = None,
    context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
) -> RewardQuote:
    """
    Reward for completing a stage; later stages are worth more.

    XP adds 10 per stage after the first; Baraka scales the base by 5% per
    stage after the first (floored). The adventure multiplier defaults to the
    stage's own adventure.
    """
    options = options or StageOptions()
    currency = RewardCurrency(currency)
    steps = options.stage_number - 1

    if currency is RewardCurrency.XP:
        base = C.XP_STAGE
        difficulty = steps * C.XP_STAGE_DIFFICULTY_STEP
    else:
        base = C.BARAKA_STAGE
        difficulty = scale_by_percent_steps(base, steps, C.BARAKA_STAGE_DIFFICULTY_PERCENT) - base

    context = context or MultiplierContext()
    if context.adventure_number is None:
        context = replace(context, adventure_number=adventure_for_stage(options.stage_number))

    flags = BonusFlags(
        perfect_score=options.perfect_missions,
        days_ahead=options.days_ahead,
        streak_days=options.streak_days,
    )
    return quote(
        ActivityKind.STAGE, base, flags, context, currency, (("Stage Difficulty", difficulty),)
    )


def adventure_reward(
    options: Optional[AdventureOptions] = None,
    context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
) -> RewardQuote:
    options = options or AdventureOptions()
    currency = RewardCurrency(currency)
    extra: Tuple[Tuple[str, int], ...] = ()
    if currency is RewardCurrency.XP:
        base = C.XP_ADVENTURE
        extra = (("Adventure Level", max(options.adventure_number - 1, 0) * C.XP_ADVENTURE_LEVEL_STEP),)
    else:
        base = C.BARAKA_ADVENTURE

    context = replace(context or MultiplierContext(), adventure_number=options.adventure_number)
    return quote(ActivityKind.ADVENTURE, base, None, context, currency, extra)


def streak_reward(
    streak_days: int,
    context: Optional[MultiplierContext] = None,
    currency: RewardCurrency = RewardCurrency.XP,
) -> RewardQuote:
    """
    Milestone reward for a running daily streak.

    XP pays each reached milestone (7, 30, 90 days). Baraka pays a
    consistency bonus per full week plus its own milestones (30, 60, 90).
    The quote has a zero base; every amount is a bonus line.

    Example
    -------
    >>> streak_reward(30).bonuses
    (('Week Streak', 50), ('Month Streak', 200))
    """
    if streak_days < 0:
        raise ValidationError("streak_days", f"must be non-negative, got {streak_days}")

    currency = RewardCurrency(currency)
    lines: Labelled = []
    if currency is RewardCurrency.XP:
        milestones = C.XP_STREAK_MILESTONES
    else:
        weeks = streak_days // C.BARAKA_CONSISTENCY_INTERVAL_DAYS
        lines.append(("Weekly Consistency", weeks * C.BARAKA_CONSISTENCY_BONUS))
        milestones = C.BARAKA_STREAK_MILESTONES

    lines.extend((label, amount) for days, amount, label in milestones if streak_days >= days)
    return quote(ActivityKind.STREAK, 0, None, context, currency, tuple(lines))


def next_streak_milestone(
    streak_days: int, currency: RewardCurrency = RewardCurrency.XP
) -> Optional[Tuple[int, int]]:
    """``(milestone_days, days_left)`` for the next unreached milestone, or ``None``."""
    milestones = (
        C.XP_STREAK_MILESTONES
        if RewardCurrency(currency) is RewardCurrency.XP
        else C.BARAKA_STREAK_MILESTONES
    )
    for days, _, _ in milestones:
        if streak_days < days:
            return days, days - streak_days
    return None


# ============================================================================
# ACHIEVEMENTS
# ============================================================================


@dataclass(frozen=True)
class Achievement:
    achievement_id: str
    name: str
    xp: int


@dataclass(frozen=True)
class AchievementTotal:
    total_xp: int
    achievements: Tuple[Achievement, ...]

    @property
    def count(self) -> int:
        return len(self.achievements)


def achievement_xp(achievement_id: str) -> Optional[Achievement]:
    """The achievement's XP entry, or ``None`` for an unknown id."""
    entry = C.XP_ACHIEVEMENTS.get(achievement_id)
    if entry is None:
        return None
    xp, name = entry
    return Achievement(achievement_id, name, xp)


def achievements_xp(achievement_ids: Iterable[str]) -> AchievementTotal:
    """
    Sum the XP of the given achievements.

    Unknown ids are skipped and logged; a repeated id counts each time.
    """
    found: List[Achievement] = []
    for achievement_id in achievement_ids:
        achievement = achievement_xp(achievement_id)
        if achievement is None:
            logger.warning(
                "Skipping unknown achievement",
                extra={"achievement_id": achievement_id},
            )
            continue
        found.append(achievement)
    return AchievementTotal(sum(a.xp for a in found), tuple(found))


# ============================================================================
# XP / BARAKA EQUIVALENTS
# ============================================================================


def _exchange_rate(activity: str) -> Tuple[int, int]:
    try:
        return C.XP_TO_BARAKA_RATES[activity]
    except KeyError:
        raise ValidationError(
            "activity",
            f"must be one of {sorted(C.XP_TO_BARAKA_RATES)}, got {activity!r}",
        ) from None


def xp_equivalent(baraka: int, activity: str = "checkpoint") -> int:
    """
    XP worth the same as ``baraka`` at the activity's rate, floored.

    Example
    -------
    >>> xp_equivalent(3)
    15
    """
    if baraka < 0:
        raise ValidationError("baraka", f"must be non-negative, got {baraka}")
    xp_unit, baraka_unit = _exchange_rate(activity)
    return baraka * xp_unit // baraka_unit


def baraka_equivalent(xp: int, activity: str = "checkpoint") -> int:
    """Baraka worth the same as ``xp`` at the activity's rate, floored."""
    if xp < 0:
        raise ValidationError("xp", f"must be non-negative, got {xp}")
    xp_unit, baraka_unit = _exchange_rate(activity)
    return xp * baraka_unit // xp_unit


# ============================================================================
# PROJECTIONS
# ============================================================================


@dataclass(frozen=True)
class RemainingXP:
    total_xp: int
    breakdown: Tuple[Tuple[str, int], ...]


@dataclass(frozen=True)
class StageEarnings:
    stage_number: int
    stage_reward: int
    mission_rewards: int
    checkpoint_rewards: int

    @property
    def total(self) -> int:
        return self.stage_reward + self.mission_rewards + self.checkpoint_rewards


@dataclass(frozen=True)
class PotentialEarnings:
    total_baraka: int
    stages: Tuple[StageEarnings, ...]


def _check_target(current_stage: int, target_stage: int) -> None:
    validate_stage_number(current_stage)
    validate_stage_number(target_stage)
    if target_stage < current_stage:
        raise ValidationError(
            "target_stage",
            f"must not precede current stage {current_stage}, got {target_stage}",
        )


def estimate_remaining_xp(
    current_stage: int, current_mission: int, target_stage: int = STAGE_COUNT
) -> RemainingXP:
    """
    Base XP still available between a position and the end of ``target_stage``.

    Each mission is worth its base XP plus a checkpoint's XP per bite. The
    rest of the current stage counts the missions after ``current_mission``;
    every later stage adds its stage XP (with difficulty step) and all of its
    missions. Bonuses and multipliers are not included.

    Example
    -------
    >>> estimate_remaining_xp(34, 5).total_xp
    690
    """
    _check_target(current_stage, target_stage)
    if not 1 <= current_mission <= MISSIONS_PER_STAGE:
        raise ValidationError(
            "current_mission",
            f"must be between 1 and {MISSIONS_PER_STAGE}, got {current_mission}",
        )

    per_mission = C.XP_MISSION + BITES_PER_MISSION * C.XP_CHECKPOINT
    lines: Labelled = []
    missions_left = MISSIONS_PER_STAGE - current_mission
    if missions_left > 0:
        lines.append((f"Remaining missions (Stage {current_stage})", missions_left * per_mission))
    for stage in range(current_stage + 1, target_stage + 1):
        stage_xp = C.XP_STAGE + (stage - 1) * C.XP_STAGE_DIFFICULTY_STEP
        lines.append((f"Stage {stage}", stage_xp + MISSIONS_PER_STAGE * per_mission))

    return RemainingXP(sum(amount for _, amount in lines), tuple(lines))


def potential_earnings(current_stage: int, target_stage: int = STAGE_COUNT) -> PotentialEarnings:
    """
    Base Baraka for completing every stage from ``current_stage`` through
    ``target_stage``, the current stage included.

    Example
    -------
    >>> potential_earnings(34).total_baraka
    233
    """
    _check_target(current_stage, target_stage)
    stages = tuple(
        StageEarnings(
            stage_number=stage,
            stage_reward=scale_by_percent_steps(
                C.BARAKA_STAGE, stage - 1, C.BARAKA_STAGE_DIFFICULTY_PERCENT
            ),
            mission_rewards=MISSIONS_PER_STAGE * C.BARAKA_MISSION,
            checkpoint_rewards=MISSIONS_PER_STAGE * BITES_PER_MISSION * C.BARAKA_CHECKPOINT,
        )
        for stage in range(current_stage, target_stage + 1)
    )
    return PotentialEarnings(sum(s.total for s in stages), stages)
