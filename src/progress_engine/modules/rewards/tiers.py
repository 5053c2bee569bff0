"""
Reward tier tables: Baraka balance → tier, and total XP → level.

Purpose
-------
Two independent monotonic lookup tables used by the reward calculator and
shown to learners as status.

Responsibilities
----------------
- ``tier_for`` / ``next_tier`` / ``tier_progress`` over the balance tiers
- ``xp_for_level`` / ``total_xp_for_level`` / ``level_from_xp`` over the level
  curve, plus titles, per-adventure level caps and projections
- ``baraka_issuance_cap`` over the Baraka issuance schedule

Design Notes
------------
- The level curve is defined iteratively with a floor at every step. The
  per-level and cumulative tables are computed once at import in exact
  rational arithmetic; ``level_from_xp`` walks them upward and never inverts
  the exponential in closed form.
- Both tables are static; nothing here reads runtime configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Optional, Tuple

from progress_engine.domain.models.curriculum import validate_stage_number
from progress_engine.modules.shared.constants import (
    BALANCE_TIERS,
    BARAKA_ISSUANCE_SCHEDULE,
    LEVEL_BASE_XP,
    LEVEL_CAPS,
    LEVEL_GROWTH_RATE,
    LEVEL_TITLES,
    MAX_LEVEL,
)
from progress_engine.modules.shared.exceptions import ValidationError
from progress_engine.modules.shared.formulas import ceil_div, xp_for_level as _curve

# ============================================================================
# BALANCE TIERS
# ============================================================================


@dataclass(frozen=True)
class RewardTier:
    """One balance tier. ``multiplier`` scales every reward earned while in it."""

    key: str
    name: str
    threshold: int
    multiplier: float
    color: str


@dataclass(frozen=True)
class NextTier:
    tier: RewardTier
    needed: int
    progress_percent: float


@dataclass(frozen=True)
class TierProgress:
    current: RewardTier
    next: Optional[RewardTier]
    progress_percent: float
    needed: int
    is_max_tier: bool


TIERS: Final[Tuple[RewardTier, ...]] = tuple(RewardTier(*row) for row in BALANCE_TIERS)


def tier_for(balance: int) -> RewardTier:
    """
    Highest tier whose threshold is at or below ``balance``.

    Negative balances fall back to the first tier.

    Example
    -------
    >>> tier_for(999).name, tier_for(1000).name
    ('Starter', 'Beginner')
    """
    for tier in reversed(TIERS):
        if balance >= tier.threshold:
            return tier
    return TIERS[0]


def next_tier(balance: int) -> Optional[NextTier]:
    """
    Smallest tier strictly above ``balance``, or ``None`` at the top tier.

    ``progress_percent`` is ``balance / threshold * 100`` (absolute, not
    relative to the current tier).

    Example
    -------
    >>> next_tier(950).progress_percent
    95.0
    """
    for tier in TIERS:
        if tier.threshold > balance:
            return NextTier(
                tier=tier,
                needed=tier.threshold - balance,
                progress_percent=max(balance, 0) * 100 / tier.threshold,
            )
    return None


def tier_progress(balance: int) -> TierProgress:
    """Progress through the current tier's range, clamped to 0..100."""
    current = tier_for(balance)
    upcoming = next_tier(balance)
    if upcoming is None:
        return TierProgress(current, None, 100.0, 0, True)

    range_size = upcoming.tier.threshold - current.threshold
    percent = (balance - current.threshold) * 100 / range_size
    return TierProgress(
        current=current,
        next=upcoming.tier,
        progress_percent=min(100.0, max(0.0, percent)),
        needed=upcoming.needed,
        is_max_tier=False,
    )


# ============================================================================
# ISSUANCE
# ============================================================================


@dataclass(frozen=True)
class IssuanceCap:
    """Baraka the platform may issue across the schedule range a stage falls in."""

    stage_number: int
    schedule_start: int
    cap: int
    cumulative: int


def baraka_issuance_cap(stage_number: int) -> IssuanceCap:
    """
    Issuance cap for the schedule range containing ``stage_number``.

    Example
    -------
    >>> baraka_issuance_cap(12).cumulative
    100000
    """
    validate_stage_number(stage_number)
    start, cap, cumulative = BARAKA_ISSUANCE_SCHEDULE[0]
    for row in BARAKA_ISSUANCE_SCHEDULE:
        if row[0] > stage_number:
            break
        start, cap, cumulative = row
    return IssuanceCap(stage_number, start, cap, cumulative)


# ============================================================================
# LEVELS
# ============================================================================


@dataclass(frozen=True)
class LevelInfo:
    """
    Where a total XP amount lands on the level curve.

    Attributes
    ----------
    level : int
    total_xp : int
    xp_into_level : int
        XP earned since reaching ``level``
    xp_for_next_level : int
        Size of the next level step (the max-level step at the cap)
    xp_needed : int
        XP still missing for the next level
    progress_percent : float
        0..100; 100 at the cap
    is_max_level : bool
    """

    level: int
    total_xp: int
    xp_into_level: int
    xp_for_next_level: int
    xp_needed: int
    progress_percent: float
    is_max_level: bool


@dataclass(frozen=True)
class LevelProjection:
    current_level: int
    target_level: int
    current_xp: int
    target_xp: int
    xp_needed: int
    daily_xp: int
    days_needed: int
    weeks_needed: int
    already_reached: bool


# index n holds the step/cumulative value for level n; index 0 is unused
_STEP_XP: Final[Tuple[int, ...]] = tuple(
    _curve(n, LEVEL_BASE_XP, LEVEL_GROWTH_RATE, MAX_LEVEL) for n in range(MAX_LEVEL + 1)
)


def _cumulative(steps: Tuple[int, ...]) -> Tuple[int, ...]:
    totals = [0, 0]
    for n in range(2, len(steps)):
        totals.append(totals[-1] + steps[n])
    return tuple(totals)


_TOTAL_XP: Final[Tuple[int, ...]] = _cumulative(_STEP_XP)


def xp_for_level(level: int) -> int:
    """
    XP needed to go from ``level - 1`` to ``level``.

    Example
    -------
    >>> [xp_for_level(n) for n in (1, 2, 3, 4, 5)]
    [0, 100, 150, 225, 337]
    """
    if level <= 1:
        return 0
    return _STEP_XP[min(level, MAX_LEVEL)]


def total_xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach ``level`` from level 1 (capped at the max level)."""
    if level <= 1:
        return 0
    return _TOTAL_XP[min(level, MAX_LEVEL)]


def level_from_xp(total_xp: int) -> LevelInfo:
    """
    Walk the curve upward until the next step would exceed ``total_xp``.

    Example
    -------
    >>> info = level_from_xp(260)
    >>> info.level, info.xp_into_level, info.xp_needed
    (3, 10, 215)
    """
    xp = max(int(total_xp), 0)
    level = 1
    accumulated = 0
    while level < MAX_LEVEL:
        step = xp_for_level(level + 1)
        if accumulated + step > xp:
            break
        accumulated += step
        level += 1

    is_max = level >= MAX_LEVEL
    step = xp_for_level(level + 1)
    into_level = xp - accumulated
    percent = 100.0 if is_max else into_level * 100 / step
    return LevelInfo(
        level=level,
        total_xp=xp,
        xp_into_level=into_level,
        xp_for_next_level=step,
        xp_needed=max(step - into_level, 0) if not is_max else 0,
        progress_percent=min(100.0, max(0.0, percent)),
        is_max_level=is_max,
    )


def level_title(level: int) -> str:
    """
    Title of the highest title threshold at or below ``level``.

    Example
    -------
    >>> level_title(12)
    'Apprentice'
    """
    title = LEVEL_TITLES[1]
    for threshold in sorted(LEVEL_TITLES):
        if level >= threshold:
            title = LEVEL_TITLES[threshold]
    return title


def level_cap_for_adventure(adventure_number: int) -> int:
    """Highest level reachable while in an adventure; adventure 0 shares adventure 1's cap."""
    key = min(max(adventure_number, 1), max(LEVEL_CAPS))
    return LEVEL_CAPS.get(key, MAX_LEVEL)


def project_time_to_level(current_xp: int, target_level: int, daily_xp: int) -> LevelProjection:
    """
    Days of ``daily_xp`` needed to reach ``target_level``.

    Raises
    ------
    ValidationError
        If ``daily_xp`` is not positive or ``target_level`` is out of range.
    """
    if daily_xp <= 0:
        raise ValidationError("daily_xp", f"must be positive, got {daily_xp}")
    if not 1 <= target_level <= MAX_LEVEL:
        raise ValidationError("target_level", f"must be between 1 and {MAX_LEVEL}, got {target_level}")

    current = level_from_xp(current_xp)
    target_xp = total_xp_for_level(target_level)
    if current.level >= target_level:
        return LevelProjection(
            current_level=current.level,
            target_level=target_level,
            current_xp=current.total_xp,
            target_xp=target_xp,
            xp_needed=0,
            daily_xp=daily_xp,
            days_needed=0,
            weeks_needed=0,
            already_reached=True,
        )

    xp_needed = target_xp - current.total_xp
    days = ceil_div(xp_needed, daily_xp)
    return LevelProjection(
        current_level=current.level,
        target_level=target_level,
        current_xp=current.total_xp,
        target_xp=target_xp,
        xp_needed=xp_needed,
        daily_xp=daily_xp,
        days_needed=days,
        weeks_needed=ceil_div(days, 7),
        already_reached=False,
    )
