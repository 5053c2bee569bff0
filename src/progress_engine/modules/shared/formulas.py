"""
Progress Engine Formulas

Purpose
-------
Pure calculation functions behind progress percentages, the level curve,
proportional bonuses, multiplier stacking and retry pricing.

Design Notes
------------
All formulas:
- Accept parameters explicitly (no config access)
- Use integer, ``Fraction`` or ``Decimal`` arithmetic so results never
  depend on binary floating point rounding
- Floor wherever a fractional amount becomes a reward or a cost

Usage
-----
    from progress_engine.modules.shared.formulas import calculate_percentage

    calculate_percentage(3, 8)     # 38
    xp_for_level(3, 100, "1.5")    # 150
"""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Union

Rate = Union[int, str, Fraction]


def calculate_percentage(completed: int, total: int) -> int:
    """
    Integer percentage of ``completed / total``, rounded half-up and clamped to 0..100.

    A zero (or negative) total yields 0.

    Example:
        >>> calculate_percentage(1, 8)
        13
        >>> calculate_percentage(5, 5)
        100
    """
    if total <= 0:
        return 0
    completed = min(max(completed, 0), total)
    return (200 * completed + total) // (2 * total)


def xp_for_level(level: int, base_xp: int, growth_rate: Rate, max_level: int) -> int:
    """
    XP required to advance from ``level - 1`` to ``level``.

    ``floor(base_xp * growth_rate ** (level - 2))`` in exact rational
    arithmetic; level 1 costs nothing and levels above ``max_level`` cost the
    same as ``max_level``.

    A double-precision ``pow`` drifts from this from about level 82 on (the
    step exceeds 2**53), so values there differ from float-based clients in
    the low digits. Level round trips are unaffected.

    Example:
        >>> xp_for_level(2, 100, "1.5", 100)
        100
        >>> xp_for_level(4, 100, "1.5", 100)
        225
    """
    if level <= 1:
        return 0
    level = min(level, max_level)
    return math.floor(Fraction(base_xp) * Fraction(growth_rate) ** (level - 2))


def percent_of(amount: int, percent: int) -> int:
    """Floor of ``percent`` % of ``amount``."""
    return amount * percent // 100


def speed_bonus_percent(days_ahead: int, per_day: int, cap: int) -> int:
    if days_ahead <= 0:
        return 0
    return min(days_ahead * per_day, cap)


def streak_bonus_percent(streak_days: int, min_days: int, per_day: int, cap: int) -> int:
    """
    Percent of base awarded for a running streak.

    Example:
        >>> streak_bonus_percent(10, 3, 2, 100)
        16
        >>> streak_bonus_percent(2, 3, 2, 100)
        0
    """
    if streak_days < min_days:
        return 0
    return min((streak_days - 2) * per_day, cap)


def scale_by_percent_steps(base: int, steps: int, percent_per_step: int) -> int:
    """
    ``floor(base * (1 + steps * percent_per_step / 100))``.

    Example:
        >>> scale_by_percent_steps(25, 1, 5)   # stage 2 Baraka
        26
    """
    return base * (100 + steps * percent_per_step) // 100


def combine_multipliers(multipliers: Iterable[float]) -> Decimal:
    """Product of multipliers, each taken at its shortest decimal representation."""
    product = Decimal(1)
    for value in multipliers:
        product *= Decimal(str(value))
    return product


def apply_multiplier(amount: int, multiplier: Decimal) -> int:
    """Floor of ``amount * multiplier``."""
    return math.floor(Decimal(amount) * multiplier)


def retry_cost(attempt: int, base_cost: int, growth_rate: Rate) -> int:
    """
    Baraka cost of the ``attempt``-th retry: ``floor(base_cost * growth ** (attempt - 1))``.

    Attempt 0 (the first, unpaid try) is free.

    Example:
        >>> retry_cost(1, 50, "1.5")
        50
        >>> retry_cost(3, 50, "1.5")
        112
    """
    if attempt <= 0:
        return 0
    return math.floor(Fraction(base_cost) * Fraction(growth_rate) ** (attempt - 1))


def scaled_cost(full_cost: int, units: int, full_units: int) -> int:
    """``floor(full_cost * units / full_units)``, e.g. provisional retry pricing."""
    return full_cost * max(units, 0) // full_units


def ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)
