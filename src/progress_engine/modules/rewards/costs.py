"""
Retry pricing in Baraka.

The retry-rights state machine decides *whether* a grant or conversion is
allowed; this module only prices it.
"""

from __future__ import annotations

from dataclasses import dataclass

from progress_engine.domain.models.curriculum import MISSIONS_PER_STAGE
from progress_engine.modules.shared.constants import (
    CONVERSION_COST,
    PROVISIONAL_RETRY_COST,
    RETRY_BASE_COST,
    RETRY_COST_GROWTH,
)
from progress_engine.modules.shared.exceptions import ValidationError
from progress_engine.modules.shared.formulas import retry_cost as _retry_cost, scaled_cost


@dataclass(frozen=True)
class Affordability:
    can_afford: bool
    balance: int
    cost: int
    remaining: int
    shortfall: int


def retry_cost(attempt: int) -> int:
    """
    Cost of the ``attempt``-th retry (1 = first retry); grows by 1.5x per attempt.

    Example
    -------
    >>> [retry_cost(n) for n in (1, 2, 3, 4)]
    [50, 75, 112, 168]
    """
    if attempt < 0:
        raise ValidationError("attempt", f"must be non-negative, got {attempt}")
    return _retry_cost(attempt, RETRY_BASE_COST, RETRY_COST_GROWTH)


def provisional_retry_cost(missions_remaining: int = MISSIONS_PER_STAGE) -> int:
    """Provisional grant price, scaled by the missions left in the stage."""
    if not 0 <= missions_remaining <= MISSIONS_PER_STAGE:
        raise ValidationError(
            "missions_remaining",
            f"must be between 0 and {MISSIONS_PER_STAGE}, got {missions_remaining}",
        )
    return scaled_cost(PROVISIONAL_RETRY_COST, missions_remaining, MISSIONS_PER_STAGE)


def conversion_cost() -> int:
    return CONVERSION_COST


def can_afford(balance: int, cost: int) -> Affordability:
    return Affordability(
        can_afford=balance >= cost,
        balance=balance,
        cost=cost,
        remaining=balance - cost,
        shortfall=max(0, cost - balance),
    )
