"""
Unit tests for retry pricing.
"""

import pytest

from progress_engine.modules.rewards import (
    can_afford,
    conversion_cost,
    provisional_retry_cost,
    retry_cost,
)
from progress_engine.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestRetryCosts:
    def test_growth(self):
        assert [retry_cost(n) for n in range(1, 5)] == [50, 75, 112, 168]

    def test_first_try_is_free(self):
        assert retry_cost(0) == 0

    def test_negative_attempt(self):
        with pytest.raises(ValidationError):
            retry_cost(-1)

    @pytest.mark.parametrize("remaining, cost", [(5, 100), (2, 40), (1, 20), (0, 0)])
    def test_provisional_scales_with_missions_left(self, remaining, cost):
        assert provisional_retry_cost(remaining) == cost

    def test_provisional_out_of_range(self):
        with pytest.raises(ValidationError):
            provisional_retry_cost(6)

    def test_conversion(self):
        assert conversion_cost() == 200


@pytest.mark.unit
class TestAffordability:
    def test_affordable(self):
        result = can_afford(300, conversion_cost())

        assert result.can_afford
        assert result.remaining == 100
        assert result.shortfall == 0

    def test_shortfall(self):
        result = can_afford(150, 200)

        assert not result.can_afford
        assert result.remaining == -50
        assert result.shortfall == 50
