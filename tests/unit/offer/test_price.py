import pytest
from pydantic import ValidationError

from src.offer.price import PriceBreakdown, compute_total


class TestComputeTotal:
    def test_adds_margin_on_top_of_subtotal(self) -> None:
        breakdown = compute_total(
            labor_cost=10_000,
            material_cost=4_000,
            travel_cost=500,
            overhead_cost=1_000,
            extra_cost=500,
            profit_margin_pct=25,
        )

        assert breakdown.subtotal == 16_000
        assert breakdown.total_amount == 20_000

    def test_rounds_to_two_decimals(self) -> None:
        breakdown = compute_total(labor_cost=33.33, profit_margin_pct=10)

        assert breakdown.total_amount == 36.66

    def test_no_costs(self) -> None:
        assert compute_total().total_amount == 0

    def test_rejects_negative_cost(self) -> None:
        with pytest.raises(ValidationError):
            PriceBreakdown(labor_cost=-1)
