import enum

from pydantic import BaseModel, Field


class Currency(enum.Enum):
    DKK = "DKK"
    SEK = "SEK"
    NOK = "NOK"
    EUR = "EUR"


class PriceBreakdown(BaseModel):
    """Cost lines of an offer. Opaque to the lifecycle engine."""

    labor_cost: float = Field(default=0.0, ge=0)
    material_cost: float = Field(default=0.0, ge=0)
    travel_cost: float = Field(default=0.0, ge=0)
    overhead_cost: float = Field(default=0.0, ge=0)
    extra_cost: float = Field(default=0.0, ge=0)
    profit_margin_pct: float = Field(default=0.0, ge=0)
    total_amount: float = 0.0

    @property
    def subtotal(self) -> float:
        return (
            self.labor_cost
            + self.material_cost
            + self.travel_cost
            + self.overhead_cost
            + self.extra_cost
        )


def compute_total(
    labor_cost: float = 0.0,
    material_cost: float = 0.0,
    travel_cost: float = 0.0,
    overhead_cost: float = 0.0,
    extra_cost: float = 0.0,
    profit_margin_pct: float = 0.0,
) -> PriceBreakdown:
    """Build a breakdown whose total is the cost subtotal plus profit margin."""
    breakdown = PriceBreakdown(
        labor_cost=labor_cost,
        material_cost=material_cost,
        travel_cost=travel_cost,
        overhead_cost=overhead_cost,
        extra_cost=extra_cost,
        profit_margin_pct=profit_margin_pct,
    )
    subtotal = breakdown.subtotal
    total = subtotal + subtotal * (profit_margin_pct / 100)
    return breakdown.model_copy(update={"total_amount": round(total, 2)})
