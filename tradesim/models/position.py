"""Position data model."""

from pydantic import BaseModel, Field, computed_field

from tradesim.pricing import round_price


class Position(BaseModel):
    """Represents a held security.

    P&L is derived from the price fields on every access, so a position
    can never carry a stale P&L.
    """

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    quantity: int = Field(..., description="Position quantity (negative for short)")
    average_cost: float = Field(..., gt=0, description="Average cost basis")
    current_price: float = Field(..., ge=0, description="Last simulated price")

    model_config = {"frozen": True}

    @computed_field
    @property
    def pnl(self) -> float:
        """Profit/Loss amount, rounded to 2 decimals."""
        return round_price((self.current_price - self.average_cost) * self.quantity)

    @computed_field
    @property
    def pnl_percent(self) -> float:
        """Profit/Loss as a percentage of the cost basis."""
        if self.average_cost <= 0:
            return 0.0
        return round_price(
            (self.current_price - self.average_cost) / self.average_cost * 100
        )
