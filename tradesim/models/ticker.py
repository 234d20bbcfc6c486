"""Ticker data model."""

from pydantic import BaseModel, Field


class Ticker(BaseModel):
    """Represents a subscribed market-data feed entry."""

    symbol: str = Field(..., min_length=1, description="Trading symbol (uppercase)")
    price: float = Field(..., ge=0, description="Last simulated price")
    change: float = Field(default=0.0, description="Price change over the last tick")
    change_percent: float = Field(
        default=0.0, description="Percentage change over the last tick"
    )

    model_config = {"frozen": True}
