"""SessionSnapshot data model."""

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, Field, field_serializer, field_validator

from tradesim.models.order import Order
from tradesim.models.position import Position
from tradesim.models.ticker import Ticker
from tradesim.pricing import round_price


class SessionSnapshot(BaseModel):
    """Read-only view of a session at one committed version.

    The same snapshot is handed to every reader, so every container in it
    is immutable: tuples for the sequences and a read-only mapping for the
    tickers.
    """

    version: int = Field(..., ge=0, description="Commit counter")
    connected: bool = Field(..., description="Connection flag")
    portfolio: tuple[Position, ...] = Field(default=(), description="Held positions")
    tickers: Mapping[str, Ticker] = Field(
        default_factory=dict, description="Subscribed tickers keyed by symbol"
    )
    orders: tuple[Order, ...] = Field(default=(), description="Orders, newest first")

    model_config = {"frozen": True}

    @field_validator("tickers", mode="after")
    @classmethod
    def _freeze_tickers(cls, value: Mapping[str, Ticker]) -> Mapping[str, Ticker]:
        return MappingProxyType(dict(value))

    @field_serializer("tickers")
    def _dump_tickers(self, value: Mapping[str, Ticker]) -> dict:
        return {symbol: ticker.model_dump() for symbol, ticker in value.items()}

    @property
    def total_pnl(self) -> float:
        return round_price(sum(pos.pnl for pos in self.portfolio))
