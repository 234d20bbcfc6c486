"""Data models for TradeSim."""

from tradesim.models.order import Order, OrderDraft, OrderResult
from tradesim.models.position import Position
from tradesim.models.snapshot import SessionSnapshot
from tradesim.models.ticker import Ticker

__all__ = [
    "Order",
    "OrderDraft",
    "OrderResult",
    "Position",
    "SessionSnapshot",
    "Ticker",
]
