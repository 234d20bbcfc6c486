"""Session engine, scheduling and price simulation for TradeSim."""

from tradesim.session.engine import SEED_PORTFOLIO, SessionEngine
from tradesim.session.scheduler import (
    BaseScheduler,
    ManualScheduler,
    ScheduledHandle,
    ThreadScheduler,
)
from tradesim.session.simulation import PriceSimulator

__all__ = [
    "BaseScheduler",
    "ManualScheduler",
    "PriceSimulator",
    "ScheduledHandle",
    "SEED_PORTFOLIO",
    "SessionEngine",
    "ThreadScheduler",
]
