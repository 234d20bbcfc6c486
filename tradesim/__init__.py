"""TradeSim - simulated trading-session engine with a terminal front-end."""

from tradesim.session.engine import SessionEngine

__version__ = "0.1.0"

__all__ = ["SessionEngine", "__version__"]
