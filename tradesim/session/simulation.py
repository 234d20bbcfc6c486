"""Price simulation for positions and tickers.

Each tick nudges every price by a small uniform random amount. The math is
kept free of engine state so it can be driven by any seeded random source.
"""

import random
from typing import Optional

from tradesim.models import Position, Ticker
from tradesim.pricing import percent_change, round_price

# Seed prices for new tickers are drawn from [SEED_PRICE_MIN, SEED_PRICE_MAX).
SEED_PRICE_MIN = 50.0
SEED_PRICE_MAX = 550.0


class PriceSimulator:
    """Random-walk price generator.

    Args:
        rng: Random source. Pass a seeded ``random.Random`` for reproducible
            runs; defaults to a fresh unseeded instance.
        position_jitter: Maximum absolute move of a position price per tick.
        ticker_jitter_percent: Maximum move of a ticker price per tick, as a
            percentage of its current price.
    """

    DEFAULT_POSITION_JITTER = 1.0
    DEFAULT_TICKER_JITTER_PERCENT = 1.0

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        position_jitter: float = DEFAULT_POSITION_JITTER,
        ticker_jitter_percent: float = DEFAULT_TICKER_JITTER_PERCENT,
    ):
        if position_jitter < 0 or ticker_jitter_percent < 0:
            raise ValueError("Jitter must not be negative")
        self._rng = rng if rng is not None else random.Random()
        self._position_jitter = position_jitter
        self._ticker_jitter = ticker_jitter_percent / 100

    def seed_price(self) -> float:
        """Draw a starting price for a newly subscribed ticker."""
        price = self._rng.uniform(SEED_PRICE_MIN, SEED_PRICE_MAX)
        # uniform() may return the upper bound; keep the range half-open.
        return min(round_price(price), SEED_PRICE_MAX - 0.01)

    def step_position(self, position: Position) -> Position:
        """Return the position after one tick of price movement."""
        delta = self._rng.uniform(-self._position_jitter, self._position_jitter)
        new_price = round_price(max(0.0, position.current_price + delta))
        return position.model_copy(update={"current_price": new_price})

    def step_ticker(self, ticker: Ticker) -> Ticker:
        """Return the ticker after one tick, with change fields relative to
        the pre-tick price."""
        old_price = ticker.price
        delta = self._rng.uniform(-self._ticker_jitter, self._ticker_jitter) * old_price
        new_price = round_price(max(0.0, old_price + delta))
        return Ticker(
            symbol=ticker.symbol,
            price=new_price,
            change=round_price(new_price - old_price),
            change_percent=percent_change(new_price, old_price),
        )
