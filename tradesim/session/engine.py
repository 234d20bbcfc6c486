"""Session engine for simulated trading.

The engine owns one client's session: connection flag, portfolio, ticker
subscriptions and order log. While connected, a repeating tick moves
prices. Every command and every tick runs under a single lock, and readers
only ever see frozen snapshots.
"""

import logging
import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from tradesim.models import (
    Order,
    OrderDraft,
    OrderResult,
    Position,
    SessionSnapshot,
    Ticker,
)
from tradesim.session.scheduler import BaseScheduler, ScheduledHandle, ThreadScheduler
from tradesim.session.simulation import PriceSimulator

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]

# Positions loaded on every connect.
SEED_PORTFOLIO: tuple[Position, ...] = (
    Position(symbol="AAPL", quantity=100, average_cost=150.0, current_price=175.25),
    Position(symbol="TSLA", quantity=50, average_cost=220.0, current_price=260.5),
    Position(symbol="NVDA", quantity=75, average_cost=400.0, current_price=475.1),
)


def _normalize_symbol(symbol: str) -> str:
    normalized = symbol.strip().upper()
    if not normalized:
        raise ValueError("Symbol must not be empty")
    return normalized


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


class SessionEngine:
    """Simulated brokerage session.

    Lifecycle is Disconnected -> Connected -> Disconnected. The portfolio,
    ticker set and order log are empty whenever the engine is disconnected,
    and the price tick only runs while connected.

    The engine can be used as a context manager; leaving the block
    disconnects it so no tick outlives its owner.

    Args:
        scheduler: Timer used for the price tick. Defaults to a
            ``ThreadScheduler``.
        simulator: Price generator. Defaults to an unseeded
            ``PriceSimulator``.
        clock: Callable returning the timestamp stamped on new orders.
        tick_interval: Seconds between price ticks.
    """

    DEFAULT_TICK_INTERVAL = 1.5

    def __init__(
        self,
        scheduler: Optional[BaseScheduler] = None,
        simulator: Optional[PriceSimulator] = None,
        clock: Callable[[], datetime] = datetime.now,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ):
        if tick_interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {tick_interval}")

        self._scheduler = scheduler if scheduler is not None else ThreadScheduler()
        self._simulator = simulator if simulator is not None else PriceSimulator()
        self._clock = clock
        self._tick_interval = tick_interval

        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._tick_handle: Optional[ScheduledHandle] = None
        # Identifies the live tick stream; firings from an older stream are dropped.
        self._generation = 0

        self._connected = False
        self._portfolio: list[Position] = []
        self._tickers: dict[str, Ticker] = {}
        self._orders: list[Order] = []
        self._next_order_id = 1
        self._version = 0
        self._snapshot = self._build_snapshot()

    def __enter__(self) -> "SessionEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._snapshot.connected

    @property
    def portfolio(self) -> tuple[Position, ...]:
        return self._snapshot.portfolio

    @property
    def tickers(self) -> dict[str, Ticker]:
        return dict(self._snapshot.tickers)

    @property
    def orders(self) -> tuple[Order, ...]:
        """Submitted orders, newest first."""
        return self._snapshot.orders

    @property
    def next_order_id(self) -> int:
        with self._lock:
            return self._next_order_id

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    @property
    def tick_active(self) -> bool:
        """True while a price tick is scheduled."""
        with self._lock:
            return self._tick_handle is not None and self._tick_handle.active

    def snapshot(self) -> SessionSnapshot:
        """Return the latest committed state."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with each new snapshot.

        Args:
            listener: Callable receiving a ``SessionSnapshot``.

        Returns:
            Callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Connect the session and start the price tick.

        Reloads the seed portfolio. Calling connect while already connected
        replaces the running tick rather than adding a second one.
        """
        with self._lock:
            stale_handle = self._tick_handle
            self._generation += 1
            generation = self._generation

            self._connected = True
            self._portfolio = list(SEED_PORTFOLIO)
            self._tick_handle = self._scheduler.schedule_repeating(
                self._tick_interval,
                lambda: self._tick(generation),
            )
            self._commit()

        if stale_handle is not None:
            stale_handle.cancel()
            logger.debug("Replaced running price tick")
        logger.info(
            "Session connected (%d positions, tick every %.2fs)",
            len(SEED_PORTFOLIO),
            self._tick_interval,
        )

    def disconnect(self) -> None:
        """Stop the price tick and clear the session.

        No tick-driven change is applied after this returns. Safe to call
        when already disconnected.
        """
        with self._lock:
            handle = self._tick_handle
            self._tick_handle = None
            self._generation += 1

            changed = bool(
                self._connected or self._portfolio or self._tickers or self._orders
            )
            self._connected = False
            self._portfolio = []
            self._tickers = {}
            self._orders = []
            if changed:
                self._commit()

        # Cancel outside the lock: the tick thread may be waiting on it.
        if handle is not None:
            handle.cancel()
        if changed:
            logger.info("Session disconnected")

    def subscribe_ticker(self, symbol: str) -> Optional[Ticker]:
        """Subscribe to a ticker feed.

        Symbols are case-insensitive. Subscribing to a symbol that is
        already present leaves the existing ticker untouched.

        Args:
            symbol: Trading symbol.

        Returns:
            The ticker for the symbol, or None while disconnected.

        Raises:
            ValueError: If symbol is empty.
        """
        key = _normalize_symbol(symbol)
        with self._lock:
            if not self._connected:
                logger.debug("Ignoring subscribe to %s while disconnected", key)
                return None
            existing = self._tickers.get(key)
            if existing is not None:
                return existing

            ticker = Ticker(symbol=key, price=self._simulator.seed_price())
            self._tickers[key] = ticker
            self._commit()

        logger.debug("Subscribed to %s at %.2f", key, ticker.price)
        return ticker

    def unsubscribe_ticker(self, symbol: str) -> bool:
        """Remove a ticker subscription.

        Args:
            symbol: Trading symbol (case-insensitive).

        Returns:
            True if a ticker was removed, False if it was not subscribed.
        """
        key = symbol.strip().upper()
        with self._lock:
            if self._tickers.pop(key, None) is None:
                return False
            self._commit()

        logger.debug("Unsubscribed from %s", key)
        return True

    def place_order(self, draft: Union[OrderDraft, Mapping[str, Any]]) -> OrderResult:
        """Record an order.

        Orders are stamped with the next session ID, status SUBMITTED and
        the current time, then added to the front of the order log. No
        matching or execution is simulated.

        Args:
            draft: Validated draft, or a mapping of draft fields.

        Returns:
            OrderResult carrying the recorded order, or a REJECTED result
            when the draft is invalid or the session is disconnected.
        """
        if not isinstance(draft, OrderDraft):
            try:
                draft = OrderDraft.model_validate(dict(draft))
            except ValidationError as e:
                return self._reject(_format_validation_error(e))

        with self._lock:
            if not self._connected:
                return self._reject("Not connected")

            order = Order.from_draft(draft, self._next_order_id, self._clock())
            self._next_order_id += 1
            self._orders.insert(0, order)
            self._commit()

        logger.info(
            "Order %d submitted: %s %d %s %s",
            order.id,
            order.side,
            order.quantity,
            order.symbol,
            order.describe_type(),
        )
        return OrderResult(
            status="SUBMITTED",
            order=order,
            message=f"Order for {order.quantity} {order.symbol} submitted",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._connected:
                return

            portfolio = [self._simulator.step_position(p) for p in self._portfolio]
            tickers = {
                key: self._simulator.step_ticker(t) for key, t in self._tickers.items()
            }
            self._portfolio = portfolio
            self._tickers = tickers
            self._commit()

        logger.debug(
            "Tick applied to %d positions and %d tickers", len(portfolio), len(tickers)
        )

    def _reject(self, message: str) -> OrderResult:
        logger.warning("Order rejected: %s", message)
        return OrderResult(status="REJECTED", message=message)

    def _build_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            version=self._version,
            connected=self._connected,
            portfolio=tuple(self._portfolio),
            tickers=dict(self._tickers),
            orders=tuple(self._orders),
        )

    def _commit(self) -> None:
        """Publish the current state. Caller must hold the lock."""
        self._version += 1
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Session listener failed")
