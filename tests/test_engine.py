"""Property-based tests for the session engine.

**Feature: trading-session**
"""

import threading
import time
from typing import Callable

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradesim.models import OrderDraft, SessionSnapshot
from tradesim.pricing import percent_change, round_price
from tradesim.session.engine import SEED_PORTFOLIO, SessionEngine
from tradesim.session.scheduler import (
    BaseScheduler,
    ManualScheduler,
    ScheduledHandle,
    ThreadScheduler,
)

from conftest import FIXED_TIME, make_engine

symbols = st.text(
    alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz",
    min_size=1,
    max_size=6,
)


class RecordingScheduler(BaseScheduler):
    """Scheduler that hands callbacks to the test instead of firing them."""

    class Handle(ScheduledHandle):
        def __init__(self, callback: Callable[[], None]):
            self.callback = callback
            self._active = True

        def cancel(self) -> None:
            self._active = False

        @property
        def active(self) -> bool:
            return self._active

    def __init__(self):
        self.handles: list[RecordingScheduler.Handle] = []

    def schedule_repeating(self, interval, callback):
        handle = self.Handle(callback)
        self.handles.append(handle)
        return handle


class TestConnect:
    """
    **Feature: trading-session, Property 7: Single Tick Stream**

    *For any* number of connect calls, exactly one price tick is active.
    """

    def test_connect_loads_seed_portfolio(self, connected: SessionEngine):
        assert connected.is_connected
        assert [p.symbol for p in connected.portfolio] == ["AAPL", "TSLA", "NVDA"]
        assert connected.portfolio[0].pnl == 2525.0
        assert connected.portfolio[1].pnl == 2025.0
        assert connected.portfolio[2].pnl == 5632.5
        assert connected.tickers == {}
        assert connected.orders == ()

    @given(connects=st.integers(min_value=1, max_value=10))
    @settings(max_examples=20)
    def test_repeated_connect_keeps_one_tick(self, connects: int):
        scheduler = ManualScheduler()
        engine = make_engine(scheduler=scheduler)

        for _ in range(connects):
            engine.connect()

        assert len(scheduler.active_handles) == 1
        assert engine.tick_active

        versions = []
        engine.add_listener(lambda snap: versions.append(snap.version))
        scheduler.advance(engine.tick_interval)

        assert len(versions) == 1, "One interval should produce exactly one tick"
        engine.disconnect()

    def test_reconnect_replaces_handle(self):
        scheduler = RecordingScheduler()
        engine = make_engine(scheduler=scheduler)

        engine.connect()
        engine.connect()

        assert len(scheduler.handles) == 2
        assert not scheduler.handles[0].active
        assert scheduler.handles[1].active

    def test_tick_interval_is_used(self, scheduler: ManualScheduler, connected: SessionEngine):
        before = connected.snapshot().version
        scheduler.advance(1.0)
        assert connected.snapshot().version == before
        scheduler.advance(0.5)
        assert connected.snapshot().version == before + 1

    def test_invalid_tick_interval(self):
        with pytest.raises(ValueError):
            SessionEngine(scheduler=ManualScheduler(), tick_interval=0)


class TestDisconnect:
    """
    **Feature: trading-session, Property 8: Clean Teardown**

    *For any* session state, disconnect leaves an empty session and no
    tick mutates it afterwards.
    """

    @given(
        tickers=st.lists(symbols, max_size=5),
        order_count=st.integers(min_value=0, max_value=5),
        ticks=st.integers(min_value=0, max_value=5),
    )
    @settings(max_examples=30)
    def test_disconnect_clears_everything(self, tickers: list[str], order_count: int, ticks: int):
        scheduler = ManualScheduler()
        engine = make_engine(scheduler=scheduler)
        engine.connect()
        for symbol in tickers:
            engine.subscribe_ticker(symbol)
        for _ in range(order_count):
            engine.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})
        scheduler.advance(ticks * engine.tick_interval)

        engine.disconnect()
        version = engine.snapshot().version
        scheduler.advance(10 * engine.tick_interval)

        assert not engine.is_connected
        assert engine.portfolio == ()
        assert engine.tickers == {}
        assert engine.orders == ()
        assert scheduler.active_handles == []
        assert engine.snapshot().version == version

    def test_disconnect_when_disconnected_is_noop(self, engine: SessionEngine):
        notifications = []
        engine.add_listener(notifications.append)

        engine.disconnect()
        engine.disconnect()

        assert not engine.is_connected
        assert notifications == []

    def test_stale_tick_after_disconnect_is_ignored(self):
        scheduler = RecordingScheduler()
        engine = make_engine(scheduler=scheduler)
        engine.connect()
        stale = scheduler.handles[0].callback

        engine.disconnect()
        version = engine.snapshot().version
        stale()

        assert engine.portfolio == ()
        assert engine.snapshot().version == version

    def test_stale_tick_after_reconnect_is_ignored(self):
        scheduler = RecordingScheduler()
        engine = make_engine(scheduler=scheduler)
        engine.connect()
        stale = scheduler.handles[0].callback
        engine.connect()

        version = engine.snapshot().version
        stale()

        assert engine.snapshot().version == version
        assert engine.portfolio == SEED_PORTFOLIO

    def test_context_manager_disconnects(self, scheduler: ManualScheduler):
        with make_engine(scheduler=scheduler) as engine:
            engine.connect()
            assert engine.tick_active

        assert not engine.is_connected
        assert not engine.tick_active
        assert scheduler.active_handles == []

    def test_order_ids_continue_after_reconnect(self, connected: SessionEngine):
        connected.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})
        connected.disconnect()
        connected.connect()

        result = connected.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})

        assert result.order.id == 2
        assert [o.id for o in connected.orders] == [2]


class TestTickerSubscriptions:
    """
    **Feature: trading-session, Property 9: Idempotent Subscription**

    *For any* symbol, subscribing in any letter case yields exactly one
    ticker keyed by the uppercase symbol.
    """

    def test_case_variants_share_one_entry(self, connected: SessionEngine):
        connected.subscribe_ticker("msft")
        connected.subscribe_ticker("MSFT")

        assert list(connected.tickers) == ["MSFT"]
        ticker = connected.tickers["MSFT"]
        assert ticker.change == 0.0
        assert ticker.change_percent == 0.0
        assert 50.0 <= ticker.price < 550.0

    @given(symbol=symbols, repeats=st.integers(min_value=1, max_value=5))
    @settings(max_examples=50)
    def test_resubscribe_keeps_price(self, symbol: str, repeats: int):
        engine = make_engine()
        engine.connect()
        first = engine.subscribe_ticker(symbol)

        for i in range(repeats):
            variant = symbol.lower() if i % 2 else symbol.upper()
            assert engine.subscribe_ticker(variant) == first

        assert list(engine.tickers) == [symbol.upper()]
        engine.disconnect()

    def test_resubscribe_after_tick_keeps_moved_price(
        self, scheduler: ManualScheduler, connected: SessionEngine
    ):
        connected.subscribe_ticker("AMZN")
        scheduler.advance(connected.tick_interval)
        moved = connected.tickers["AMZN"]

        connected.subscribe_ticker("amzn")

        assert connected.tickers["AMZN"] == moved

    def test_blank_symbol_rejected(self, connected: SessionEngine):
        with pytest.raises(ValueError):
            connected.subscribe_ticker("  ")

    def test_subscribe_while_disconnected_is_noop(self, engine: SessionEngine):
        assert engine.subscribe_ticker("MSFT") is None
        assert engine.tickers == {}

    def test_unsubscribe(self, connected: SessionEngine):
        connected.subscribe_ticker("GOOGL")

        assert connected.unsubscribe_ticker("googl") is True
        assert connected.tickers == {}

    def test_unsubscribe_absent_is_noop(self, connected: SessionEngine):
        connected.subscribe_ticker("GOOGL")
        before = connected.snapshot()

        assert connected.unsubscribe_ticker("IBM") is False
        assert connected.snapshot() is before


class TestPlaceOrder:
    """
    **Feature: trading-session, Property 10: Order Log Ordering**

    *For any* sequence of orders, ids count up from 1 and the log lists
    the newest order first.
    """

    @given(order_symbols=st.lists(symbols, min_size=1, max_size=20))
    @settings(max_examples=50)
    def test_ids_increase_and_log_is_newest_first(self, order_symbols: list[str]):
        engine = make_engine()
        engine.connect()

        for symbol in order_symbols:
            result = engine.place_order({"symbol": symbol, "quantity": 1, "side": "BUY"})
            assert result.accepted

        ids = [o.id for o in engine.orders]
        assert ids == list(range(len(order_symbols), 0, -1))
        assert [o.symbol for o in engine.orders] == [s.upper() for s in reversed(order_symbols)]
        assert engine.next_order_id == len(order_symbols) + 1
        engine.disconnect()

    def test_aapl_then_tsla(self, connected: SessionEngine):
        connected.place_order({"symbol": "AAPL", "quantity": 10, "side": "BUY"})
        connected.place_order(
            OrderDraft(symbol="TSLA", quantity=5, side="SELL", order_type="LIMIT", limit_price=250.0)
        )

        first, second = connected.orders
        assert first.symbol == "TSLA"
        assert first.id == 2
        assert first.limit_price == 250.0
        assert second.symbol == "AAPL"
        assert second.id == 1

    def test_order_fields(self, connected: SessionEngine):
        result = connected.place_order({"symbol": "nvda", "quantity": 3, "side": "BUY"})

        assert result.status == "SUBMITTED"
        order = result.order
        assert order.symbol == "NVDA"
        assert order.status == "SUBMITTED"
        assert order.timestamp == FIXED_TIME
        assert order.order_type == "MARKET"
        assert order.limit_price is None

    @pytest.mark.parametrize(
        "fields",
        [
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT"},
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT", "limit_price": 0},
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT", "limit_price": -5.0},
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT", "limit_price": float("nan")},
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT", "limit_price": float("inf")},
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "MARKET", "limit_price": 10.0},
            {"symbol": "AAPL", "quantity": 0, "side": "BUY"},
            {"symbol": "AAPL", "quantity": -3, "side": "SELL"},
            {"symbol": "", "quantity": 1, "side": "BUY"},
            {"symbol": "AAPL", "side": "BUY"},
        ],
    )
    def test_invalid_drafts_rejected(self, connected: SessionEngine, fields: dict):
        before = connected.snapshot()

        result = connected.place_order(fields)

        assert result.status == "REJECTED"
        assert result.order is None
        assert result.message
        assert connected.snapshot() is before
        assert connected.next_order_id == 1

    def test_limit_error_message(self, connected: SessionEngine):
        result = connected.place_order(
            {"symbol": "AAPL", "quantity": 1, "side": "BUY", "order_type": "LIMIT"}
        )
        assert "Limit price required" in result.message

    def test_rejected_while_disconnected(self, engine: SessionEngine):
        result = engine.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})

        assert result.status == "REJECTED"
        assert result.message == "Not connected"
        assert engine.orders == ()
        assert engine.next_order_id == 1


class TestTick:
    """
    **Feature: trading-session, Property 11: Tick Invariants**

    *For any* number of ticks, every position keeps a consistent P&L and
    every ticker's change fields match its price move.
    """

    @given(
        seed=st.integers(min_value=0, max_value=2**32),
        ticks=st.integers(min_value=1, max_value=20),
    )
    @settings(max_examples=30)
    def test_invariants_hold_across_ticks(self, seed: int, ticks: int):
        scheduler = ManualScheduler()
        engine = make_engine(seed=seed, scheduler=scheduler)
        engine.connect()
        engine.subscribe_ticker("MSFT")
        engine.subscribe_ticker("GOOGL")

        for _ in range(ticks):
            before = engine.snapshot()
            scheduler.advance(engine.tick_interval)
            after = engine.snapshot()

            assert after.version == before.version + 1
            for pos in after.portfolio:
                assert pos.current_price >= 0
                assert pos.pnl == round_price((pos.current_price - pos.average_cost) * pos.quantity)
            for symbol, ticker in after.tickers.items():
                prior = before.tickers[symbol].price
                assert ticker.change == round_price(ticker.price - prior)
                assert ticker.change_percent == percent_change(ticker.price, prior)

        engine.disconnect()

    def test_tick_keeps_cost_basis(self, scheduler: ManualScheduler, connected: SessionEngine):
        scheduler.advance(connected.tick_interval * 3)

        for seed, pos in zip(SEED_PORTFOLIO, connected.portfolio):
            assert pos.symbol == seed.symbol
            assert pos.quantity == seed.quantity
            assert pos.average_cost == seed.average_cost

    def test_seeded_runs_are_reproducible(self):
        runs = []
        for _ in range(2):
            scheduler = ManualScheduler()
            engine = make_engine(seed=7, scheduler=scheduler)
            engine.connect()
            engine.subscribe_ticker("MSFT")
            scheduler.advance(engine.tick_interval * 5)
            runs.append((engine.portfolio, engine.tickers))
            engine.disconnect()

        assert runs[0] == runs[1]


class TestListeners:
    """
    **Feature: trading-session, Property 12: Change Notification**

    *For any* committed change, listeners receive one new snapshot.
    """

    def test_every_mutation_notifies(self, scheduler: ManualScheduler, engine: SessionEngine):
        received: list[SessionSnapshot] = []
        engine.add_listener(received.append)

        engine.connect()
        engine.subscribe_ticker("MSFT")
        engine.subscribe_ticker("msft")
        engine.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})
        scheduler.advance(engine.tick_interval)
        engine.unsubscribe_ticker("MSFT")
        engine.disconnect()

        assert len(received) == 6
        versions = [snap.version for snap in received]
        assert versions == sorted(set(versions))
        assert received[0].connected
        assert not received[-1].connected
        assert received[-1] is engine.snapshot()

    def test_remove_listener(self, engine: SessionEngine):
        received = []
        remove = engine.add_listener(received.append)

        remove()
        remove()
        engine.connect()

        assert received == []

    def test_failing_listener_does_not_break_engine(self, engine: SessionEngine):
        received = []

        def broken(snapshot):
            raise RuntimeError("render failed")

        engine.add_listener(broken)
        engine.add_listener(received.append)
        engine.connect()

        assert engine.is_connected
        assert len(received) == 1

    def test_snapshot_is_isolated_from_later_changes(self, connected: SessionEngine):
        snapshot = connected.snapshot()
        connected.subscribe_ticker("MSFT")

        assert snapshot.tickers == {}
        assert "MSFT" in connected.tickers

    def test_readers_cannot_change_published_state(self, connected: SessionEngine):
        received: list[SessionSnapshot] = []
        connected.add_listener(received.append)
        connected.subscribe_ticker("MSFT")

        with pytest.raises(AttributeError):
            connected.snapshot().tickers.clear()
        with pytest.raises(TypeError):
            del received[-1].tickers["MSFT"]
        connected.tickers.clear()

        assert "MSFT" in connected.tickers
        assert "MSFT" in connected.snapshot().tickers


class TestThreadedSession:
    """Tests for the engine driven by the wall-clock scheduler."""

    def test_ticks_run_and_stop_on_disconnect(self):
        ticked = threading.Event()
        versions = []
        engine = SessionEngine(scheduler=ThreadScheduler(), tick_interval=0.01)
        engine.connect()
        engine.subscribe_ticker("MSFT")

        def on_snapshot(snapshot: SessionSnapshot) -> None:
            versions.append(snapshot.version)
            if len(versions) >= 3:
                ticked.set()

        engine.add_listener(on_snapshot)
        try:
            assert ticked.wait(timeout=5), "Ticks should fire while connected"
        finally:
            engine.disconnect()

        version = engine.snapshot().version
        time.sleep(0.1)

        assert engine.snapshot().version == version
        assert engine.portfolio == ()
        assert not engine.tick_active

    def test_commands_interleave_safely_with_ticks(self):
        engine = SessionEngine(scheduler=ThreadScheduler(), tick_interval=0.001)
        engine.connect()
        try:
            for i in range(200):
                engine.subscribe_ticker(f"S{i % 10}")
                engine.place_order({"symbol": "AAPL", "quantity": 1, "side": "BUY"})
                if i % 3 == 0:
                    engine.unsubscribe_ticker(f"S{i % 10}")
        finally:
            engine.disconnect()

        assert engine.orders == ()
        assert engine.next_order_id == 201

    def test_disconnect_from_listener_on_tick_thread(self):
        done = threading.Event()
        engine = SessionEngine(scheduler=ThreadScheduler(), tick_interval=0.01)

        def on_snapshot(snapshot: SessionSnapshot) -> None:
            if snapshot.connected and snapshot.version > 1:
                engine.disconnect()
                done.set()

        engine.add_listener(on_snapshot)
        engine.connect()
        try:
            assert done.wait(timeout=5)
        finally:
            engine.disconnect()

        assert not engine.is_connected
