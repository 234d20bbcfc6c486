"""Shared fixtures for TradeSim tests."""

import random
from datetime import datetime

import pytest

from tradesim.session.engine import SessionEngine
from tradesim.session.scheduler import ManualScheduler
from tradesim.session.simulation import PriceSimulator

FIXED_TIME = datetime(2024, 1, 2, 9, 30)


def make_engine(seed: int = 0, scheduler: ManualScheduler | None = None) -> SessionEngine:
    """Create an engine with a manual scheduler, seeded prices and a fixed clock."""
    return SessionEngine(
        scheduler=scheduler if scheduler is not None else ManualScheduler(),
        simulator=PriceSimulator(rng=random.Random(seed)),
        clock=lambda: FIXED_TIME,
    )


@pytest.fixture
def scheduler():
    """Create a manual scheduler."""
    return ManualScheduler()


@pytest.fixture
def engine(scheduler):
    """Create a disconnected engine driven by the manual scheduler."""
    engine = make_engine(scheduler=scheduler)
    yield engine
    engine.disconnect()


@pytest.fixture
def connected(engine):
    """Create a connected engine."""
    engine.connect()
    return engine
