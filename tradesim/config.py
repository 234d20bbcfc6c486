"""Configuration loading for TradeSim.

Settings live in a TOML file, by default ``~/.config/tradesim/config.toml``::

    [simulation]
    tick_interval = 1.5
    seed = 42
    position_jitter = 1.0
    ticker_jitter_percent = 1.0

    [session]
    watchlist = ["MSFT", "GOOGL"]

A missing file means defaults.
"""

import random
from pathlib import Path
from typing import Optional, Union

import toml
from pydantic import BaseModel, Field, ValidationError

from tradesim.exceptions import ConfigError
from tradesim.session.engine import SessionEngine
from tradesim.session.scheduler import BaseScheduler
from tradesim.session.simulation import PriceSimulator

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tradesim" / "config.toml"


class SimulationSettings(BaseModel):
    """Price simulation settings."""

    tick_interval: float = Field(default=1.5, gt=0, description="Seconds between ticks")
    seed: Optional[int] = Field(default=None, description="Random seed for reproducible runs")
    position_jitter: float = Field(
        default=1.0, ge=0, description="Max absolute position price move per tick"
    )
    ticker_jitter_percent: float = Field(
        default=1.0, ge=0, description="Max ticker price move per tick, in percent"
    )

    model_config = {"frozen": True}


class SessionSettings(BaseModel):
    """Session settings used by the CLI."""

    watchlist: list[str] = Field(
        default_factory=list, description="Symbols subscribed on connect"
    )

    model_config = {"frozen": True}


class Settings(BaseModel):
    """Top-level TradeSim settings."""

    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)

    model_config = {"frozen": True}


def load_config(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        path: Config file path. Defaults to ``DEFAULT_CONFIG_PATH``.

    Returns:
        Parsed settings; defaults when the file does not exist.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return Settings()

    try:
        data = toml.load(config_path)
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def build_engine(
    settings: Settings,
    scheduler: Optional[BaseScheduler] = None,
) -> SessionEngine:
    """Create a session engine configured from settings.

    Args:
        settings: Loaded settings.
        scheduler: Optional scheduler override (e.g. ``ManualScheduler``).

    Returns:
        A disconnected SessionEngine.
    """
    sim = settings.simulation
    simulator = PriceSimulator(
        rng=random.Random(sim.seed),
        position_jitter=sim.position_jitter,
        ticker_jitter_percent=sim.ticker_jitter_percent,
    )
    return SessionEngine(
        scheduler=scheduler,
        simulator=simulator,
        tick_interval=sim.tick_interval,
    )
