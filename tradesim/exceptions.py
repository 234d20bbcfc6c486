"""Exception types for TradeSim."""


class TradeSimError(Exception):
    """Base class for all TradeSim errors."""


class ConfigError(TradeSimError):
    """Raised when the configuration file cannot be read or is invalid."""
