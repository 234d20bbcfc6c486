"""CLI commands for TradeSim.

This package provides the terminal front-end: a live session view,
portfolio display and order entry.
"""

from tradesim.cli.main import cli, main

__all__ = ["cli", "main"]
