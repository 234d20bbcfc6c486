"""Session commands for TradeSim CLI.

Handles the live session view and the portfolio display.
"""

import queue
from typing import Iterable, Optional

import click
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from tradesim.models import Order, Position, SessionSnapshot, Ticker

console = Console()


def _get_settings(ctx: click.Context):
    """Load settings for the command, exiting with an error panel on failure."""
    from tradesim.config import load_config
    from tradesim.exceptions import ConfigError

    config_path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(Panel(
            f"[red]{e}[/red]",
            title="[bold red]Configuration Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)


def format_change(change: float, change_percent: float) -> str:
    """Format a price change with arrow and color markup.

    Args:
        change: Absolute change.
        change_percent: Percentage change.

    Returns:
        Rich markup string, green for non-negative and red for negative.
    """
    if change >= 0:
        color, arrow = "green", "▲"
    else:
        color, arrow = "red", "▼"
    return f"[{color}]{arrow} {change:+.2f} ({change_percent:+.2f}%)[/{color}]"


def format_pnl(value: float) -> str:
    """Format a P&L amount with sign and color markup."""
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else "-"
    return f"[{color}]{sign}${abs(value):,.2f}[/{color}]"


def build_portfolio_table(positions: Iterable[Position]) -> Table:
    """Build the positions table."""
    table = Table(title="Positions", show_header=True, header_style="bold")

    table.add_column("Symbol", style="bold")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")

    for pos in positions:
        table.add_row(
            pos.symbol,
            str(pos.quantity),
            f"${pos.average_cost:,.2f}",
            f"${pos.current_price:,.2f}",
            format_pnl(pos.pnl),
            f"{pos.pnl_percent:+.2f}%",
        )

    return table


def build_ticker_table(tickers: Iterable[Ticker]) -> Table:
    """Build the subscribed tickers table."""
    table = Table(title="Market Data", show_header=True, header_style="bold cyan")

    table.add_column("Symbol", style="bold")
    table.add_column("Price", justify="right")
    table.add_column("Change", justify="right")

    for ticker in tickers:
        table.add_row(
            ticker.symbol,
            f"${ticker.price:,.2f}",
            format_change(ticker.change, ticker.change_percent),
        )

    return table


def build_orders_table(orders: Iterable[Order]) -> Table:
    """Build the order log table, newest order first."""
    table = Table(title="Orders", show_header=True, header_style="bold")

    table.add_column("ID", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Time", style="dim")

    for order in orders:
        side_color = "green" if order.side == "BUY" else "red"
        table.add_row(
            str(order.id),
            order.symbol,
            f"[{side_color}]{order.side}[/{side_color}]",
            str(order.quantity),
            order.describe_type(),
            order.status,
            order.timestamp.strftime("%H:%M:%S"),
        )

    return table


def render_snapshot(snapshot: SessionSnapshot) -> Group:
    """Render a full session snapshot."""
    status = "[green]● CONNECTED[/green]" if snapshot.connected else "[red]● DISCONNECTED[/red]"
    header = f"{status}  Total P&L: {format_pnl(snapshot.total_pnl)}"

    parts = [header, build_portfolio_table(snapshot.portfolio)]
    if snapshot.tickers:
        parts.append(build_ticker_table(snapshot.tickers.values()))
    if snapshot.orders:
        parts.append(build_orders_table(snapshot.orders))
    return Group(*parts)


@click.command()
@click.argument("symbols", nargs=-1)
@click.option(
    "-n", "--ticks",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many price ticks (default: run until Ctrl+C)",
)
@click.option(
    "-i", "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between price ticks (default: from config, 1.5)",
)
@click.option("--seed", type=int, default=None, help="Random seed for reproducible prices.")
@click.pass_context
def watch(
    ctx: click.Context,
    symbols: tuple[str, ...],
    ticks: Optional[int],
    interval: Optional[float],
    seed: Optional[int],
) -> None:
    """Connect and watch the simulated session live.

    SYMBOLS are extra tickers to subscribe to, on top of the
    configured watchlist.

    Press Ctrl+C to stop watching.

    \b
    Examples:
      tradesim watch
      tradesim watch MSFT GOOGL
      tradesim watch AMZN --ticks 10 --interval 0.5
    """
    from rich.live import Live

    from tradesim.config import build_engine

    settings = _get_settings(ctx)
    overrides = {}
    if interval is not None:
        overrides["tick_interval"] = interval
    if seed is not None:
        overrides["seed"] = seed
    if overrides:
        simulation = settings.simulation.model_copy(update=overrides)
        settings = settings.model_copy(update={"simulation": simulation})

    watchlist = list(settings.session.watchlist) + list(symbols)

    updates: "queue.Queue[SessionSnapshot]" = queue.Queue()
    tick_count = 0

    with build_engine(settings) as engine:
        engine.connect()
        for symbol in watchlist:
            try:
                engine.subscribe_ticker(symbol)
            except ValueError:
                console.print(f"[yellow]Skipping invalid symbol {symbol!r}[/yellow]")

        # Only ticks commit from here on, so each notification is one tick.
        remove_listener = engine.add_listener(updates.put)
        console.print(
            f"[dim]Connected. Ticking every {engine.tick_interval}s "
            f"({'Ctrl+C to stop' if ticks is None else f'{ticks} ticks'})...[/dim]\n"
        )

        try:
            with Live(render_snapshot(engine.snapshot()), console=console) as live_display:
                while ticks is None or tick_count < ticks:
                    try:
                        snapshot = updates.get(timeout=0.5)
                    except queue.Empty:
                        continue
                    tick_count += 1
                    live_display.update(render_snapshot(snapshot))
        except KeyboardInterrupt:
            console.print("\n[dim]Stopped watching.[/dim]")
        finally:
            remove_listener()

    console.print(f"[dim]Disconnected after {tick_count} tick(s).[/dim]")


@click.command()
@click.pass_context
def portfolio(ctx: click.Context) -> None:
    """Show the demo portfolio with P&L.

    \b
    Examples:
      tradesim portfolio
    """
    from tradesim.config import build_engine

    settings = _get_settings(ctx)

    with build_engine(settings) as engine:
        engine.connect()
        snapshot = engine.snapshot()

    console.print(build_portfolio_table(snapshot.portfolio))
    console.print(f"\nTotal P&L: {format_pnl(snapshot.total_pnl)}")
