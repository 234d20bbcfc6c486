"""Order commands for TradeSim CLI.

Handles order entry against a simulated session.
"""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from tradesim.cli.session import _get_settings, build_orders_table

console = Console()


def build_draft_fields(
    symbol: str,
    quantity: int,
    side: str,
    order_type: str,
    limit_price: Optional[float],
) -> dict:
    """Collect order form fields into a draft mapping.

    Args:
        symbol: Trading symbol.
        quantity: Number of shares.
        side: BUY or SELL (any case).
        order_type: MARKET or LIMIT (any case).
        limit_price: Limit price, if given.

    Returns:
        Mapping accepted by ``SessionEngine.place_order``.
    """
    fields = {
        "symbol": symbol,
        "quantity": quantity,
        "side": side.upper(),
        "order_type": order_type.upper(),
    }
    if limit_price is not None:
        fields["limit_price"] = limit_price
    return fields


@click.command()
@click.argument("symbol")
@click.argument("quantity", type=int)
@click.option(
    "-s", "--side",
    type=click.Choice(["BUY", "SELL"], case_sensitive=False),
    default="BUY",
    help="Order side (default: BUY)",
)
@click.option(
    "-t", "--type", "order_type",
    type=click.Choice(["MARKET", "LIMIT"], case_sensitive=False),
    default="MARKET",
    help="Order type (default: MARKET)",
)
@click.option(
    "-l", "--limit",
    "limit_price",
    type=float,
    default=None,
    help="Limit price (required for LIMIT orders)",
)
@click.pass_context
def order(
    ctx: click.Context,
    symbol: str,
    quantity: int,
    side: str,
    order_type: str,
    limit_price: Optional[float],
) -> None:
    """Submit an order to a simulated session.

    SYMBOL is the trading symbol and QUANTITY the number of shares.
    Orders are recorded with status SUBMITTED; nothing is executed.

    \b
    Examples:
      tradesim order AAPL 10
      tradesim order TSLA 5 --side sell
      tradesim order NVDA 20 --type limit --limit 450
    """
    from tradesim.config import build_engine

    settings = _get_settings(ctx)
    fields = build_draft_fields(symbol, quantity, side, order_type, limit_price)

    with build_engine(settings) as engine:
        engine.connect()
        result = engine.place_order(fields)

    if not result.accepted:
        console.print(Panel(
            f"[red]{result.message}[/red]",
            title="[bold red]Order Rejected[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)

    console.print(Panel(
        f"[green]{result.message}[/green]",
        title="[bold green]Order Submitted[/bold green]",
        border_style="green",
    ))
    console.print(build_orders_table([result.order]))
