"""
Position management commands for the lots CLI.

This module provides commands for opening lots, listing them,
showing one lot's history, and syncing with the ledger.
"""

import json
import sys
from datetime import date
from typing import Optional

import click

from ..engine import LotActionsEngine
from ..payloads import CreateLotBuyInput, CreateLotShortPutInput, TimeInForce
from ..state import available_actions
from .utils import (
    get_cli_context,
    print_error,
    print_lot,
    print_lot_json,
    print_lot_row,
    print_success,
    print_warning,
    report_lot,
    run_engine_action,
)


@click.command()
@click.option("--open-only", is_flag=True, help="Hide closed lots")
@click.pass_context
def list_lots(ctx: click.Context, open_only: bool) -> None:
    """
    List the lots of the current cycle.

    Example: lots list --open-only
    """
    cli_ctx = get_cli_context(ctx)
    lots = cli_ctx.repository.load_lots(cli_ctx.config.cycle_id)
    if open_only:
        lots = [lot for lot in lots if not lot.is_closed]

    if cli_ctx.json:
        click.echo(json.dumps([lot.to_dict() for lot in lots], indent=2))
        return

    if not lots:
        click.echo(f"No lots in cycle {cli_ctx.config.cycle_id}.")
        click.echo("Use 'lots buy' or 'lots sell-put' to open one.")
        return

    click.echo(f"{'Lot':<4} {'Ticker':<6} {'Status':<15} {'Basis':>10}  Coverage")
    click.echo("-" * 64)
    for lot in lots:
        print_lot_row(lot)


@click.command()
@click.argument("lot_number", type=int)
@click.pass_context
def show(ctx: click.Context, lot_number: int) -> None:
    """
    Show a lot with its event history and available actions.

    Example: lots show 1
    """
    cli_ctx = get_cli_context(ctx)
    lots = cli_ctx.repository.load_lots(cli_ctx.config.cycle_id)
    lot = next((item for item in lots if item.lot_number == lot_number), None)
    if lot is None:
        print_error(f"No lot #{lot_number} in cycle {cli_ctx.config.cycle_id}")
        sys.exit(1)

    if cli_ctx.json:
        print_lot_json(lot)
    else:
        print_lot(lot, available_actions(lot), verbose=cli_ctx.verbose)


@click.command()
@click.argument("ticker")
@click.option("--price", required=True, type=float, help="Price per share ($)")
@click.option("--date", "trade_date", help="Purchase date (YYYY-MM-DD, default today)")
@click.option("--fees", type=float, help="Commission and fees ($)")
@click.pass_context
def buy(
    ctx: click.Context,
    ticker: str,
    price: float,
    trade_date: Optional[str],
    fees: Optional[float],
) -> None:
    """
    Open a lot by buying 100 shares.

    Example: lots buy AAPL --price 150.00 --date 2025-01-10
    """
    payload = CreateLotBuyInput(
        ticker=ticker,
        price=price,
        date=trade_date or date.today().isoformat(),
        fees=fees,
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_new_lot(ticker)
        await engine.create_lot_buy(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.lots.snapshot()[-1]
    report_lot(ctx, lot, f"Opened lot #{lot.lot_number}: bought 100 {lot.ticker} @ ${price:.2f}")


@click.command()
@click.argument("ticker")
@click.option("--strike", required=True, type=float, help="Strike price ($)")
@click.option("--expiry", required=True, help="Expiration date (YYYY-MM-DD)")
@click.option("--premium", required=True, type=float, help="Premium per share ($)")
@click.option(
    "--tif",
    type=click.Choice(["DAY", "GTC"], case_sensitive=False),
    default="DAY",
    help="Time in force",
)
@click.option("--fees", type=float, help="Commission and fees ($)")
@click.pass_context
def sell_put(
    ctx: click.Context,
    ticker: str,
    strike: float,
    expiry: str,
    premium: float,
    tif: str,
    fees: Optional[float],
) -> None:
    """
    Open a lot by selling a cash-secured put.

    Example: lots sell-put MSFT --strike 400 --expiry 2025-02-21 --premium 5.00
    """
    payload = CreateLotShortPutInput(
        ticker=ticker,
        strike=strike,
        expiry=expiry,
        premium=premium,
        time_in_force=TimeInForce(tif.upper()),
        fees=fees,
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_new_lot(ticker)
        await engine.create_lot_short_put(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.lots.snapshot()[-1]
    report_lot(
        ctx,
        lot,
        f"Opened lot #{lot.lot_number}: sold {lot.ticker} ${strike:.2f} PUT "
        f"for ${premium:.2f}, pending assignment",
    )


@click.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """
    Pull missing events for every lot from the ledger.

    Example: lots --ledger sync
    """
    cli_ctx = get_cli_context(ctx)
    if cli_ctx.mode != "ledger":
        print_warning("sync needs the ledger; rerun with --ledger")
        return

    appended = 0

    async def action(engine: LotActionsEngine) -> None:
        nonlocal appended
        appended = await engine.reconcile_all()

    run_engine_action(ctx, action)
    print_success(f"Synced cycle {cli_ctx.config.cycle_id}: {appended} event(s) appended")
