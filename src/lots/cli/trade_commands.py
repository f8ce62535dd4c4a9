"""
Trade commands for the lots CLI.

This module provides commands for covering lots with calls, rolling and
closing them, and recording puts and calls that were closed or assigned.
"""

from datetime import date
from typing import Optional

import click

from ..engine import LotActionsEngine
from ..payloads import (
    ClosePutInput,
    CloseCoveredCallInput,
    RecordAssignmentInput,
    RollCloseLeg,
    RollCoveredCallInput,
    RollOpenLeg,
    SellCoveredCallInput,
    TimeInForce,
)
from .utils import report_lot, run_engine_action

TIF_CHOICE = click.Choice(["DAY", "GTC"], case_sensitive=False)


@click.command()
@click.argument("lot_number", type=int)
@click.option("--strike", required=True, type=float, help="Strike price ($)")
@click.option("--expiry", required=True, help="Expiration date (YYYY-MM-DD)")
@click.option("--premium", required=True, type=float, help="Limit premium per share ($)")
@click.option("--tif", type=TIF_CHOICE, default="DAY", help="Time in force")
@click.option("--fees", type=float, help="Commission and fees ($)")
@click.pass_context
def cover(
    ctx: click.Context,
    lot_number: int,
    strike: float,
    expiry: str,
    premium: float,
    tif: str,
    fees: Optional[float],
) -> None:
    """
    Sell a covered call against an uncovered lot.

    Example: lots cover 1 --strike 160 --expiry 2025-02-21 --premium 2.50
    """
    payload = SellCoveredCallInput(
        lot_id=lot_number,
        strike=strike,
        expiry=expiry,
        limit_premium=premium,
        time_in_force=TimeInForce(tif.upper()),
        fees=fees,
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_cover(engine.get_lot(lot_number))
        await engine.sell_covered_call(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(ctx, lot, f"Covered lot #{lot_number}: SELL {lot.ticker} ${strike:.2f} CALL")


@click.command()
@click.argument("lot_number", type=int)
@click.option("--debit", required=True, type=float, help="Limit debit per share ($)")
@click.option("--date", "trade_date", help="Trade date (YYYY-MM-DD, default today)")
@click.option("--contracts", default=1, type=int, help="Number of contracts")
@click.option("--fees", type=float, help="Commission and fees ($)")
@click.option("--notes", help="Free-form notes")
@click.pass_context
def close_call(
    ctx: click.Context,
    lot_number: int,
    debit: float,
    trade_date: Optional[str],
    contracts: int,
    fees: Optional[float],
    notes: Optional[str],
) -> None:
    """
    Buy back the open covered call.

    Example: lots close-call 1 --debit 0.75
    """
    payload = CloseCoveredCallInput(
        lot_id=lot_number,
        limit_debit=debit,
        trade_date=trade_date,
        contracts=contracts,
        fees=fees,
        notes=notes,
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_close_call(engine.get_lot(lot_number))
        await engine.close_covered_call(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(ctx, lot, f"Closed call on lot #{lot_number} for ${debit:.2f}")


@click.command()
@click.argument("lot_number", type=int)
@click.option("--debit", required=True, type=float, help="Limit debit to close ($)")
@click.option("--strike", required=True, type=float, help="New strike price ($)")
@click.option("--expiry", required=True, help="New expiration date (YYYY-MM-DD)")
@click.option("--premium", required=True, type=float, help="New limit premium ($)")
@click.option("--tif", type=TIF_CHOICE, default="DAY", help="Time in force")
@click.option("--close-fees", type=float, help="Fees on the closing leg ($)")
@click.option("--open-fees", type=float, help="Fees on the opening leg ($)")
@click.option("--notes", help="Notes on the closing leg")
@click.pass_context
def roll(
    ctx: click.Context,
    lot_number: int,
    debit: float,
    strike: float,
    expiry: str,
    premium: float,
    tif: str,
    close_fees: Optional[float],
    open_fees: Optional[float],
    notes: Optional[str],
) -> None:
    """
    Roll the covered call: buy it back and sell a new one.

    Example: lots roll 1 --debit 0.75 --strike 165 --expiry 2025-03-21 --premium 3.00
    """
    payload = RollCoveredCallInput(
        lot_id=lot_number,
        close=RollCloseLeg(limit_debit=debit, fees=close_fees, notes=notes),
        open=RollOpenLeg(
            strike=strike,
            expiry=expiry,
            limit_premium=premium,
            time_in_force=TimeInForce(tif.upper()),
            fees=open_fees,
        ),
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_roll(engine.get_lot(lot_number))
        await engine.roll_covered_call(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(
        ctx,
        lot,
        f"Rolled lot #{lot_number} to ${strike:.2f} CALL expiring {expiry}",
    )


@click.command()
@click.argument("lot_number", type=int)
@click.option("--debit", required=True, type=float, help="Limit debit per share ($)")
@click.option("--date", "trade_date", help="Trade date (YYYY-MM-DD, default today)")
@click.option("--contracts", default=1, type=int, help="Number of contracts")
@click.option("--fees", type=float, help="Commission and fees ($)")
@click.option("--notes", help="Free-form notes")
@click.pass_context
def close_put(
    ctx: click.Context,
    lot_number: int,
    debit: float,
    trade_date: Optional[str],
    contracts: int,
    fees: Optional[float],
    notes: Optional[str],
) -> None:
    """
    Buy back the short put on a cash-secured lot.

    Example: lots close-put 2 --debit 1.25
    """
    payload = ClosePutInput(
        lot_id=lot_number,
        trade_date=trade_date or date.today().isoformat(),
        limit_debit=debit,
        contracts=contracts,
        fees=fees,
        notes=notes,
    )

    async def action(engine: LotActionsEngine) -> None:
        engine.open_close_put(engine.get_lot(lot_number))
        await engine.close_short_put(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(ctx, lot, f"Closed put on lot #{lot_number} for ${debit:.2f}")


@click.command()
@click.argument("lot_number", type=int)
@click.option("--date", "trade_date", help="Assignment date (YYYY-MM-DD, default today)")
@click.option("--notes", help="Free-form notes")
@click.pass_context
def assign(
    ctx: click.Context,
    lot_number: int,
    trade_date: Optional[str],
    notes: Optional[str],
) -> None:
    """
    Record the short put being assigned (100 shares bought at the strike).

    Example: lots assign 2 --date 2025-02-21
    """
    payload = RecordAssignmentInput(
        lot_id=lot_number,
        trade_date=trade_date or date.today().isoformat(),
        notes=notes,
    )

    async def action(engine: LotActionsEngine) -> None:
        await engine.record_put_assignment(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(ctx, lot, f"Put assigned on lot #{lot_number}: cost basis {lot.cost_basis}")


@click.command()
@click.argument("lot_number", type=int)
@click.option("--date", "trade_date", help="Assignment date (YYYY-MM-DD, default today)")
@click.option("--notes", help="Free-form notes")
@click.pass_context
def called_away(
    ctx: click.Context,
    lot_number: int,
    trade_date: Optional[str],
    notes: Optional[str],
) -> None:
    """
    Record the covered call being assigned (shares sold at the strike).

    Example: lots called-away 1 --date 2025-02-21
    """
    payload = RecordAssignmentInput(
        lot_id=lot_number,
        trade_date=trade_date or date.today().isoformat(),
        notes=notes,
    )

    async def action(engine: LotActionsEngine) -> None:
        await engine.record_called_away(payload)

    engine = run_engine_action(ctx, action)
    lot = engine.get_lot(lot_number)
    report_lot(ctx, lot, f"Lot #{lot_number} called away")
