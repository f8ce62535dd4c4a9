"""
CLI utility functions for the lots tool.

This module provides helper functions for formatting output,
displaying lots, and running engine actions from click commands.
"""

import asyncio
import json
import sys
from typing import Awaitable, Callable

import click

from ..adapter import ActionAdapter, StubActionAdapter
from ..api_client import HttpActionAdapter, LedgerAPIClient
from ..collection import LotCollection
from ..engine import LotActionsEngine
from ..exceptions import LotError
from ..models import Lot
from ..state import LotStatus


def get_cli_context(ctx: click.Context):
    """Get the CLIContext from the click context."""
    return ctx.obj["cli_context"]


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow")


STATUS_COLORS = {
    LotStatus.OPEN_UNCOVERED: "yellow",
    LotStatus.OPEN_COVERED: "green",
    LotStatus.CASH_RESERVED: "cyan",
    LotStatus.CLOSED: "white",
}


def print_lot_row(lot: Lot) -> None:
    """Print a one-line lot summary."""
    coverage = ""
    if lot.coverage is not None:
        coverage = (
            f"{lot.coverage.right.value} {lot.coverage.strike_label} "
            f"@ {lot.coverage.premium_label} [{lot.coverage.status.value}]"
        )
    click.echo(
        f"#{lot.lot_number:<3} {lot.ticker:<6} "
        + click.style(f"{lot.status.value:<15}", fg=STATUS_COLORS[lot.status])
        + f" {lot.cost_basis:>10}  {coverage}"
    )


def print_lot(lot: Lot, actions: list, verbose: bool = False) -> None:
    """Print a lot with its event timeline."""
    click.echo()
    click.secho(f"=== {lot.ticker} Lot #{lot.lot_number} ===", bold=True)
    click.echo(f"Status:      {lot.status.value}")
    click.echo(f"Acquisition: {lot.acquisition.label}")
    click.echo(f"Cost Basis:  {lot.cost_basis}")

    if lot.coverage is not None:
        click.echo(
            f"Coverage:    {lot.coverage.right.value} {lot.coverage.strike_label} "
            f"(premium {lot.coverage.premium_label}) {lot.coverage.status.value}"
        )
        if lot.coverage.expiry:
            click.echo(f"Expiry:      {lot.coverage.expiry}")

    click.echo()
    click.echo("Events:")
    for event in lot.events:
        details = []
        if event.strike is not None:
            details.append(f"strike ${event.strike:.2f}")
        if event.premium is not None:
            details.append(f"premium ${event.premium:.2f}")
        if event.price is not None:
            details.append(f"price ${event.price:.2f}")
        click.echo(
            f"  {event.date}  {event.label:<14} {event.qty_label:<8} {', '.join(details)}"
        )
        if verbose:
            click.echo(f"              id={event.id}")
        if event.notes:
            click.echo(f"              {event.notes}")

    click.echo()
    if actions:
        click.echo(f"Actions: {', '.join(a.value for a in actions)}")
    else:
        click.echo("Actions: none")


def print_lot_json(lot: Lot) -> None:
    click.echo(json.dumps(lot.to_dict(), indent=2))


def run_engine_action(
    ctx: click.Context,
    action: Callable[[LotActionsEngine], Awaitable[None]],
) -> LotActionsEngine:
    """
    Load the cycle's lots, run one engine action, and save on success.

    Exits with status 1 on any lot error (validation, state, ledger).
    """
    cli_ctx = get_cli_context(ctx)
    config = cli_ctx.config

    async def _run() -> LotActionsEngine:
        lots = LotCollection(cli_ctx.repository.load_lots(config.cycle_id))
        client = None
        adapter: ActionAdapter
        if cli_ctx.mode == "ledger":
            client = LedgerAPIClient(config.ledger_url, timeout=config.ledger_timeout)
            adapter = HttpActionAdapter(client, cycle_id=config.cycle_id)
        else:
            adapter = StubActionAdapter()

        engine = LotActionsEngine(lots, adapter)
        try:
            await action(engine)
        finally:
            if client is not None:
                await client.close()

        cli_ctx.repository.save_lots(config.cycle_id, lots.snapshot())
        return engine

    try:
        return asyncio.run(_run())
    except LotError as e:
        print_error(str(e))
        sys.exit(1)


def report_lot(ctx: click.Context, lot: Lot, message: str) -> None:
    """Print the outcome of an action on a lot."""
    cli_ctx = get_cli_context(ctx)
    if cli_ctx.json:
        print_lot_json(lot)
        return
    print_success(message)
    print_lot_row(lot)
