"""
Click CLI implementation for the wheel lots tool.

This module provides command-line interface commands for managing
wheel lots, split into position and trade command groups.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from ..config import ConfigurationError, LotActionsConfig
from ..repository import LotRepository

from .position_commands import buy, list_lots, sell_put, show, sync
from .trade_commands import assign, called_away, close_call, close_put, cover, roll

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class CLIContext:
    """Context object passed to all CLI commands.

    Attributes:
        config: Configuration settings
        repository: Local lot store
        mode: Current mode ("ledger" or "stub")
        verbose: Verbose output enabled
        json: JSON output enabled
    """
    config: LotActionsConfig
    repository: LotRepository
    mode: str
    verbose: bool
    json: bool


@click.group()
@click.option("--db", help="Database file path", envvar="LOTS_DB_PATH")
@click.option("--cycle", "cycle_id", type=int, help="Wheel cycle id")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "output_json", is_flag=True, help="JSON output (where supported)")
@click.option(
    "--ledger-url",
    help="Event ledger URL (overrides config)",
    envvar="LOTS_LEDGER_URL",
)
@click.option(
    "--ledger/--stub",
    "use_ledger",
    default=None,
    help="Submit actions to the ledger API or the in-memory stub",
)
@click.option(
    "--config-file",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    db: Optional[str],
    cycle_id: Optional[int],
    verbose: bool,
    output_json: bool,
    ledger_url: Optional[str],
    use_ledger: Optional[bool],
    config_file: Optional[str],
) -> None:
    """
    Wheel Lots - Track 100-share lots through the options wheel.

    Buy shares or sell cash-secured puts to open lots, then cover,
    roll and close calls against them.
    """
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = LotActionsConfig.load_from_file(Path(config_file))
        else:
            config = LotActionsConfig.load_from_file()
    except ConfigurationError as e:
        if verbose:
            click.echo(f"! Could not load config file: {e}", err=True)
            click.echo("  Using default configuration")
        config = LotActionsConfig()

    # Apply command-line overrides
    if db:
        config.db_path = db
    if cycle_id is not None:
        if cycle_id < 1:
            raise click.BadParameter("must be a positive integer", param_hint="--cycle")
        config.cycle_id = cycle_id
    if ledger_url:
        config.ledger_url = ledger_url
    if verbose:
        config.verbose = True
    if output_json:
        config.json_output = True
    if use_ledger is not None:
        config.use_ledger = use_ledger

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    mode = "ledger" if config.use_ledger else "stub"
    if config.verbose:
        target = config.ledger_url if mode == "ledger" else "in-memory stub"
        click.echo(f"+ Cycle {config.cycle_id}, submitting to {target}")

    cli_ctx = CLIContext(
        config=config,
        repository=LotRepository(config.db_path),
        mode=mode,
        verbose=config.verbose,
        json=config.json_output,
    )

    ctx.obj = {
        "verbose": config.verbose,
        "json": config.json_output,
        "cli_context": cli_ctx,
    }


# Register position commands
cli.add_command(list_lots, name="list")
cli.add_command(show)
cli.add_command(buy)
cli.add_command(sell_put, name="sell-put")
cli.add_command(sync)

# Register trade commands
cli.add_command(cover)
cli.add_command(close_call, name="close-call")
cli.add_command(roll)
cli.add_command(close_put, name="close-put")
cli.add_command(assign)
cli.add_command(called_away, name="called-away")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


__all__ = ["cli", "main", "CLIContext"]
