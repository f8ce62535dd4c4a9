#!/usr/bin/env python3
"""
Wheel Lots Tool - CLI and Module for tracking options wheel lots.

A lot is 100 shares of one ticker, opened by buying shares outright or by
selling a cash-secured put, and then worked with covered calls until the
shares are called away.

CLI Usage:
    lots buy AAPL --price 150.00 --date 2025-01-10
    lots cover 1 --strike 160 --expiry 2025-02-21 --premium 2.50
    lots roll 1 --debit 0.75 --strike 165 --expiry 2025-03-21 --premium 3.00
    lots close-call 1 --debit 0.50
    lots sell-put MSFT --strike 400 --expiry 2025-02-21 --premium 5.00
    lots assign 2 --date 2025-02-21
    lots list
    lots show 1

Module Usage:
    import asyncio
    from lots_tool import LotActionsEngine, LotCollection, StubActionAdapter
    from src.lots import CreateLotBuyInput

    engine = LotActionsEngine(LotCollection(), StubActionAdapter())
    asyncio.run(engine.create_lot_buy(CreateLotBuyInput("AAPL", 150.0, "2025-01-10")))

State Machine:
    OPEN_UNCOVERED -> cover -> OPEN_COVERED -> close call -> OPEN_UNCOVERED
                                            -> roll -> OPEN_COVERED
                                            -> called away -> CLOSED

    sell put -> OPEN_UNCOVERED (pending) -> close put -> status unchanged, put closed
                                        -> assigned  -> OPEN_UNCOVERED (bought at strike)
"""

from src.lots import (
    VALID_TRANSITIONS,
    Lot,
    LotAction,
    LotCollection,
    LotEvent,
    LotStatus,
    StubActionAdapter,
    available_actions,
    can_transition,
    get_next_state,
    get_valid_actions,
)
from src.lots.engine import LotActionsEngine

__all__ = [
    # Main class
    "LotActionsEngine",
    # Data models
    "Lot",
    "LotEvent",
    "LotCollection",
    "StubActionAdapter",
    # State machine
    "LotStatus",
    "LotAction",
    "VALID_TRANSITIONS",
    "available_actions",
    "can_transition",
    "get_next_state",
    "get_valid_actions",
]


def main() -> None:
    """CLI entry point."""
    from src.lots.cli import cli

    cli()


if __name__ == "__main__":
    main()
