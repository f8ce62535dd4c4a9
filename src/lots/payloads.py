"""Input payloads for lot actions.

Each action takes one payload carrying only the fields that action needs.
Payloads are ephemeral; what gets persisted is the LotEvent built from them.
Dates are ISO strings (YYYY-MM-DD), matching the rest of the package.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class TimeInForce(Enum):
    """Order duration for opening legs."""

    DAY = "DAY"
    GTC = "GTC"


@dataclass(frozen=True)
class SellCoveredCallInput:
    """Write a call against an uncovered lot."""

    lot_id: int
    strike: float
    expiry: str
    limit_premium: float
    time_in_force: TimeInForce = TimeInForce.DAY
    fees: Optional[float] = None


@dataclass(frozen=True)
class CloseCoveredCallInput:
    """Buy back the open call on a covered lot."""

    lot_id: int
    limit_debit: float
    trade_date: Optional[str] = None  # Defaults to today
    contracts: int = 1
    fees: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RollCloseLeg:
    limit_debit: float
    fees: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RollOpenLeg:
    strike: float
    expiry: str
    limit_premium: float
    time_in_force: TimeInForce = TimeInForce.DAY
    fees: Optional[float] = None


@dataclass(frozen=True)
class RollCoveredCallInput:
    """Close the open call and open a new one in a single action."""

    lot_id: int
    close: RollCloseLeg
    open: RollOpenLeg


@dataclass(frozen=True)
class CreateLotBuyInput:
    """Start a lot by buying 100 shares outright."""

    ticker: str
    price: float
    date: str
    fees: Optional[float] = None


@dataclass(frozen=True)
class CreateLotShortPutInput:
    """Start a lot by selling a cash-secured put."""

    ticker: str
    strike: float
    expiry: str
    premium: float
    time_in_force: TimeInForce = TimeInForce.DAY
    fees: Optional[float] = None


@dataclass(frozen=True)
class ClosePutInput:
    """Buy back the short put on a cash-secured lot."""

    lot_id: int
    trade_date: str
    limit_debit: float
    contracts: int = 1
    fees: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RecordAssignmentInput:
    """Record a put assignment or a call being assigned away."""

    lot_id: int
    trade_date: str
    notes: Optional[str] = None


ActionPayload = Union[
    SellCoveredCallInput,
    CloseCoveredCallInput,
    RollCoveredCallInput,
    CreateLotBuyInput,
    CreateLotShortPutInput,
    ClosePutInput,
    RecordAssignmentInput,
]
