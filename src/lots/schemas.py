"""Pydantic models for the backend event ledger wire format.

The ledger stores wheel events per cycle; lot events map onto its event
types one-to-one, with the lot number carried alongside.
"""

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from .models import LotEvent
from .state import EventType

# Lot event type -> ledger event type
LEDGER_EVENT_TYPES: dict[EventType, str] = {
    EventType.BUY_SHARES: "BUY_SHARES",
    EventType.SELL_PUT: "SELL_PUT_OPEN",
    EventType.SELL_PUT_CLOSE: "SELL_PUT_CLOSE",
    EventType.PUT_ASSIGNMENT: "ASSIGNMENT",
    EventType.SELL_CALL_OPEN: "SELL_CALL_OPEN",
    EventType.SELL_CALL_CLOSE: "SELL_CALL_CLOSE",
    EventType.CALL_ASSIGNMENT: "CALLED_AWAY",
}
LOT_EVENT_TYPES: dict[str, EventType] = {v: k for k, v in LEDGER_EVENT_TYPES.items()}


class LedgerEventCreate(BaseModel):
    """Request schema for recording one event in the ledger.

    Attributes:
        cycle_id: Wheel cycle the lot belongs to
        lot_no: Lot number within the cycle
        ticker: Underlying symbol
        event_type: Ledger event type (e.g. 'SELL_CALL_OPEN')
        event_date: Trade date
        quantity_shares: Shares moved, for share events
        contracts: Contracts traded, for option events

    Example:
        >>> LedgerEventCreate(
        >>>     cycle_id=1,
        >>>     lot_no=2,
        >>>     ticker="AAPL",
        >>>     event_type="SELL_CALL_OPEN",
        >>>     event_date="2025-01-10",
        >>>     contracts=1,
        >>>     strike=160.0,
        >>>     premium=2.5,
        >>> )
    """

    cycle_id: int
    lot_no: int = Field(..., gt=0)
    ticker: str
    event_type: str
    event_date: Optional[date] = None

    quantity_shares: Optional[float] = None
    contracts: Optional[int] = None
    price: Optional[float] = None
    strike: Optional[float] = None
    premium: Optional[float] = None
    fees: Optional[float] = None
    expiration_date: Optional[date] = None

    notes: Optional[str] = None

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        """Validate event type is one the ledger knows.

        Raises:
            ValueError: If the type is unknown
        """
        v = v.upper().strip()
        if v not in LOT_EVENT_TYPES:
            raise ValueError(f"Unknown ledger event type: {v}")
        return v

    @classmethod
    def from_lot_event(
        cls, event: LotEvent, cycle_id: int, lot_number: int, ticker: str
    ) -> "LedgerEventCreate":
        """Build the ledger request for a lot event."""
        return cls(
            cycle_id=cycle_id,
            lot_no=lot_number,
            ticker=ticker,
            event_type=LEDGER_EVENT_TYPES[event.type],
            event_date=event.date,
            quantity_shares=float(event.qty) if event.is_share_event else None,
            contracts=None if event.is_share_event else event.qty,
            price=event.price,
            strike=event.strike,
            premium=event.premium,
            fees=event.fees,
            expiration_date=event.expiry,
            notes=event.notes,
        )


class LedgerEventRead(LedgerEventCreate):
    """Response schema for a ledger event."""

    id: Union[int, str]

    def to_lot_event(self) -> LotEvent:
        """Convert back to a lot event."""
        event_type = LOT_EVENT_TYPES[self.event_type]
        if self.quantity_shares is not None:
            qty = int(self.quantity_shares)
        else:
            qty = self.contracts or 1
        return LotEvent(
            id=str(self.id),
            date=self.event_date.isoformat() if self.event_date else "",
            type=event_type,
            qty=qty,
            strike=self.strike,
            premium=self.premium,
            price=self.price,
            expiry=self.expiration_date.isoformat() if self.expiration_date else None,
            fees=self.fees,
            notes=self.notes,
        )
