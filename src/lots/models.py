"""Data models for wheel lots and their event logs."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .state import (
    AcquisitionType,
    CoverageStatus,
    EventType,
    LotStatus,
    OptionRight,
)

SHARES_PER_LOT = 100
COST_BASIS_PENDING = "—"

# Event types whose qty counts shares rather than contracts
SHARE_EVENT_TYPES = frozenset(
    {EventType.BUY_SHARES, EventType.PUT_ASSIGNMENT, EventType.CALL_ASSIGNMENT}
)

EVENT_LABELS: dict[EventType, str] = {
    EventType.BUY_SHARES: "Bought Shares",
    EventType.SELL_PUT: "Sold PUT",
    EventType.SELL_PUT_CLOSE: "Closed PUT",
    EventType.PUT_ASSIGNMENT: "PUT Assigned",
    EventType.SELL_CALL_OPEN: "Sold CALL",
    EventType.SELL_CALL_CLOSE: "Closed CALL",
    EventType.CALL_ASSIGNMENT: "CALL Assigned",
}


def format_money(value: Optional[float]) -> str:
    """Format a dollar amount the way lots display it ("$150.00")."""
    if value is None:
        return COST_BASIS_PENDING
    return f"${value:.2f}"


@dataclass(frozen=True)
class LotEvent:
    """
    Immutable entry in a lot's event log.

    The log is append-only: events are never edited or removed, and the
    acquisition, coverage and status of a lot are all derived from it.
    """

    id: str
    date: str  # YYYY-MM-DD
    type: EventType
    label: str = ""
    qty: int = 1  # Shares for share events, contracts otherwise
    strike: Optional[float] = None
    premium: Optional[float] = None
    price: Optional[float] = None
    expiry: Optional[str] = None  # YYYY-MM-DD, option events only
    fees: Optional[float] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        """Fill the default label for the event type."""
        if not self.label:
            object.__setattr__(self, "label", EVENT_LABELS[self.type])

    @property
    def is_share_event(self) -> bool:
        """True if qty is counted in shares."""
        return self.type in SHARE_EVENT_TYPES

    @property
    def qty_label(self) -> str:
        """Human-readable quantity ("100 sh", "1 ctr", "2 ctrs")."""
        if self.is_share_event:
            return f"{self.qty} sh"
        return f"{self.qty} ctr{'s' if self.qty > 1 else ''}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type.value,
            "label": self.label,
            "qty": self.qty_label,
            "strike": self.strike,
            "premium": self.premium,
            "price": self.price,
            "expiry": self.expiry,
            "fees": self.fees,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Coverage:
    """The short option leg written against a lot."""

    right: OptionRight
    strike: float
    premium: float
    status: CoverageStatus = CoverageStatus.OPEN
    expiry: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == CoverageStatus.OPEN

    @property
    def strike_label(self) -> str:
        return format_money(self.strike)

    @property
    def premium_label(self) -> str:
        return format_money(self.premium)

    def closed(self) -> "Coverage":
        """Copy of this leg marked closed."""
        return replace(self, status=CoverageStatus.CLOSED)


@dataclass(frozen=True)
class Acquisition:
    """
    How a lot came to exist.

    OUTRIGHT_PURCHASE carries the purchase price, PUT_ASSIGNMENT the strike
    the shares were put to us at, and CASH_SECURED_PUT is the pending case:
    a put has been sold but not assigned, so there is no price yet.
    """

    type: AcquisitionType
    date: Optional[str] = None
    price: Optional[float] = None
    strike: Optional[float] = None
    expiry: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        """True while waiting on put assignment."""
        return self.type == AcquisitionType.CASH_SECURED_PUT

    @property
    def label(self) -> str:
        if self.type == AcquisitionType.OUTRIGHT_PURCHASE:
            return f"Bought @ {format_money(self.price)}"
        if self.type == AcquisitionType.PUT_ASSIGNMENT:
            return f"PUT Assigned @ {format_money(self.price)}"
        return "Pending PUT Assignment"


def derive_lot_state(
    events: Sequence[LotEvent],
) -> tuple[Acquisition, Optional[Coverage], LotStatus]:
    """
    Derive acquisition, coverage and status from an event log.

    This is the only place status is computed, so a lot's status can never
    disagree with its coverage.

    Args:
        events: Events in insertion order

    Returns:
        Tuple of (acquisition, coverage, status)

    Raises:
        ValueError: If the log has no acquiring event (BUY_SHARES or SELL_PUT)
    """
    acquisition: Optional[Acquisition] = None
    coverage: Optional[Coverage] = None
    holds_shares = False
    shares_gone = False

    for event in events:
        if event.type == EventType.BUY_SHARES:
            holds_shares = True
            if acquisition is None:
                acquisition = Acquisition(
                    type=AcquisitionType.OUTRIGHT_PURCHASE,
                    date=event.date,
                    price=event.price,
                )
        elif event.type == EventType.SELL_PUT:
            coverage = Coverage(
                right=OptionRight.PUT,
                strike=event.strike or 0.0,
                premium=event.premium or 0.0,
                expiry=event.expiry,
            )
            if acquisition is None:
                acquisition = Acquisition(
                    type=AcquisitionType.CASH_SECURED_PUT,
                    date=event.date,
                    strike=event.strike,
                    expiry=event.expiry,
                )
        elif event.type == EventType.SELL_PUT_CLOSE:
            if coverage is not None and coverage.right == OptionRight.PUT:
                coverage = coverage.closed()
        elif event.type == EventType.PUT_ASSIGNMENT:
            holds_shares = True
            put_strike = coverage.strike if coverage is not None else None
            price = event.price if event.price is not None else put_strike
            if acquisition is None or acquisition.is_pending:
                acquisition = Acquisition(
                    type=AcquisitionType.PUT_ASSIGNMENT,
                    date=event.date,
                    price=price,
                    strike=put_strike,
                    expiry=acquisition.expiry if acquisition else None,
                )
            if coverage is not None and coverage.right == OptionRight.PUT:
                coverage = coverage.closed()
        elif event.type == EventType.SELL_CALL_OPEN:
            coverage = Coverage(
                right=OptionRight.CALL,
                strike=event.strike or 0.0,
                premium=event.premium or 0.0,
                expiry=event.expiry,
            )
        elif event.type == EventType.SELL_CALL_CLOSE:
            if coverage is not None and coverage.right == OptionRight.CALL:
                coverage = coverage.closed()
        elif event.type == EventType.CALL_ASSIGNMENT:
            holds_shares = False
            shares_gone = True
            if coverage is not None and coverage.right == OptionRight.CALL:
                coverage = coverage.closed()
        else:
            raise ValueError(f"Unhandled event type: {event.type}")

    if acquisition is None:
        raise ValueError("Lot event log must start with BUY_SHARES or SELL_PUT")

    if holds_shares:
        covered = (
            coverage is not None
            and coverage.right == OptionRight.CALL
            and coverage.is_open
        )
        status = LotStatus.OPEN_COVERED if covered else LotStatus.OPEN_UNCOVERED
    elif shares_gone:
        status = LotStatus.CLOSED
    else:
        # Put-only lot waiting on assignment; closing the put closes the
        # leg and leaves the status alone.
        status = LotStatus.OPEN_UNCOVERED

    return acquisition, coverage, status


@dataclass(frozen=True)
class Lot:
    """
    A unit of 100 shares tracked independently within a wheel cycle.

    Lots are immutable values: every action produces a new Lot with the
    events appended and the derived fields recomputed. Build them with
    from_events() rather than directly so the caches stay consistent.
    """

    lot_number: int
    ticker: str
    acquisition: Acquisition
    status: LotStatus
    coverage: Optional[Coverage] = None
    events: tuple[LotEvent, ...] = field(default_factory=tuple)

    @classmethod
    def from_events(
        cls, lot_number: int, ticker: str, events: Iterable[LotEvent]
    ) -> "Lot":
        """
        Build a lot from its event log.

        Raises:
            ValueError: If event ids repeat or the log has no acquiring event
        """
        events = tuple(events)
        ids = [event.id for event in events]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate event ids in lot {lot_number}")

        acquisition, coverage, status = derive_lot_state(events)
        return cls(
            lot_number=lot_number,
            ticker=ticker.upper(),
            acquisition=acquisition,
            status=status,
            coverage=coverage,
            events=events,
        )

    def append_events(self, *events: LotEvent) -> "Lot":
        """
        Return a copy with events appended and derived fields recomputed.

        Raises:
            ValueError: If any event id is already in the log
        """
        known = {event.id for event in self.events}
        for event in events:
            if event.id in known:
                raise ValueError(
                    f"Event {event.id} already recorded on lot {self.lot_number}"
                )
            known.add(event.id)
        return Lot.from_events(self.lot_number, self.ticker, self.events + events)

    @property
    def cost_basis(self) -> str:
        """Display cost basis, or a dash while waiting on assignment."""
        if self.acquisition.is_pending:
            return COST_BASIS_PENDING
        return format_money(self.acquisition.price)

    @property
    def is_closed(self) -> bool:
        return self.status == LotStatus.CLOSED

    @property
    def last_event(self) -> Optional[LotEvent]:
        return self.events[-1] if self.events else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        coverage = None
        if self.coverage is not None:
            coverage = {
                "right": self.coverage.right.value,
                "strike": self.coverage.strike_label,
                "premium": self.coverage.premium_label,
                "expiry": self.coverage.expiry,
                "status": self.coverage.status.value,
            }
        return {
            "lot_number": self.lot_number,
            "ticker": self.ticker,
            "acquisition": {
                "type": self.acquisition.type.value,
                "label": self.acquisition.label,
                "date": self.acquisition.date,
            },
            "cost_basis": self.cost_basis,
            "status": self.status.value,
            "coverage": coverage,
            "events": [event.to_dict() for event in self.events],
        }


def next_lot_number(lots: Iterable[Lot]) -> int:
    """Next lot number in a cycle: one past the highest in use."""
    return max((lot.lot_number for lot in lots), default=0) + 1
