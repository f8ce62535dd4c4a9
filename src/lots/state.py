"""State machine enums and guards for wheel lots."""

from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .models import Lot


class LotStatus(Enum):
    """
    Lifecycle status of a lot.

    A lot is a unit of 100 shares (or the cash reserved to buy them):
    - OPEN_UNCOVERED: Holding shares with no short call written against
      them, or a cash-secured put waiting on assignment
    - OPEN_COVERED: Holding shares with an open short call
    - CASH_RESERVED: Short put open with cash set aside. Never derived
      from events, which report a pending put as OPEN_UNCOVERED
    - CLOSED: Shares called away
    """

    OPEN_UNCOVERED = "OPEN_UNCOVERED"
    OPEN_COVERED = "OPEN_COVERED"
    CASH_RESERVED = "CASH_RESERVED"
    CLOSED = "CLOSED"


class CoverageStatus(Enum):
    """Status of the short option leg written against a lot."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class OptionRight(Enum):
    """Which kind of option the short leg is."""

    CALL = "CALL"
    PUT = "PUT"


class AcquisitionType(Enum):
    """How a lot came to exist."""

    OUTRIGHT_PURCHASE = "OUTRIGHT_PURCHASE"
    PUT_ASSIGNMENT = "PUT_ASSIGNMENT"
    CASH_SECURED_PUT = "CASH_SECURED_PUT"  # Pending assignment


class EventType(Enum):
    """Kinds of entries in a lot's event log."""

    BUY_SHARES = "BUY_SHARES"
    SELL_PUT = "SELL_PUT"
    SELL_PUT_CLOSE = "SELL_PUT_CLOSE"
    PUT_ASSIGNMENT = "PUT_ASSIGNMENT"
    SELL_CALL_OPEN = "SELL_CALL_OPEN"
    SELL_CALL_CLOSE = "SELL_CALL_CLOSE"
    CALL_ASSIGNMENT = "CALL_ASSIGNMENT"


class LotAction(Enum):
    """Actions that can be taken against an existing lot."""

    COVER = "cover"
    CLOSE_CALL = "close_call"
    ROLL_CALL = "roll_call"
    CLOSE_PUT = "close_put"
    ASSIGN_PUT = "assign_put"
    CALLED_AWAY = "called_away"


# Valid status transitions for an existing lot
VALID_TRANSITIONS: dict[LotStatus, dict[LotAction, LotStatus]] = {
    LotStatus.OPEN_UNCOVERED: {
        LotAction.COVER: LotStatus.OPEN_COVERED,
        # Pending put lots: closing the put only closes the leg
        LotAction.CLOSE_PUT: LotStatus.OPEN_UNCOVERED,
        LotAction.ASSIGN_PUT: LotStatus.OPEN_UNCOVERED,
    },
    LotStatus.OPEN_COVERED: {
        LotAction.CLOSE_CALL: LotStatus.OPEN_UNCOVERED,
        LotAction.ROLL_CALL: LotStatus.OPEN_COVERED,
        LotAction.CALLED_AWAY: LotStatus.CLOSED,
    },
    LotStatus.CASH_RESERVED: {
        LotAction.CLOSE_PUT: LotStatus.CASH_RESERVED,
        LotAction.ASSIGN_PUT: LotStatus.OPEN_UNCOVERED,
    },
    LotStatus.CLOSED: {},
}


def get_valid_actions(status: LotStatus) -> list[LotAction]:
    """Get list of actions the transition table allows from a status."""
    return list(VALID_TRANSITIONS.get(status, {}).keys())


def can_transition(from_status: LotStatus, action: LotAction) -> bool:
    """Check if the transition table allows an action from a status."""
    return action in VALID_TRANSITIONS.get(from_status, {})


def get_next_state(from_status: LotStatus, action: LotAction) -> LotStatus:
    """
    Get the status a lot moves to after an action.

    Raises:
        ValueError: If the transition is not valid.
    """
    transitions = VALID_TRANSITIONS.get(from_status, {})
    if action not in transitions:
        valid = [a.value for a in get_valid_actions(from_status)]
        raise ValueError(
            f"Invalid action '{action.value}' from status '{from_status.value}'. "
            f"Valid actions: {valid}"
        )
    return transitions[action]


# --- Guards ---
#
# Guards look at the lot itself, not only its status: a lot whose status
# says covered but whose coverage is closed must not offer close/roll.


def _coverage_open(lot: "Lot", right: OptionRight) -> bool:
    coverage = lot.coverage
    return (
        coverage is not None
        and coverage.right == right
        and coverage.status == CoverageStatus.OPEN
    )


def _awaiting_assignment(lot: "Lot") -> bool:
    return lot.acquisition is not None and lot.acquisition.is_pending


def can_cover(lot: "Lot") -> bool:
    """Selling a covered call is offered only on uncovered share lots."""
    return lot.status == LotStatus.OPEN_UNCOVERED and not _awaiting_assignment(lot)


def can_close_or_roll_call(lot: "Lot") -> bool:
    """Close/roll requires a covered lot with its call leg still open."""
    return lot.status == LotStatus.OPEN_COVERED and (
        lot.coverage is not None and lot.coverage.status == CoverageStatus.OPEN
    )


def can_close_put(lot: "Lot") -> bool:
    """Closing a put is offered on cash-secured put lots not yet closed."""
    from_put = (
        lot.acquisition is not None
        and lot.acquisition.type == AcquisitionType.CASH_SECURED_PUT
    ) or lot.status == LotStatus.CASH_RESERVED
    coverage_closed = (
        lot.coverage is not None and lot.coverage.status == CoverageStatus.CLOSED
    )
    return from_put and not coverage_closed


def can_record_put_assignment(lot: "Lot") -> bool:
    """Assignment applies to a pending put lot whose put is still open."""
    pending = _awaiting_assignment(lot) or lot.status == LotStatus.CASH_RESERVED
    return pending and _coverage_open(lot, OptionRight.PUT)


def can_record_called_away(lot: "Lot") -> bool:
    """Shares can only be called away while a call is open against them."""
    return lot.status == LotStatus.OPEN_COVERED and _coverage_open(lot, OptionRight.CALL)


GUARDS: dict[LotAction, Callable[["Lot"], bool]] = {
    LotAction.COVER: can_cover,
    LotAction.CLOSE_CALL: can_close_or_roll_call,
    LotAction.ROLL_CALL: can_close_or_roll_call,
    LotAction.CLOSE_PUT: can_close_put,
    LotAction.ASSIGN_PUT: can_record_put_assignment,
    LotAction.CALLED_AWAY: can_record_called_away,
}


def can_perform(lot: "Lot", action: LotAction) -> bool:
    """Check whether an action may be presented for a lot."""
    return GUARDS[action](lot)


def available_actions(lot: "Lot") -> list[LotAction]:
    """Get the actions a UI surface may offer for a lot, in display order."""
    return [action for action in LotAction if can_perform(lot, action)]
