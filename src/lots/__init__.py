"""
Wheel Lots - Lot lifecycle state machine for options wheel positions.

This package tracks 100-share lots through the wheel: bought outright or
acquired through a cash-secured put, covered with calls, rolled, closed,
and eventually called away. Every lot is an append-only event log; its
status, coverage and cost basis are derived from the events.

Public API:
    LotActionsEngine: Applies actions to lots through a ledger adapter
    Lot: A lot and its event log
    LotEvent: One ledger event on a lot
    LotStatus: State machine states
    LotAction: Actions the state machine accepts
    ModalController: Tracks the one open action dialog
    StubActionAdapter: In-memory ledger adapter
"""

from .adapter import (
    ActionAdapter,
    ActionKind,
    ActionRequest,
    StubActionAdapter,
    SubmissionAck,
)
from .collection import LotCollection
from .exceptions import (
    InvalidStateError,
    LotBusyError,
    LotError,
    LotNotFoundError,
    LotValidationError,
    SubmissionError,
)
from .modal import ModalController, ModalKind, ModalState
from .models import (
    Acquisition,
    Coverage,
    Lot,
    LotEvent,
    derive_lot_state,
    next_lot_number,
)
from .payloads import (
    ClosePutInput,
    CloseCoveredCallInput,
    CreateLotBuyInput,
    CreateLotShortPutInput,
    RecordAssignmentInput,
    RollCloseLeg,
    RollCoveredCallInput,
    RollOpenLeg,
    SellCoveredCallInput,
    TimeInForce,
)
from .state import (
    VALID_TRANSITIONS,
    AcquisitionType,
    CoverageStatus,
    EventType,
    LotAction,
    LotStatus,
    OptionRight,
    available_actions,
    can_perform,
    can_transition,
    get_next_state,
    get_valid_actions,
)

__all__ = [
    # Core classes
    "Lot",
    "LotEvent",
    "Coverage",
    "Acquisition",
    "LotCollection",
    "derive_lot_state",
    "next_lot_number",
    # State machine
    "LotStatus",
    "LotAction",
    "CoverageStatus",
    "OptionRight",
    "AcquisitionType",
    "EventType",
    "VALID_TRANSITIONS",
    "available_actions",
    "can_perform",
    "can_transition",
    "get_next_state",
    "get_valid_actions",
    # Payloads
    "SellCoveredCallInput",
    "CloseCoveredCallInput",
    "RollCloseLeg",
    "RollOpenLeg",
    "RollCoveredCallInput",
    "CreateLotBuyInput",
    "CreateLotShortPutInput",
    "ClosePutInput",
    "RecordAssignmentInput",
    "TimeInForce",
    # Dialogs and adapters
    "ModalController",
    "ModalKind",
    "ModalState",
    "ActionAdapter",
    "ActionKind",
    "ActionRequest",
    "SubmissionAck",
    "StubActionAdapter",
    # Exceptions
    "LotError",
    "LotValidationError",
    "InvalidStateError",
    "LotNotFoundError",
    "LotBusyError",
    "SubmissionError",
]

# Deferred imports keep httpx and sqlite out of plain model use
def __getattr__(name: str):
    """Lazy import for the engine, repository and ledger client."""
    if name == "LotActionsEngine":
        from .engine import LotActionsEngine
        return LotActionsEngine
    if name == "LotRepository":
        from .repository import LotRepository
        return LotRepository
    if name == "LedgerAPIClient":
        from .api_client import LedgerAPIClient
        return LedgerAPIClient
    if name == "HttpActionAdapter":
        from .api_client import HttpActionAdapter
        return HttpActionAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
