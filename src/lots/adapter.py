"""Boundary between the lot actions engine and the backend event ledger.

The engine only ever talks to an ActionAdapter. Submissions are fallible and
asynchronous whatever the implementation is: callers must expect them to
raise, and nothing is applied locally until they resolve.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Protocol

from .models import LotEvent
from .payloads import ActionPayload

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Kinds of actions submitted to the ledger."""

    SELL_COVERED_CALL = "sell_covered_call"
    CLOSE_COVERED_CALL = "close_covered_call"
    ROLL_COVERED_CALL = "roll_covered_call"
    CLOSE_SHORT_PUT = "close_short_put"
    CREATE_LOT_BUY = "create_lot_buy"
    CREATE_LOT_SHORT_PUT = "create_lot_short_put"
    RECORD_PUT_ASSIGNMENT = "record_put_assignment"
    RECORD_CALLED_AWAY = "record_called_away"


@dataclass(frozen=True)
class ActionRequest:
    """
    One action as submitted to the ledger.

    Attributes:
        lot_number: Target lot (or the number reserved for a new lot)
        ticker: Underlying symbol
        payload: The validated action input
        events: Events the action will append, in order. Their ids are
            placeholders; the ledger assigns the real ones.
    """

    lot_number: int
    ticker: str
    payload: ActionPayload
    events: tuple[LotEvent, ...]


@dataclass(frozen=True)
class SubmissionAck:
    """Ledger acknowledgement: one assigned id per submitted event."""

    ids: tuple[str, ...]


class ActionAdapter(Protocol):
    """Interface the engine uses to reach the event ledger."""

    async def submit(self, kind: ActionKind, request: ActionRequest) -> SubmissionAck:
        """Record an action. Raises on failure with a human-readable message."""
        ...

    async def fetch_events(self, lot_number: int) -> list[LotEvent]:
        """Get the ledger's events for a lot, in ledger order."""
        ...


@dataclass
class StubActionAdapter:
    """
    In-memory ledger that assigns synthetic ids.

    Stands in for the backend during development and tests. Set fail_with
    to make the next submissions raise; set delay to simulate latency.
    """

    delay: float = 0.0
    fail_with: Optional[Exception] = None
    ledger: dict[int, list[LotEvent]] = field(default_factory=dict)
    submissions: list[tuple[ActionKind, ActionRequest]] = field(default_factory=list)

    async def submit(self, kind: ActionKind, request: ActionRequest) -> SubmissionAck:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

        self.submissions.append((kind, request))
        recorded = [replace(event, id=str(uuid.uuid4())) for event in request.events]
        self.ledger.setdefault(request.lot_number, []).extend(recorded)

        logger.debug(
            f"Stub ledger recorded {kind.value} on lot {request.lot_number} "
            f"({len(recorded)} event(s))"
        )
        return SubmissionAck(ids=tuple(event.id for event in recorded))

    async def fetch_events(self, lot_number: int) -> list[LotEvent]:
        return list(self.ledger.get(lot_number, []))
