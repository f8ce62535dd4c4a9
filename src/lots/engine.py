"""
Lot actions engine.

This module provides the LotActionsEngine class, the single authority on
which actions are legal for a lot and what the lot looks like afterwards.
Every mutating operation follows the same path: validate the payload,
lock the lot, check the guard, submit to the ledger adapter, and only once
the ledger acknowledges, append the events to the lot and close the dialog.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from .adapter import ActionAdapter, ActionKind, ActionRequest, SubmissionAck
from .collection import LotCollection
from .exceptions import (
    InvalidStateError,
    LotBusyError,
    LotNotFoundError,
    LotValidationError,
)
from .modal import ModalController, ModalKind, ModalState
from .models import SHARES_PER_LOT, Lot, LotEvent, next_lot_number
from .payloads import (
    ActionPayload,
    ClosePutInput,
    CloseCoveredCallInput,
    CreateLotBuyInput,
    CreateLotShortPutInput,
    RecordAssignmentInput,
    RollCoveredCallInput,
    SellCoveredCallInput,
)
from .state import EventType, LotAction, available_actions, can_perform
from .validators import (
    parse_calendar_date,
    validate_close_covered_call,
    validate_close_put,
    validate_create_lot_buy,
    validate_create_lot_short_put,
    validate_record_assignment,
    validate_roll_covered_call,
    validate_sell_covered_call,
)

logger = logging.getLogger(__name__)


def _iso(value: str) -> str:
    """Normalize a validated date string to YYYY-MM-DD."""
    parsed = parse_calendar_date(value)
    return parsed.isoformat() if parsed else value


def _draft(index: int, **fields) -> LotEvent:
    """Event awaiting a ledger id."""
    return LotEvent(id=f"pending-{index}", **fields)


class LotActionsEngine:
    """
    Applies wheel actions to the lots of one cycle.

    Manages the lifecycle of lots, enforces the state machine guards, and
    keeps at most one action in flight per lot. Two actions against the
    same lot never interleave: the second is rejected with LotBusyError
    until the first has been acknowledged or has failed. New lots are
    created one at a time so lot numbers stay unique.

    Example:
        engine = LotActionsEngine(LotCollection(), StubActionAdapter())
        await engine.create_lot_buy(CreateLotBuyInput("AAPL", 150.0, "2025-01-10"))
        await engine.sell_covered_call(
            SellCoveredCallInput(lot_id=1, strike=160.0, expiry="2025-02-21",
                                 limit_premium=2.5)
        )
    """

    def __init__(
        self,
        lots: LotCollection,
        adapter: ActionAdapter,
        modal: Optional[ModalController] = None,
        clock: Callable[[], date] = date.today,
    ):
        """
        Initialize the engine.

        Args:
            lots: Caller-owned lot collection, mutated only via its update()
            adapter: Ledger adapter actions are submitted through
            modal: Dialog controller (a private one is created if omitted)
            clock: Returns today's date; validators compare expiries to it
        """
        self.lots = lots
        self.adapter = adapter
        self.modal_controller = modal or ModalController()
        self._clock = clock
        self._lot_locks: dict[int, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()

    # --- Dialogs ---

    @property
    def modal(self) -> Optional[ModalState]:
        """The open dialog, if any."""
        return self.modal_controller.current

    def open_cover(self, lot: Lot) -> ModalState:
        return self.modal_controller.open(ModalKind.COVER, lot=lot)

    def open_close_call(self, lot: Lot) -> ModalState:
        return self.modal_controller.open(ModalKind.CLOSE_CALL, lot=lot)

    def open_close_put(self, lot: Lot) -> ModalState:
        return self.modal_controller.open(ModalKind.CLOSE_PUT, lot=lot)

    def open_roll(self, lot: Lot) -> ModalState:
        return self.modal_controller.open(ModalKind.ROLL, lot=lot)

    def open_new_lot(self, ticker: Optional[str] = None) -> ModalState:
        return self.modal_controller.open(ModalKind.NEW, ticker=ticker)

    def close_modal(self) -> bool:
        """Dismiss the open dialog. Refused while its own submission is pending."""
        return self.modal_controller.close()

    # --- Queries ---

    def get_lot(self, lot_number: int) -> Lot:
        """
        Get a lot by number.

        Raises:
            LotNotFoundError: If no lot has that number
        """
        lot = self.lots.get(lot_number)
        if lot is None:
            raise LotNotFoundError(f"No lot #{lot_number} in this cycle")
        return lot

    def available_actions(self, lot: Lot) -> list[LotAction]:
        """Actions a UI surface may offer for a lot."""
        return available_actions(lot)

    def is_busy(self, lot_number: int) -> bool:
        """True while an action on the lot is being submitted."""
        lock = self._lot_locks.get(lot_number)
        return lock is not None and lock.locked()

    # --- Actions on existing lots ---

    async def sell_covered_call(self, payload: SellCoveredCallInput) -> None:
        """
        Write a call against an uncovered lot.

        OPEN_UNCOVERED -> OPEN_COVERED, appends SELL_CALL_OPEN.

        Raises:
            LotValidationError: If strike/premium/expiry are invalid
            LotNotFoundError: If the lot doesn't exist
            InvalidStateError: If the lot is not uncovered
            LotBusyError: If another action on the lot is in flight
        """
        if not validate_sell_covered_call(payload, self._clock()):
            raise LotValidationError("Invalid sell covered call")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.COVER)
            drafts = [
                _draft(
                    0,
                    date=self._today(),
                    type=EventType.SELL_CALL_OPEN,
                    strike=payload.strike,
                    premium=payload.limit_premium,
                    expiry=_iso(payload.expiry),
                    fees=payload.fees,
                )
            ]
            await self._commit(ActionKind.SELL_COVERED_CALL, lot, payload, drafts)

    async def close_covered_call(self, payload: CloseCoveredCallInput) -> None:
        """
        Buy back the open call.

        OPEN_COVERED -> OPEN_UNCOVERED, coverage closed, appends SELL_CALL_CLOSE.
        """
        if not validate_close_covered_call(payload):
            raise LotValidationError("Invalid close call")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.CLOSE_CALL)
            drafts = [
                _draft(
                    0,
                    date=_iso(payload.trade_date) if payload.trade_date else self._today(),
                    type=EventType.SELL_CALL_CLOSE,
                    price=payload.limit_debit,
                    qty=payload.contracts,
                    fees=payload.fees,
                    notes=payload.notes,
                )
            ]
            await self._commit(ActionKind.CLOSE_COVERED_CALL, lot, payload, drafts)

    async def roll_covered_call(self, payload: RollCoveredCallInput) -> None:
        """
        Close the open call and write a new one as a single action.

        Appends SELL_CALL_CLOSE then SELL_CALL_OPEN; the lot stays covered
        with the new strike and premium. Nothing changes if validation fails.
        """
        if not validate_roll_covered_call(payload, self._clock()):
            raise LotValidationError("Invalid roll")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.ROLL_CALL)
            today = self._today()
            drafts = [
                _draft(
                    0,
                    date=today,
                    type=EventType.SELL_CALL_CLOSE,
                    price=payload.close.limit_debit,
                    fees=payload.close.fees,
                    notes=payload.close.notes,
                ),
                _draft(
                    1,
                    date=today,
                    type=EventType.SELL_CALL_OPEN,
                    strike=payload.open.strike,
                    premium=payload.open.limit_premium,
                    expiry=_iso(payload.open.expiry),
                    fees=payload.open.fees,
                ),
            ]
            await self._commit(ActionKind.ROLL_COVERED_CALL, lot, payload, drafts)

    async def close_short_put(self, payload: ClosePutInput) -> None:
        """
        Buy back the short put on a cash-secured lot.

        Put leg closed, appends SELL_PUT_CLOSE. Status is unchanged; the lot
        stays pending with nothing left to act on.
        """
        if not validate_close_put(payload):
            raise LotValidationError("Invalid close put")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.CLOSE_PUT)
            drafts = [
                _draft(
                    0,
                    date=_iso(payload.trade_date),
                    type=EventType.SELL_PUT_CLOSE,
                    price=payload.limit_debit,
                    qty=payload.contracts,
                    fees=payload.fees,
                    notes=payload.notes,
                )
            ]
            await self._commit(ActionKind.CLOSE_SHORT_PUT, lot, payload, drafts)

    async def record_put_assignment(self, payload: RecordAssignmentInput) -> None:
        """
        Record the short put being assigned.

        Pending put lot -> OPEN_UNCOVERED share lot; 100 shares bought at the
        put strike, which becomes the cost basis.
        """
        if not validate_record_assignment(payload):
            raise LotValidationError("Invalid put assignment")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.ASSIGN_PUT)
            drafts = [
                _draft(
                    0,
                    date=_iso(payload.trade_date),
                    type=EventType.PUT_ASSIGNMENT,
                    price=lot.coverage.strike if lot.coverage else None,
                    qty=SHARES_PER_LOT,
                    notes=payload.notes,
                )
            ]
            await self._commit(ActionKind.RECORD_PUT_ASSIGNMENT, lot, payload, drafts)

    async def record_called_away(self, payload: RecordAssignmentInput) -> None:
        """
        Record the covered call being assigned.

        OPEN_COVERED -> CLOSED; the shares are sold at the call strike.
        """
        if not validate_record_assignment(payload):
            raise LotValidationError("Invalid call assignment")

        async with self._lot_lock(payload.lot_id):
            lot = self._require(payload.lot_id, LotAction.CALLED_AWAY)
            drafts = [
                _draft(
                    0,
                    date=_iso(payload.trade_date),
                    type=EventType.CALL_ASSIGNMENT,
                    price=lot.coverage.strike if lot.coverage else None,
                    qty=SHARES_PER_LOT,
                    notes=payload.notes,
                )
            ]
            await self._commit(ActionKind.RECORD_CALLED_AWAY, lot, payload, drafts)

    # --- Lot creation ---

    async def create_lot_buy(self, payload: CreateLotBuyInput) -> None:
        """
        Start a new lot by buying 100 shares.

        New lot is OPEN_UNCOVERED with an OUTRIGHT_PURCHASE acquisition and
        a single BUY_SHARES event.
        """
        if not validate_create_lot_buy(payload):
            raise LotValidationError("Invalid lot buy")

        drafts = [
            _draft(
                0,
                date=_iso(payload.date),
                type=EventType.BUY_SHARES,
                price=payload.price,
                qty=SHARES_PER_LOT,
                fees=payload.fees,
            )
        ]
        await self._create(
            ActionKind.CREATE_LOT_BUY, payload.ticker, payload, drafts
        )

    async def create_lot_short_put(self, payload: CreateLotShortPutInput) -> None:
        """
        Start a new lot by selling a cash-secured put.

        New lot is OPEN_UNCOVERED, pending assignment, with a SELL_PUT event.
        A zero premium is accepted.
        """
        if not validate_create_lot_short_put(payload, self._clock()):
            raise LotValidationError("Invalid CSP")

        drafts = [
            _draft(
                0,
                date=self._today(),
                type=EventType.SELL_PUT,
                strike=payload.strike,
                premium=payload.premium,
                expiry=_iso(payload.expiry),
                fees=payload.fees,
                notes="Pending assignment",
            )
        ]
        await self._create(
            ActionKind.CREATE_LOT_SHORT_PUT, payload.ticker, payload, drafts
        )

    # --- Reconciliation ---

    async def reconcile(self, lot_number: int) -> int:
        """
        Pull a lot's events from the ledger and append any missing locally.

        Events are only ever appended; local events the ledger doesn't know
        about are logged, not removed.

        Returns:
            Number of events appended
        """
        async with self._lot_lock(lot_number):
            lot = self.get_lot(lot_number)
            remote = await self.adapter.fetch_events(lot_number)

            local_ids = {event.id for event in lot.events}
            remote_ids = {event.id for event in remote}
            missing = [event for event in remote if event.id not in local_ids]
            divergent = [event.id for event in lot.events if event.id not in remote_ids]

            if divergent:
                logger.warning(
                    f"Lot #{lot_number} has {len(divergent)} event(s) the ledger "
                    f"does not: {divergent}"
                )
            if missing:
                self.lots.update(
                    lambda prev: [
                        item.append_events(*missing) if item.lot_number == lot_number else item
                        for item in prev
                    ]
                )
                logger.info(
                    f"Reconciled lot #{lot_number}: appended {len(missing)} ledger event(s)"
                )
            return len(missing)

    async def reconcile_all(self) -> int:
        """Reconcile every lot in the collection. Returns events appended."""
        appended = 0
        for lot in self.lots.snapshot():
            appended += await self.reconcile(lot.lot_number)
        return appended

    # --- Internals ---

    def _today(self) -> str:
        return self._clock().isoformat()

    @asynccontextmanager
    async def _lot_lock(self, lot_number: int) -> AsyncIterator[None]:
        """
        Hold a lot for the duration of a submission, rejecting overlap.

        Raises:
            LotNotFoundError: If the lot is not in the collection; no lock is
                created for it
            LotBusyError: If another action on the lot is in flight
        """
        self.get_lot(lot_number)
        lock = self._lot_locks.setdefault(lot_number, asyncio.Lock())
        if lock.locked():
            raise LotBusyError(
                f"Lot #{lot_number} already has an action in flight. "
                f"Wait for it to finish before submitting another."
            )
        async with lock:
            yield

    def _require(self, lot_number: int, action: LotAction) -> Lot:
        """Get a lot and check the action's guard."""
        lot = self.get_lot(lot_number)
        if not can_perform(lot, action):
            valid = [a.value for a in available_actions(lot)]
            raise InvalidStateError(
                f"Cannot {action.value.replace('_', ' ')} on lot #{lot_number} "
                f"in status {lot.status.value}. Available actions: {valid}"
            )
        return lot

    def _assign_ids(
        self, drafts: Sequence[LotEvent], ack: SubmissionAck, kind: ActionKind
    ) -> list[LotEvent]:
        """Key each drafted event by the id the ledger returned for it."""
        ids = list(ack.ids)
        if len(ids) != len(drafts):
            logger.warning(
                f"Ledger returned {len(ids)} id(s) for {len(drafts)} event(s) "
                f"of {kind.value}; generating local ids for the rest"
            )
            ids = ids[: len(drafts)]
            ids += [str(uuid.uuid4()) for _ in range(len(drafts) - len(ids))]
        return [replace(draft, id=event_id) for event_id, draft in zip(ids, drafts)]

    async def _submit(
        self,
        kind: ActionKind,
        lot_number: int,
        ticker: str,
        payload: ActionPayload,
        drafts: Sequence[LotEvent],
    ) -> list[LotEvent]:
        """Submit to the ledger while holding the dialog open."""
        request = ActionRequest(
            lot_number=lot_number,
            ticker=ticker,
            payload=payload,
            events=tuple(drafts),
        )
        with self.modal_controller.submitting():
            try:
                ack = await self.adapter.submit(kind, request)
            except Exception as e:
                logger.warning(f"{kind.value} on lot #{lot_number} failed: {e}")
                raise
        return self._assign_ids(drafts, ack, kind)

    async def _commit(
        self,
        kind: ActionKind,
        lot: Lot,
        payload: ActionPayload,
        drafts: Sequence[LotEvent],
    ) -> None:
        """Submit, then append the acknowledged events to an existing lot."""
        slot = self.modal_controller.current
        events = await self._submit(kind, lot.lot_number, lot.ticker, payload, drafts)

        self.lots.update(
            lambda prev: [
                item.append_events(*events) if item.lot_number == lot.lot_number else item
                for item in prev
            ]
        )
        updated = self.get_lot(lot.lot_number)
        logger.info(
            f"{kind.value} on {updated.ticker} lot #{updated.lot_number}: "
            f"{lot.status.value} -> {updated.status.value}"
        )
        self.modal_controller.close_if_current(slot)

    async def _create(
        self,
        kind: ActionKind,
        ticker: str,
        payload: ActionPayload,
        drafts: Sequence[LotEvent],
    ) -> None:
        """Submit, then append a new lot numbered one past the highest."""
        slot = self.modal_controller.current
        ticker = ticker.strip().upper()

        async with self._create_lock:
            reserved = next_lot_number(self.lots.snapshot())
            events = await self._submit(kind, reserved, ticker, payload, drafts)

            def append_lot(prev: list[Lot]) -> list[Lot]:
                number = reserved
                if any(item.lot_number == number for item in prev):
                    number = next_lot_number(prev)
                    logger.warning(
                        f"Lot #{reserved} was taken during submission; using #{number}"
                    )
                return prev + [Lot.from_events(number, ticker, events)]

            self.lots.update(append_lot)

        created = self.lots.snapshot()[-1]
        logger.info(
            f"{kind.value}: created {created.ticker} lot #{created.lot_number} "
            f"({created.status.value})"
        )
        self.modal_controller.close_if_current(slot)
