"""Tests for the lot state machine and action guards."""

from dataclasses import replace

import pytest

from src.lots.models import Lot, LotEvent
from src.lots.state import (
    VALID_TRANSITIONS,
    CoverageStatus,
    EventType,
    LotAction,
    LotStatus,
    available_actions,
    can_close_or_roll_call,
    can_close_put,
    can_cover,
    can_perform,
    can_record_called_away,
    can_record_put_assignment,
    can_transition,
    get_next_state,
    get_valid_actions,
)


def bought_lot() -> Lot:
    return Lot.from_events(
        1,
        "AAPL",
        [LotEvent(id="e1", date="2025-01-10", type=EventType.BUY_SHARES, qty=100, price=150.0)],
    )


def covered_lot() -> Lot:
    return bought_lot().append_events(
        LotEvent(
            id="e2",
            date="2025-01-10",
            type=EventType.SELL_CALL_OPEN,
            strike=160.0,
            premium=2.5,
            expiry="2025-02-21",
        )
    )


def csp_lot() -> Lot:
    return Lot.from_events(
        2,
        "MSFT",
        [
            LotEvent(
                id="p1",
                date="2025-01-10",
                type=EventType.SELL_PUT,
                strike=400.0,
                premium=5.0,
                expiry="2025-02-21",
            )
        ],
    )


class TestTransitionTable:
    """Tests for the transition table."""

    def test_uncovered_transitions(self) -> None:
        """Uncovered lots are covered, or resolve a pending put."""
        assert get_valid_actions(LotStatus.OPEN_UNCOVERED) == [
            LotAction.COVER,
            LotAction.CLOSE_PUT,
            LotAction.ASSIGN_PUT,
        ]
        assert get_next_state(LotStatus.OPEN_UNCOVERED, LotAction.COVER) == LotStatus.OPEN_COVERED

    def test_close_put_keeps_status(self) -> None:
        """Closing a put never moves the lot to another status."""
        assert get_next_state(LotStatus.OPEN_UNCOVERED, LotAction.CLOSE_PUT) == LotStatus.OPEN_UNCOVERED
        assert get_next_state(LotStatus.CASH_RESERVED, LotAction.CLOSE_PUT) == LotStatus.CASH_RESERVED

    def test_covered_transitions(self) -> None:
        """Covered lots can close, roll, or be called away."""
        assert get_next_state(LotStatus.OPEN_COVERED, LotAction.CLOSE_CALL) == LotStatus.OPEN_UNCOVERED
        assert get_next_state(LotStatus.OPEN_COVERED, LotAction.ROLL_CALL) == LotStatus.OPEN_COVERED
        assert get_next_state(LotStatus.OPEN_COVERED, LotAction.CALLED_AWAY) == LotStatus.CLOSED

    def test_cash_reserved_transitions(self) -> None:
        """Reserved lots close the put or get assigned."""
        assert get_valid_actions(LotStatus.CASH_RESERVED) == [LotAction.CLOSE_PUT, LotAction.ASSIGN_PUT]
        assert get_next_state(LotStatus.CASH_RESERVED, LotAction.ASSIGN_PUT) == LotStatus.OPEN_UNCOVERED

    def test_closed_is_terminal(self) -> None:
        """No actions leave CLOSED."""
        assert get_valid_actions(LotStatus.CLOSED) == []
        assert VALID_TRANSITIONS[LotStatus.CLOSED] == {}

    def test_invalid_transition_raises(self) -> None:
        """get_next_state names the valid actions when refusing."""
        assert not can_transition(LotStatus.OPEN_UNCOVERED, LotAction.ROLL_CALL)

        with pytest.raises(ValueError, match="Invalid action 'roll_call'"):
            get_next_state(LotStatus.OPEN_UNCOVERED, LotAction.ROLL_CALL)

    def test_every_status_has_entry(self) -> None:
        """Every status appears in the table."""
        assert set(VALID_TRANSITIONS) == set(LotStatus)


class TestGuards:
    """Tests for per-lot action guards."""

    def test_uncovered_lot(self) -> None:
        """Only cover is offered on an uncovered lot."""
        lot = bought_lot()

        assert can_cover(lot)
        assert not can_close_or_roll_call(lot)
        assert not can_close_put(lot)
        assert available_actions(lot) == [LotAction.COVER]

    def test_covered_lot(self) -> None:
        """Close, roll and called-away are offered on a covered lot."""
        lot = covered_lot()

        assert not can_cover(lot)
        assert can_close_or_roll_call(lot)
        assert can_record_called_away(lot)
        assert available_actions(lot) == [
            LotAction.CLOSE_CALL,
            LotAction.ROLL_CALL,
            LotAction.CALLED_AWAY,
        ]

    def test_csp_lot(self) -> None:
        """Close put and assignment are offered on a pending put lot."""
        lot = csp_lot()

        assert lot.status == LotStatus.OPEN_UNCOVERED
        assert can_close_put(lot)
        assert can_record_put_assignment(lot)
        assert not can_cover(lot)
        assert available_actions(lot) == [LotAction.CLOSE_PUT, LotAction.ASSIGN_PUT]

    def test_covered_status_with_closed_coverage_offers_nothing(self) -> None:
        """A covered status whose leg is closed must not offer close/roll."""
        lot = covered_lot()
        inconsistent = replace(
            lot,
            status=LotStatus.OPEN_COVERED,
            coverage=lot.coverage.closed(),
        )

        assert not can_close_or_roll_call(inconsistent)
        assert not can_record_called_away(inconsistent)
        assert available_actions(inconsistent) == []

    def test_close_put_refused_when_put_closed(self) -> None:
        """A CSP lot whose put is closed cannot close it again."""
        lot = csp_lot()
        closed = replace(lot, coverage=lot.coverage.closed())

        assert closed.coverage.status == CoverageStatus.CLOSED
        assert not can_close_put(closed)

    def test_closed_put_lot_offers_nothing(self) -> None:
        """After buying back the put the lot is uncovered but has no shares to cover."""
        lot = csp_lot().append_events(
            LotEvent(id="p2", date="2025-01-20", type=EventType.SELL_PUT_CLOSE, price=1.25)
        )

        assert lot.status == LotStatus.OPEN_UNCOVERED
        assert lot.coverage.status == CoverageStatus.CLOSED
        assert available_actions(lot) == []

    def test_reserved_status_offers_put_actions(self) -> None:
        """A lot carrying CASH_RESERVED is still treated as a pending put."""
        reserved = replace(csp_lot(), status=LotStatus.CASH_RESERVED)

        assert available_actions(reserved) == [LotAction.CLOSE_PUT, LotAction.ASSIGN_PUT]

    def test_closed_lot_offers_nothing(self) -> None:
        """CLOSED lots have no actions."""
        lot = covered_lot().append_events(
            LotEvent(id="e3", date="2025-02-21", type=EventType.CALL_ASSIGNMENT, qty=100, price=160.0)
        )

        assert lot.status == LotStatus.CLOSED
        assert available_actions(lot) == []
        for action in LotAction:
            assert not can_perform(lot, action)
