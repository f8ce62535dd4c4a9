"""Tests for the event ledger API client and HTTP action adapter.

Covers successful requests, error mapping, and the adapter's
translation between lot events and ledger events.
"""

import json
import logging
from typing import Any

import httpx
import pytest
from pytest_httpx import HTTPXMock

from src.lots.adapter import ActionKind, ActionRequest
from src.lots.api_client import (
    APIConnectionError,
    APIError,
    APIServerError,
    APIValidationError,
    HttpActionAdapter,
    LedgerAPIClient,
)
from src.lots.exceptions import SubmissionError
from src.lots.models import LotEvent
from src.lots.payloads import (
    CreateLotBuyInput,
    RollCloseLeg,
    RollCoveredCallInput,
    RollOpenLeg,
)
from src.lots.schemas import LedgerEventCreate, LedgerEventRead
from src.lots.state import EventType

EVENTS_URL = "http://testserver/wheels/wheel-events"


@pytest.fixture
def mock_event_response() -> dict[str, Any]:
    """Mock ledger event response data.

    Returns:
        Dictionary with event data
    """
    return {
        "id": 101,
        "cycle_id": 1,
        "lot_no": 1,
        "ticker": "AAPL",
        "event_type": "SELL_CALL_OPEN",
        "event_date": "2025-01-10",
        "quantity_shares": None,
        "contracts": 1,
        "price": None,
        "strike": 160.0,
        "premium": 2.5,
        "fees": 0.65,
        "expiration_date": "2025-02-21",
        "notes": None,
    }


def call_event() -> LotEvent:
    return LotEvent(
        id="pending-0",
        date="2025-01-10",
        type=EventType.SELL_CALL_OPEN,
        strike=160.0,
        premium=2.5,
        expiry="2025-02-21",
        fees=0.65,
    )


class TestSchemas:
    """Tests for ledger wire models."""

    def test_from_lot_event_maps_types(self) -> None:
        put = LotEvent(id="x", date="2025-01-10", type=EventType.SELL_PUT, strike=400.0, premium=5.0)
        body = LedgerEventCreate.from_lot_event(put, cycle_id=1, lot_number=2, ticker="MSFT")

        assert body.event_type == "SELL_PUT_OPEN"
        assert body.contracts == 1
        assert body.quantity_shares is None

    def test_share_event_carries_shares(self) -> None:
        bought = LotEvent(id="x", date="2025-01-10", type=EventType.BUY_SHARES, qty=100, price=150.0)
        body = LedgerEventCreate.from_lot_event(bought, cycle_id=1, lot_number=1, ticker="AAPL")

        assert body.quantity_shares == 100.0
        assert body.contracts is None
        assert body.model_dump(mode="json")["event_date"] == "2025-01-10"

    def test_unknown_event_type_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown ledger event type"):
            LedgerEventCreate(cycle_id=1, lot_no=1, ticker="AAPL", event_type="DIVIDEND")

    def test_lot_no_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            LedgerEventCreate(cycle_id=1, lot_no=0, ticker="AAPL", event_type="BUY_SHARES")

    def test_read_to_lot_event(self, mock_event_response: dict[str, Any]) -> None:
        event = LedgerEventRead(**mock_event_response).to_lot_event()

        assert event.id == "101"
        assert event.type == EventType.SELL_CALL_OPEN
        assert event.date == "2025-01-10"
        assert event.expiry == "2025-02-21"
        assert event.qty == 1
        assert event.label == "Sold CALL"

    def test_assignment_round_trip_type(self) -> None:
        called = LotEvent(id="x", date="2025-02-21", type=EventType.CALL_ASSIGNMENT, qty=100, price=160.0)
        body = LedgerEventCreate.from_lot_event(called, cycle_id=1, lot_number=1, ticker="AAPL")

        assert body.event_type == "CALLED_AWAY"
        read = LedgerEventRead(id=7, **body.model_dump())
        assert read.to_lot_event().type == EventType.CALL_ASSIGNMENT
        assert read.to_lot_event().qty == 100


class TestLedgerAPIClient:
    """Tests for LedgerAPIClient."""

    @pytest.mark.asyncio
    async def test_create_event(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        httpx_mock.add_response(
            method="POST", url=EVENTS_URL, json=mock_event_response, status_code=201
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            body = LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL")
            stored = await client.create_event(body)

        assert stored.id == 101
        sent = json.loads(httpx_mock.get_request().content)
        assert sent["event_type"] == "SELL_CALL_OPEN"
        assert sent["lot_no"] == 1
        assert sent["expiration_date"] == "2025-02-21"

    @pytest.mark.asyncio
    async def test_list_events_filters_lot(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        other_lot = dict(mock_event_response, id=102, lot_no=2)
        httpx_mock.add_response(
            method="GET",
            url=f"{EVENTS_URL}?cycle_id=1&lot_no=1",
            json=[mock_event_response, other_lot],
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            events = await client.list_events(cycle_id=1, lot_no=1)

        assert [event.id for event in events] == [101]

    @pytest.mark.asyncio
    async def test_validation_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="POST", url=EVENTS_URL, status_code=422, json={"detail": "bad strike"}
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIValidationError) as exc_info:
                await client.create_event(LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL"))

        assert exc_info.value.status_code == 422
        assert exc_info.value.detail == "bad strike"

    @pytest.mark.asyncio
    async def test_client_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="POST", url=EVENTS_URL, status_code=404, json={"detail": "cycle not found"}
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIError, match="cycle not found"):
                await client.create_event(LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL"))

    @pytest.mark.asyncio
    async def test_server_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="POST", url=EVENTS_URL, status_code=500, json={"detail": "boom"}
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIServerError):
                await client.create_event(LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL"))

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIConnectionError, match="Failed to connect"):
                await client.list_events(cycle_id=1)

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIConnectionError, match="timed out"):
                await client.list_events(cycle_id=1)

    @pytest.mark.asyncio
    async def test_create_event_without_body(self, httpx_mock: HTTPXMock) -> None:
        """A 204 leaves no stored event to read back, which is a ledger error."""
        httpx_mock.add_response(method="POST", url=EVENTS_URL, status_code=204)

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIError, match="no body"):
                await client.create_event(LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL"))

    @pytest.mark.asyncio
    async def test_create_event_malformed_body(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        missing_lot = {k: v for k, v in mock_event_response.items() if k != "lot_no"}
        httpx_mock.add_response(method="POST", url=EVENTS_URL, status_code=201, json=missing_lot)

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(SubmissionError, match="Malformed ledger event") as exc_info:
                await client.create_event(LedgerEventCreate.from_lot_event(call_event(), 1, 1, "AAPL"))

        assert isinstance(exc_info.value, APIError)
        assert exc_info.value.detail == missing_lot

    @pytest.mark.asyncio
    async def test_list_events_malformed_item(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        no_ticker = {k: v for k, v in mock_event_response.items() if k != "ticker"}
        httpx_mock.add_response(
            method="GET", url=f"{EVENTS_URL}?cycle_id=1", json=[mock_event_response, no_ticker]
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIError, match="Malformed ledger event"):
                await client.list_events(cycle_id=1)

    @pytest.mark.asyncio
    async def test_list_events_not_a_list(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(method="GET", url=f"{EVENTS_URL}?cycle_id=1", json={"events": []})

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIError, match="expected a list"):
                await client.list_events(cycle_id=1)

    @pytest.mark.asyncio
    async def test_list_events_no_content(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(method="GET", url=f"{EVENTS_URL}?cycle_id=1", status_code=204)

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            assert await client.list_events(cycle_id=1) == []

    def test_api_errors_are_submission_errors(self) -> None:
        """The engine can treat every ledger failure as a SubmissionError."""
        assert issubclass(APIError, SubmissionError)
        assert issubclass(APIConnectionError, SubmissionError)

    @pytest.mark.asyncio
    async def test_health_check_cached(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(method="GET", url="http://testserver/health", json={"status": "ok"})

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            assert await client.health_check()
            assert await client.health_check()

        assert len(httpx_mock.get_requests()) == 1


class TestHttpActionAdapter:
    """Tests for HttpActionAdapter."""

    @pytest.mark.asyncio
    async def test_submit_returns_ledger_ids(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="POST",
            url=EVENTS_URL,
            status_code=201,
            json={
                "id": 55,
                "cycle_id": 3,
                "lot_no": 1,
                "ticker": "AAPL",
                "event_type": "BUY_SHARES",
                "event_date": "2025-01-10",
                "quantity_shares": 100,
                "price": 150.0,
            },
        )
        bought = LotEvent(id="pending-0", date="2025-01-10", type=EventType.BUY_SHARES, qty=100, price=150.0)
        request = ActionRequest(
            lot_number=1,
            ticker="AAPL",
            payload=CreateLotBuyInput("AAPL", 150.0, "2025-01-10"),
            events=(bought,),
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            ack = await HttpActionAdapter(client, cycle_id=3).submit(ActionKind.CREATE_LOT_BUY, request)

        assert ack.ids == ("55",)
        sent = json.loads(httpx_mock.get_request().content)
        assert sent["cycle_id"] == 3
        assert sent["quantity_shares"] == 100

    @pytest.mark.asyncio
    async def test_partial_roll_failure_raises(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        """If the opening leg fails after the close was stored, the error propagates."""
        httpx_mock.add_response(
            method="POST",
            url=EVENTS_URL,
            status_code=201,
            json=dict(mock_event_response, id=201, event_type="SELL_CALL_CLOSE"),
        )
        httpx_mock.add_response(
            method="POST", url=EVENTS_URL, status_code=503, json={"detail": "unavailable"}
        )
        closing = LotEvent(id="pending-0", date="2025-01-10", type=EventType.SELL_CALL_CLOSE, price=0.75)
        request = ActionRequest(
            lot_number=1,
            ticker="AAPL",
            payload=RollCoveredCallInput(
                lot_id=1,
                close=RollCloseLeg(limit_debit=0.75),
                open=RollOpenLeg(strike=165.0, expiry="2025-03-21", limit_premium=3.0),
            ),
            events=(closing, call_event()),
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(APIServerError):
                await HttpActionAdapter(client, cycle_id=1).submit(ActionKind.ROLL_COVERED_CALL, request)

        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_malformed_opening_leg_reported_as_partial(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any], caplog
    ) -> None:
        """A stored close followed by an unreadable open is logged with the stored id."""
        httpx_mock.add_response(
            method="POST",
            url=EVENTS_URL,
            status_code=201,
            json=dict(mock_event_response, id=301, event_type="SELL_CALL_CLOSE"),
        )
        httpx_mock.add_response(method="POST", url=EVENTS_URL, status_code=204)
        closing = LotEvent(id="pending-0", date="2025-01-10", type=EventType.SELL_CALL_CLOSE, price=0.75)
        request = ActionRequest(
            lot_number=1,
            ticker="AAPL",
            payload=RollCoveredCallInput(
                lot_id=1,
                close=RollCloseLeg(limit_debit=0.75),
                open=RollOpenLeg(strike=165.0, expiry="2025-03-21", limit_premium=3.0),
            ),
            events=(closing, call_event()),
        )
        caplog.set_level(logging.ERROR, logger="src.lots.api_client")

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            with pytest.raises(SubmissionError):
                await HttpActionAdapter(client, cycle_id=1).submit(ActionKind.ROLL_COVERED_CALL, request)

        assert "partially recorded" in caplog.text
        assert "301" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_events(
        self, httpx_mock: HTTPXMock, mock_event_response: dict[str, Any]
    ) -> None:
        httpx_mock.add_response(
            method="GET",
            url=f"{EVENTS_URL}?cycle_id=1&lot_no=1",
            json=[mock_event_response],
        )

        async with LedgerAPIClient("http://testserver", timeout=5) as client:
            events = await HttpActionAdapter(client, cycle_id=1).fetch_events(1)

        assert len(events) == 1
        assert events[0].id == "101"
        assert events[0].strike == 160.0
