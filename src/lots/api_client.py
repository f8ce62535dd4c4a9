"""API client for the wheel event ledger.

This module provides an async HTTP client for the backend ledger that
records lot events, and the ActionAdapter that submits engine actions
through it.
"""

import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .adapter import ActionKind, ActionRequest, SubmissionAck
from .exceptions import SubmissionError
from .models import LotEvent
from .schemas import LedgerEventCreate, LedgerEventRead

logger = logging.getLogger(__name__)

EVENTS_ENDPOINT = "/wheels/wheel-events"


class APIError(SubmissionError):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if applicable
            detail: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)


class APIConnectionError(APIError):
    """Exception raised when connection to API fails."""

    pass


class APIValidationError(APIError):
    """Exception raised when API returns validation error (422)."""

    pass


class APIServerError(APIError):
    """Exception raised when API returns server error (5xx)."""

    pass


class LedgerAPIClient:
    """Async HTTP client for the event ledger API.

    Attributes:
        base_url: Base URL for API server
        timeout: Request timeout in seconds
        _client: Underlying httpx AsyncClient
        _last_health_check: Timestamp of last health check
        _is_healthy: Cached health status
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize API client.

        Args:
            base_url: Base URL for API server (default: http://localhost:8000)
            timeout: Request timeout in seconds (default: 30)
            transport: Optional httpx transport override

        Example:
            >>> client = LedgerAPIClient("http://localhost:8000")
            >>> events = await client.list_events(cycle_id=1)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        self._last_health_check: Optional[float] = None
        self._is_healthy: bool = False

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Make HTTP request and handle errors.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API endpoint path
            json: JSON request body
            params: Query parameters

        Returns:
            Response data (dict, list, or None)

        Raises:
            APIConnectionError: If connection fails
            APIValidationError: If validation fails (422)
            APIServerError: If server error occurs (5xx)
            APIError: For other HTTP errors
        """
        url = endpoint if endpoint.startswith("http") else f"{self.base_url}{endpoint}"

        try:
            response = await self._client.request(
                method=method,
                url=url,
                json=json,
                params=params,
            )

            if response.status_code in (200, 201):
                return response.json() if response.text else None

            if response.status_code == 204:
                return None

            error_detail = None
            try:
                error_data = response.json()
                if isinstance(error_data, dict):
                    error_detail = error_data.get("detail", error_data.get("message"))
            except ValueError:
                error_detail = response.text

            if response.status_code == 422:
                raise APIValidationError(
                    message=f"Validation error: {error_detail}",
                    status_code=422,
                    detail=error_detail,
                )

            if 400 <= response.status_code < 500:
                raise APIError(
                    message=f"API error: {error_detail}",
                    status_code=response.status_code,
                    detail=error_detail,
                )

            if response.status_code >= 500:
                raise APIServerError(
                    message=f"Server error: {error_detail}",
                    status_code=response.status_code,
                    detail=error_detail,
                )

            response.raise_for_status()
            return response.json() if response.text else None

        except httpx.ConnectError as e:
            raise APIConnectionError(
                message=f"Failed to connect to ledger at {self.base_url}: {str(e)}"
            ) from e
        except httpx.TimeoutException as e:
            raise APIConnectionError(
                message=f"Request timed out after {self.timeout}s: {str(e)}"
            ) from e
        except APIError:
            raise
        except Exception as e:
            raise APIError(
                message=f"Unexpected error during API request: {str(e)}"
            ) from e

    # Health and connectivity methods

    async def health_check(self) -> bool:
        """Check if the ledger API is healthy and responding.

        Uses a short timeout (5 seconds) and caches result for 30 seconds
        to avoid repeated checks.

        Returns:
            True if server is healthy, False otherwise
        """
        if self._last_health_check and (time.time() - self._last_health_check) < 30:
            return self._is_healthy

        try:
            response = await self._client.get("/health", timeout=5.0)
            self._is_healthy = response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            self._is_healthy = False

        self._last_health_check = time.time()
        return self._is_healthy

    # Event methods

    async def create_event(self, event: LedgerEventCreate) -> LedgerEventRead:
        """Record one event in the ledger.

        Args:
            event: Event to record

        Returns:
            Stored event with its assigned id

        Raises:
            APIValidationError: If the ledger rejects the event
            APIError: If request fails or the stored event is missing or malformed
        """
        data = await self._make_request(
            "POST", EVENTS_ENDPOINT, json=event.model_dump(mode="json")
        )
        if data is None:
            raise APIError(message="Ledger accepted the event but returned no body")
        return self._parse_event(data)

    async def list_events(
        self, cycle_id: int, lot_no: Optional[int] = None
    ) -> list[LedgerEventRead]:
        """List ledger events for a cycle, optionally for one lot.

        Args:
            cycle_id: Wheel cycle id
            lot_no: Optional lot number filter

        Returns:
            Events in ledger order

        Raises:
            APIError: If request fails
        """
        params: dict[str, Any] = {"cycle_id": cycle_id}
        if lot_no is not None:
            params["lot_no"] = lot_no
        data = await self._make_request("GET", EVENTS_ENDPOINT, params=params)
        if data is None:
            data = []
        if not isinstance(data, list):
            raise APIError(
                message=f"Malformed ledger response: expected a list, got {type(data).__name__}",
                detail=data,
            )
        events = [self._parse_event(item) for item in data]
        if lot_no is not None:
            events = [event for event in events if event.lot_no == lot_no]
        return events

    @staticmethod
    def _parse_event(data: Any) -> LedgerEventRead:
        """Build a ledger event from a response body.

        Raises:
            APIError: If the body is not a valid ledger event
        """
        try:
            return LedgerEventRead(**data)
        except (TypeError, ValidationError) as e:
            raise APIError(message=f"Malformed ledger event: {e}", detail=data) from e


class HttpActionAdapter:
    """ActionAdapter that records each action's events in the ledger API.

    Events of one action are posted in order; a roll posts the closing leg
    before the opening leg.
    """

    def __init__(self, client: LedgerAPIClient, cycle_id: int):
        """Initialize adapter.

        Args:
            client: Ledger API client
            cycle_id: Wheel cycle the lots belong to
        """
        self.client = client
        self.cycle_id = cycle_id

    async def submit(self, kind: ActionKind, request: ActionRequest) -> SubmissionAck:
        ids: list[str] = []
        for event in request.events:
            body = LedgerEventCreate.from_lot_event(
                event, self.cycle_id, request.lot_number, request.ticker
            )
            try:
                stored = await self.client.create_event(body)
            except APIError:
                if ids:
                    logger.error(
                        f"{kind.value} on lot {request.lot_number} partially recorded: "
                        f"ledger holds {ids} but a later event failed"
                    )
                raise
            ids.append(str(stored.id))

        logger.debug(f"Ledger recorded {kind.value} on lot {request.lot_number}: {ids}")
        return SubmissionAck(ids=tuple(ids))

    async def fetch_events(self, lot_number: int) -> list[LotEvent]:
        events = await self.client.list_events(self.cycle_id, lot_no=lot_number)
        return [event.to_lot_event() for event in events]
