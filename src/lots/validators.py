"""Payload validators for lot actions.

Validators are pure and total: they return a bool for any input and never
raise, so the same checks can run before an optimistic update and anywhere
else a payload needs vetting. They do not report which field failed.
"""

import logging
import math
from datetime import date, datetime
from typing import Any, Optional

from .payloads import (
    ClosePutInput,
    CloseCoveredCallInput,
    CreateLotBuyInput,
    CreateLotShortPutInput,
    RecordAssignmentInput,
    RollCoveredCallInput,
    SellCoveredCallInput,
)

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    # bool is an int subclass; True is not a price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # ints are always finite, and isfinite overflows on very large ones
    return not isinstance(value, float) or math.isfinite(value)


def is_positive(value: Any) -> bool:
    """Strictly greater than zero."""
    return _is_number(value) and value > 0


def is_non_negative(value: Any) -> bool:
    """Greater than or equal to zero."""
    return _is_number(value) and value >= 0


def is_present(value: Any) -> bool:
    """Non-blank string."""
    return isinstance(value, str) and bool(value.strip())


def parse_calendar_date(value: Any) -> Optional[date]:
    """
    Parse a date, dropping any time-of-day.

    Accepts date/datetime objects and ISO strings ("2025-02-21" or
    "2025-02-21T15:30:00").

    Returns:
        The calendar date, or None if the value is not a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not is_present(value):
        return None
    try:
        return datetime.fromisoformat(value.strip()).date()
    except ValueError:
        logger.debug(f"Could not parse date '{value}'")
        return None


def is_future_or_today(value: Any, today: Optional[date] = None) -> bool:
    """
    Calendar date on or after today. Same-day expiry is allowed.

    Args:
        value: Date or ISO date string
        today: Reference date (default: date.today())
    """
    parsed = parse_calendar_date(value)
    if parsed is None:
        return False
    return parsed >= (today or date.today())


def is_valid_date(value: Any) -> bool:
    """Present and parseable as a date."""
    return parse_calendar_date(value) is not None


def _is_contract_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_sell_covered_call(
    payload: SellCoveredCallInput, today: Optional[date] = None
) -> bool:
    return (
        is_positive(payload.strike)
        and is_non_negative(payload.limit_premium)
        and is_future_or_today(payload.expiry, today)
    )


def validate_close_covered_call(payload: CloseCoveredCallInput) -> bool:
    """Debit must be non-negative; a trade date, if given, must parse."""
    return (
        is_non_negative(payload.limit_debit)
        and _is_contract_count(payload.contracts)
        and (payload.trade_date is None or is_valid_date(payload.trade_date))
    )


def validate_roll_covered_call(
    payload: RollCoveredCallInput, today: Optional[date] = None
) -> bool:
    """Closing debit plus the same checks as selling the new call."""
    return (
        is_non_negative(payload.close.limit_debit)
        and is_positive(payload.open.strike)
        and is_non_negative(payload.open.limit_premium)
        and is_future_or_today(payload.open.expiry, today)
    )


def validate_create_lot_buy(payload: CreateLotBuyInput) -> bool:
    return (
        is_present(payload.ticker)
        and is_positive(payload.price)
        and is_valid_date(payload.date)
    )


def validate_create_lot_short_put(
    payload: CreateLotShortPutInput, today: Optional[date] = None
) -> bool:
    return (
        is_present(payload.ticker)
        and is_positive(payload.strike)
        and is_non_negative(payload.premium)
        and is_future_or_today(payload.expiry, today)
    )


def validate_close_put(payload: ClosePutInput) -> bool:
    return (
        is_non_negative(payload.limit_debit)
        and is_valid_date(payload.trade_date)
        and _is_contract_count(payload.contracts)
    )


def validate_record_assignment(payload: RecordAssignmentInput) -> bool:
    return is_valid_date(payload.trade_date)
