"""Custom exceptions for lot action operations."""


class LotError(Exception):
    """Base exception for lot operations."""

    pass


class LotValidationError(LotError):
    """Action payload failed validation. No submission was made."""

    pass


class InvalidStateError(LotError):
    """Action not allowed in the lot's current state."""

    pass


class LotNotFoundError(LotError):
    """No lot with the given number in the collection."""

    pass


class LotBusyError(LotError):
    """Another action is already being submitted for this lot."""

    pass


class SubmissionError(LotError):
    """The action ledger rejected or failed to record an action."""

    pass
