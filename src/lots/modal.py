"""Single-slot dialog state for lot actions."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import Lot

logger = logging.getLogger(__name__)


class ModalKind(Enum):
    """Which action dialog is open."""

    COVER = "cover"
    CLOSE_CALL = "closeCall"
    CLOSE_PUT = "closePut"
    ROLL = "roll"
    NEW = "new"


@dataclass(frozen=True)
class ModalState:
    """The currently open dialog and what it was opened for."""

    kind: ModalKind
    lot: Optional[Lot] = None
    ticker: Optional[str] = None


class ModalController:
    """
    Holds at most one open action dialog.

    Opening a dialog replaces whatever was open; there is no stacking or
    queueing, so only one financial action is ever on screen. While a
    submission is in flight the dialog cannot be dismissed, since the
    submission cannot be aborted once started.

    Opening is not blocked by a pending submission. The new dialog takes
    the slot and can be dismissed as usual; the finishing submission
    closes only the dialog it captured (see close_if_current), so the new
    one stays open.
    """

    def __init__(self) -> None:
        self._current: Optional[ModalState] = None
        # One entry per submission in flight: the dialog it was started from
        self._locked: list[Optional[ModalState]] = []

    @property
    def current(self) -> Optional[ModalState]:
        return self._current

    @property
    def is_open(self) -> bool:
        return self._current is not None

    @property
    def is_pending(self) -> bool:
        """True while an action submission is in flight."""
        return bool(self._locked)

    def open(
        self,
        kind: ModalKind,
        lot: Optional[Lot] = None,
        ticker: Optional[str] = None,
    ) -> ModalState:
        """Open a dialog, replacing any open one, even while a submission is pending."""
        if self.is_pending:
            logger.debug(f"Opening {kind.value} dialog while a submission is pending")
        elif self._current is not None and self._current.kind != kind:
            logger.debug(f"Replacing {self._current.kind.value} dialog with {kind.value}")
        self._current = ModalState(kind=kind, lot=lot, ticker=ticker)
        return self._current

    def close(self) -> bool:
        """
        Dismiss the open dialog.

        Returns:
            False if the dialog's own submission is pending and it was kept open
        """
        if self._current is not None and any(s is self._current for s in self._locked):
            logger.debug("Dialog dismissal ignored while its submission is pending")
            return False
        self._current = None
        return True

    def close_if_current(self, state: Optional[ModalState]) -> bool:
        """
        Close the dialog only if it is still the given one.

        Used after a submission completes, so a dialog opened in the
        meantime is left alone.

        Returns:
            True if the dialog was closed
        """
        if self._current is not state:
            return False
        return self.close()

    @contextmanager
    def submitting(self) -> Iterator[None]:
        """Mark a submission from the open dialog as in flight for the block."""
        state = self._current
        self._locked.append(state)
        try:
            yield
        finally:
            # by identity; equal dialogs opened twice are still distinct
            index = next(i for i, s in enumerate(self._locked) if s is state)
            del self._locked[index]
