"""Caller-owned collection of lots in one wheel cycle."""

from collections.abc import Iterable
from typing import Callable, Optional

from .models import Lot


LotsUpdater = Callable[[list[Lot]], list[Lot]]


class LotCollection:
    """
    The lots of a wheel cycle.

    Owned by whoever holds the cycle (a page, a CLI command) and changed
    only through update(), which takes a function from the previous list to
    the next one. The engine never touches the list any other way.
    """

    def __init__(self, lots: Optional[Iterable[Lot]] = None):
        self._lots: list[Lot] = list(lots or [])
        self._listeners: list[Callable[[list[Lot]], None]] = []

    def snapshot(self) -> list[Lot]:
        """Copy of the current lots, in collection order."""
        return list(self._lots)

    def get(self, lot_number: int) -> Optional[Lot]:
        for lot in self._lots:
            if lot.lot_number == lot_number:
                return lot
        return None

    def update(self, updater: LotsUpdater) -> None:
        """Replace the lots with updater(previous lots)."""
        self._lots = list(updater(self.snapshot()))
        for listener in self._listeners:
            listener(self.snapshot())

    def subscribe(self, listener: Callable[[list[Lot]], None]) -> None:
        """Call listener with the new lots after every update."""
        self._listeners.append(listener)

    def __len__(self) -> int:
        return len(self._lots)

    def __iter__(self):
        return iter(self.snapshot())
