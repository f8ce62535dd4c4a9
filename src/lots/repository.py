"""SQLite persistence layer for wheel lots and their event logs."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator

from .models import Lot, LotEvent
from .state import EventType

logger = logging.getLogger(__name__)


class LotRepository:
    """SQLite persistence for lots, one cycle at a time.

    Events are stored append-only: saving a lot inserts the events the
    database has not seen and never updates or deletes existing rows.
    Derived fields (acquisition, coverage, status) are not stored; they
    are recomputed from the events on load.
    """

    def __init__(self, db_path: str = "~/.wheel_lots/lots.db"):
        """
        Initialize the repository.

        Args:
            db_path: Path to SQLite database file. Supports ~ expansion.
        """
        self.db_path = os.path.expanduser(db_path)
        self._ensure_directory()
        self._init_database()

    def _ensure_directory(self) -> None:
        """Create database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Create tables if they don't exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS lots (
                    cycle_id INTEGER NOT NULL,
                    lot_number INTEGER NOT NULL,
                    ticker TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (cycle_id, lot_number)
                );

                CREATE TABLE IF NOT EXISTS lot_events (
                    id TEXT PRIMARY KEY,
                    cycle_id INTEGER NOT NULL,
                    lot_number INTEGER NOT NULL,
                    seq INTEGER NOT NULL,
                    event_date TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    label TEXT NOT NULL,
                    qty INTEGER NOT NULL,
                    strike REAL,
                    premium REAL,
                    price REAL,
                    expiry TEXT,
                    fees REAL,
                    notes TEXT,
                    FOREIGN KEY (cycle_id, lot_number)
                        REFERENCES lots(cycle_id, lot_number)
                );

                CREATE INDEX IF NOT EXISTS idx_lot_events_lot
                    ON lot_events(cycle_id, lot_number, seq);
            """
            )
        logger.debug(f"Database initialized at {self.db_path}")

    def load_lots(self, cycle_id: int) -> list[Lot]:
        """
        Load all lots of a cycle, ordered by lot number.

        Args:
            cycle_id: Wheel cycle id

        Returns:
            Lots rebuilt from their stored events
        """
        with self._connect() as conn:
            lot_rows = conn.execute(
                "SELECT * FROM lots WHERE cycle_id = ? ORDER BY lot_number",
                (cycle_id,),
            ).fetchall()
            event_rows = conn.execute(
                "SELECT * FROM lot_events WHERE cycle_id = ? ORDER BY lot_number, seq",
                (cycle_id,),
            ).fetchall()

        events_by_lot: dict[int, list[LotEvent]] = {}
        for row in event_rows:
            events_by_lot.setdefault(row["lot_number"], []).append(self._row_to_event(row))

        lots = []
        for row in lot_rows:
            events = events_by_lot.get(row["lot_number"], [])
            if not events:
                logger.warning(
                    f"Skipping lot #{row['lot_number']} of cycle {cycle_id}: no events"
                )
                continue
            lots.append(Lot.from_events(row["lot_number"], row["ticker"], events))
        return lots

    def save_lots(self, cycle_id: int, lots: Iterable[Lot]) -> int:
        """
        Persist lots, inserting any events not yet stored.

        Args:
            cycle_id: Wheel cycle id
            lots: Lots to save

        Returns:
            Number of events inserted
        """
        inserted = 0
        now = datetime.now().isoformat()
        with self._connect() as conn:
            for lot in lots:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO lots (cycle_id, lot_number, ticker, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (cycle_id, lot.lot_number, lot.ticker, now),
                )
                for seq, event in enumerate(lot.events):
                    cursor = conn.execute(
                        """
                        INSERT OR IGNORE INTO lot_events
                        (id, cycle_id, lot_number, seq, event_date, event_type, label,
                         qty, strike, premium, price, expiry, fees, notes)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            event.id,
                            cycle_id,
                            lot.lot_number,
                            seq,
                            event.date,
                            event.type.value,
                            event.label,
                            event.qty,
                            event.strike,
                            event.premium,
                            event.price,
                            event.expiry,
                            event.fees,
                            event.notes,
                        ),
                    )
                    inserted += cursor.rowcount
        logger.debug(f"Saved cycle {cycle_id}: {inserted} new event(s)")
        return inserted

    def list_cycles(self) -> list[int]:
        """Cycle ids that have at least one lot."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT cycle_id FROM lots ORDER BY cycle_id"
            ).fetchall()
        return [row["cycle_id"] for row in rows]

    def _row_to_event(self, row: sqlite3.Row) -> LotEvent:
        """Convert database row to LotEvent."""
        return LotEvent(
            id=row["id"],
            date=row["event_date"],
            type=EventType(row["event_type"]),
            label=row["label"],
            qty=row["qty"],
            strike=row["strike"],
            premium=row["premium"],
            price=row["price"],
            expiry=row["expiry"],
            fees=row["fees"],
            notes=row["notes"],
        )
