"""
Slot status persistence

A small key-value table of (date, pass_no) -> status. The sync engine reads
it to diff a fresh scrape against the previous one and writes every scraped
slot back.
"""
import logging
import sqlite3
import threading
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .models import Slot, SlotKey, SlotStatus

logger = logging.getLogger(__name__)


class SlotStore(Protocol):
    """Persistence interface consumed by the sync engine and booking service"""

    def find_all(self) -> List[Slot]: ...

    def find_by_key(self, day: date, pass_no: int) -> Optional[Slot]: ...

    def find_by_date(self, day: date) -> List[Slot]: ...

    def save(self, slot: Slot) -> None: ...

    def update_status(self, day: date, pass_no: int, status: SlotStatus) -> bool: ...


class InMemorySlotStore:
    """Dictionary-backed store, used for tests and `storage.path: null`"""

    def __init__(self, slots: Optional[List[Slot]] = None):
        self._slots: Dict[SlotKey, Slot] = {}
        for slot in slots or []:
            self.save(slot)

    def find_all(self) -> List[Slot]:
        return sorted(self._slots.values(), key=lambda s: (s.date, s.pass_no))

    def find_by_key(self, day: date, pass_no: int) -> Optional[Slot]:
        return self._slots.get(SlotKey(date=day, pass_no=pass_no))

    def find_by_date(self, day: date) -> List[Slot]:
        return [s for s in self.find_all() if s.date == day]

    def save(self, slot: Slot) -> None:
        self._slots[slot.key] = slot.model_copy()

    def update_status(self, day: date, pass_no: int, status: SlotStatus) -> bool:
        existing = self.find_by_key(day, pass_no)
        if existing is None:
            logger.warning(f"No slot found to update for date: {day}, passNo: {pass_no}")
            return False
        self.save(existing.model_copy(update={"status": status}))
        return True


SCHEMA = """
CREATE TABLE IF NOT EXISTS slots (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  date TEXT NOT NULL,
  pass_no INTEGER NOT NULL,
  status TEXT NOT NULL CHECK (status IN ('free', 'own', 'busy')),
  UNIQUE (date, pass_no)
);
"""


class SQLiteSlotStore:
    """SQLite-backed store. Persists slot statuses across restarts.

    File path configurable; creates schema on first use.
    """

    def __init__(self, db_path: str = "aptusbot.sqlite"):
        self._path = Path(db_path)
        if str(db_path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        # The Telegram poller and the sync loop share one connection
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._conn.executescript(SCHEMA)
        self._conn.commit()
        logger.debug(f"Slot store opened at {db_path}")

    @staticmethod
    def _row_to_slot(row) -> Slot:
        day, pass_no, status = row
        return Slot(date=date.fromisoformat(day), pass_no=pass_no, status=SlotStatus(status))

    def find_all(self) -> List[Slot]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT date, pass_no, status FROM slots ORDER BY date, pass_no"
            ).fetchall()
        slots = [self._row_to_slot(r) for r in rows]
        logger.debug(f"Found {len(slots)} slots")
        return slots

    def find_by_key(self, day: date, pass_no: int) -> Optional[Slot]:
        with self._lock:
            row = self._conn.execute(
                "SELECT date, pass_no, status FROM slots WHERE date=? AND pass_no=?",
                (day.isoformat(), pass_no),
            ).fetchone()
        return self._row_to_slot(row) if row else None

    def find_by_date(self, day: date) -> List[Slot]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT date, pass_no, status FROM slots WHERE date=? ORDER BY pass_no",
                (day.isoformat(),),
            ).fetchall()
        return [self._row_to_slot(r) for r in rows]

    def save(self, slot: Slot) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO slots (date, pass_no, status) VALUES (?, ?, ?) "
                "ON CONFLICT(date, pass_no) DO UPDATE SET status=excluded.status",
                (slot.date.isoformat(), slot.pass_no, slot.status.value),
            )
            self._conn.commit()

    def update_status(self, day: date, pass_no: int, status: SlotStatus) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE slots SET status=? WHERE date=? AND pass_no=?",
                (status.value, day.isoformat(), pass_no),
            )
            self._conn.commit()
        if cur.rowcount == 0:
            logger.warning(f"No slot found to update for date: {day}, passNo: {pass_no}")
            return False
        return True

    def close(self):
        self._conn.close()


def open_store(path: Optional[str]) -> SlotStore:
    if path is None:
        return InMemorySlotStore()
    return SQLiteSlotStore(path)
