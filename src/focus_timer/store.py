"""Key-value persistence for daily records and the notes board.

The controller treats the store as synchronous get/set of serialized values.
There is no transactionality beyond last-write-wins on a whole key.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from .notes import NotesBoard
from .records import DailyRecord

logger = logging.getLogger(__name__)

RECORDS_KEY = "daily-records"
NOTES_KEY = "sticky-notes"

DEFAULT_DB_PATH = Path.home() / ".focus-timer" / "focus.db"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqliteStore:
    """Single-table SQLite key-value store."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)

            # WAL so a `stats` reader never blocks the running timer's writes
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
            self._conn = conn
        return self._conn

    def get(self, key: str) -> Optional[str]:
        cursor = self._connect().execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._connect()
        conn.execute(
            """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value = excluded.value,
                   updated_at = excluded.updated_at""",
            (key, value, datetime.now().isoformat()),
        )
        conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---- Records ----


def load_records(store: KeyValueStore) -> list[DailyRecord]:
    """Read the persisted record list. Any failure is a cold start."""
    try:
        raw = store.get(RECORDS_KEY)
    except (sqlite3.Error, OSError) as e:
        logger.warning(f"Could not read {RECORDS_KEY}, starting empty: {e}")
        return []
    if raw is None:
        return []

    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"expected a list, got {type(data).__name__}")
        return [DailyRecord.model_validate(item) for item in data]
    except (ValueError, ValidationError) as e:
        logger.warning(f"Discarding unreadable {RECORDS_KEY}: {e}")
        return []


def save_records(store: KeyValueStore, records: list[DailyRecord]) -> None:
    store.set(RECORDS_KEY, json.dumps([r.to_dict() for r in records]))


# ---- Notes ----


def load_notes_at_startup(store: KeyValueStore, today: str) -> NotesBoard:
    """Load the notes board and expire "today" notes from earlier dates.

    Daily records are never pruned; only the notes board is.
    """
    try:
        raw = store.get(NOTES_KEY)
    except (sqlite3.Error, OSError) as e:
        logger.warning(f"Could not read {NOTES_KEY}, starting empty: {e}")
        return NotesBoard()
    if raw is None:
        return NotesBoard()

    try:
        board = NotesBoard.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Discarding unreadable {NOTES_KEY}: {e}")
        return NotesBoard()

    removed = board.prune_stale(today)
    if removed:
        logger.info(f"Pruned {removed} stale note(s) from before {today}")
        try:
            store.set(NOTES_KEY, json.dumps(board.to_dict()))
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not write pruned {NOTES_KEY}: {e}")
    return board
