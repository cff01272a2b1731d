"""Pomodoro session engine, daily records, and terminal widget."""

from .controller import SessionController
from .engine import (
    BREAK_MINUTES,
    DEFAULT_WORK_MINUTES,
    DURATION_PRESETS,
    BreakPolicy,
    Direction,
    Notification,
    SessionEngine,
    SessionEvent,
    SessionPhase,
    TickResult,
    TimerState,
)
from .records import DailyRecord, RecordBook, RecordSummary
from .store import MemoryStore, SqliteStore, load_notes_at_startup, load_records, save_records

__all__ = [
    "BREAK_MINUTES",
    "DEFAULT_WORK_MINUTES",
    "DURATION_PRESETS",
    "BreakPolicy",
    "DailyRecord",
    "Direction",
    "MemoryStore",
    "Notification",
    "RecordBook",
    "RecordSummary",
    "SessionController",
    "SessionEngine",
    "SessionEvent",
    "SessionPhase",
    "SqliteStore",
    "TickResult",
    "TimerState",
    "load_notes_at_startup",
    "load_records",
    "save_records",
]
