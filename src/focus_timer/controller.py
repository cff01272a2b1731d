"""Session controller: runs the engine against real time and side effects.

The engine decides; the controller carries out what a transition asked for
(tick arming, record persistence, chime, notification, state push). All of
it runs on the asyncio event loop thread, one transition at a time, so a
tick never sees a half-applied phase change.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import date
from typing import Callable, Optional

from .cues import Chime, DesktopNotifier, PermissionState
from .engine import SessionEngine, SessionEvent, TickResult, TimerState
from .notes import NotesBoard
from .records import RecordBook
from .store import KeyValueStore, load_notes_at_startup, load_records, save_records
from .ticker import Ticker

logger = logging.getLogger(__name__)

StateListener = Callable[[TimerState], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _today() -> str:
    return date.today().isoformat()


class SessionController:
    """Sole writer of the session and the daily records."""

    def __init__(
        self,
        engine: SessionEngine,
        ticker: Ticker,
        chime: Chime,
        notifier: DesktopNotifier,
        store: KeyValueStore,
        clock: Callable[[], Optional[int]] = _now_ms,
        today: Callable[[], str] = _today,
    ):
        self.engine = engine
        self.ticker = ticker
        self.chime = chime
        self.notifier = notifier
        self.store = store
        self._clock = clock
        self._today = today
        self._listeners: list[StateListener] = []
        self.notes: NotesBoard = NotesBoard()

    # ---- Lifecycle ----

    def load(self) -> None:
        """Read persisted records and prune expired notes at startup."""
        today = self._today()
        records = load_records(self.store)
        self.engine.records.replace(records)
        self.notes = load_notes_at_startup(self.store, today)
        logger.info(f"Loaded {len(records)} daily record(s)")

    def close(self) -> None:
        self.ticker.cancel()

    # ---- Listeners ----

    def add_listener(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def state(self) -> TimerState:
        return self.engine.timer_state

    @property
    def records(self) -> RecordBook:
        return self.engine.records

    # ---- Commands ----

    def start(self, minutes: int) -> bool:
        changed, result = self.engine.start(minutes, self._read_clock())
        if not changed:
            logger.debug(f"start ignored in phase {self.engine.phase.value}")
            return False
        if self.notifier.permission == PermissionState.DEFAULT:
            self.notifier.request_permission()
        logger.info(f"Work session started: {minutes} min")
        self._apply(result)
        return True

    def choose_continue(self) -> bool:
        changed, result = self.engine.choose_continue(self._read_clock())
        if not changed:
            logger.debug(f"continue ignored in phase {self.engine.phase.value}")
            return False
        logger.info("Continuing past the session")
        self._apply(result)
        return True

    def choose_break(self) -> bool:
        changed, result = self.engine.choose_break(self._read_clock())
        if not changed:
            logger.debug(f"break ignored in phase {self.engine.phase.value}")
            return False
        logger.info(f"Break started: {self.engine.break_minutes} min")
        self._apply(result)
        return True

    def give_up(self) -> bool:
        changed, result = self.engine.give_up()
        if not changed:
            logger.debug(f"give up ignored in phase {self.engine.phase.value}")
            return False
        logger.info("Session given up")
        self._apply(result)
        return True

    def reset(self) -> None:
        result = self.engine.reset()
        logger.info("Timer reset")
        self._apply(result)

    async def on_tick(self) -> None:
        """Scheduler callback, one call per second."""
        self._apply(self.engine.tick(self._read_clock(), self._today()))

    # ---- Internal ----

    def _read_clock(self) -> Optional[int]:
        try:
            return self._clock()
        except (OSError, OverflowError, ValueError) as e:
            logger.warning(f"Clock unavailable, falling back to configured duration: {e}")
            return None

    def _apply(self, result: TickResult) -> None:
        self._sync_ticker()

        if result.records_changed:
            self.save()

        if SessionEvent.WORK_COMPLETED in result.events and result.record is not None:
            logger.info(
                f"Work session complete: {result.record.date} "
                f"count={result.record.count} total={result.record.total_minutes} min"
            )
        if SessionEvent.BREAK_COMPLETED in result.events:
            logger.info("Break over")

        if result.chime:
            self.chime.play()
        if result.notification is not None:
            self.notifier.notify(result.notification.title, result.notification.body)

        self._push_state()

    def save(self) -> None:
        """Persist the whole record list (last write wins)."""
        try:
            save_records(self.store, self.engine.records.records)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not save daily records: {e}")

    def _sync_ticker(self) -> None:
        if self.engine.active and not self.ticker.armed:
            self.ticker.arm(self.on_tick)
        elif not self.engine.active and self.ticker.armed:
            self.ticker.cancel()

    def _push_state(self) -> None:
        state = self.engine.timer_state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"State listener {listener!r} failed: {e}")
