"""Session engine: pure logic, no I/O.

Time values are integer epoch milliseconds passed in as ``now_ms``; ``None``
means the clock could not be read. Dates are passed in as ISO strings. Every
tick counts as exactly one second; wall-clock deltas are only used to measure
elapsed minutes at completion time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .records import DailyRecord, RecordBook


class SessionPhase(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    AWAITING_CHOICE = "awaiting_choice"
    CONTINUING = "continuing"
    BREAK = "break"


class Direction(str, Enum):
    DOWN = "down"
    UP = "up"


class BreakPolicy(str, Enum):
    AUTO = "auto"
    USER_CHOICE = "choice"


class SessionEvent(Enum):
    STARTED = "started"
    WORK_COMPLETED = "work_completed"
    CONTINUE_STARTED = "continue_started"
    BREAK_STARTED = "break_started"
    BREAK_COMPLETED = "break_completed"
    GAVE_UP = "gave_up"
    RESET = "reset"
    PHASE_CHANGED = "phase_changed"


@dataclass(frozen=True)
class Notification:
    title: str
    body: str


@dataclass(frozen=True)
class TimerState:
    """Read-only projection handed to the background-audio collaborator."""

    minutes: int
    seconds: int
    active: bool
    is_break: bool

    def to_export_dict(self) -> dict:
        return {
            "minutesRemaining": self.minutes,
            "secondsRemaining": self.seconds,
            "active": self.active,
            "isBreakPhase": self.is_break,
        }


@dataclass
class TickResult:
    events: list[SessionEvent] = field(default_factory=list)
    old_phase: SessionPhase | None = None
    chime: bool = False
    notification: Notification | None = None
    records_changed: bool = False
    record: DailyRecord | None = None


DEFAULT_WORK_MINUTES = 25
BREAK_MINUTES = 5
DURATION_PRESETS = (25, 20, 15, 10)
MS_PER_MINUTE = 60 * 1000

WORK_DONE_AUTO = Notification("Pomodoro complete!", "Nice work. Time for a break.")
WORK_DONE_CHOICE = Notification("Pomodoro complete!", "Keep going or take a break?")
BREAK_OVER = Notification("Break over!", "Time to get back to work.")

_GIVE_UP_PHASES = (SessionPhase.WORKING, SessionPhase.CONTINUING, SessionPhase.AWAITING_CHOICE)


def round_minutes(elapsed_ms: int) -> int:
    """Round milliseconds to whole minutes, halves up, never negative."""
    if elapsed_ms <= 0:
        return 0
    return (elapsed_ms + MS_PER_MINUTE // 2) // MS_PER_MINUTE


def format_clock(minutes: int, seconds: int) -> str:
    """Format a countdown as MM:SS (minutes widen past 99)."""
    return f"{minutes:02d}:{seconds:02d}"


class SessionEngine:
    """Focus session state machine.

    One machine covers both break policies: AUTO starts the break as soon as
    a work session completes, USER_CHOICE stops and waits for the user to
    continue (count-up) or take the break.
    """

    def __init__(
        self,
        policy: BreakPolicy = BreakPolicy.AUTO,
        break_minutes: int = BREAK_MINUTES,
        records: Optional[RecordBook] = None,
    ):
        if break_minutes <= 0:
            raise ValueError(f"break_minutes must be positive, got {break_minutes}")
        self._policy: BreakPolicy = policy
        self._break_minutes: int = break_minutes
        self._records: RecordBook = records if records is not None else RecordBook()

        self._phase: SessionPhase = SessionPhase.IDLE
        self._direction: Direction = Direction.DOWN
        self._active: bool = False
        self._minutes: int = DEFAULT_WORK_MINUTES
        self._seconds: int = 0
        self._configured_minutes: int = DEFAULT_WORK_MINUTES
        self._session_started_ms: int | None = None
        self._continue_started_ms: int | None = None
        self._completed_on: str | None = None  # date key of the last completion

    # ---- Read-only properties ----

    @property
    def policy(self) -> BreakPolicy:
        return self._policy

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def active(self) -> bool:
        return self._active

    @property
    def minutes(self) -> int:
        return self._minutes

    @property
    def seconds(self) -> int:
        return self._seconds

    @property
    def configured_minutes(self) -> int:
        return self._configured_minutes

    @property
    def break_minutes(self) -> int:
        return self._break_minutes

    @property
    def session_started_ms(self) -> int | None:
        return self._session_started_ms

    @property
    def continue_started_ms(self) -> int | None:
        return self._continue_started_ms

    @property
    def records(self) -> RecordBook:
        return self._records

    @property
    def timer_state(self) -> TimerState:
        return TimerState(
            minutes=self._minutes,
            seconds=self._seconds,
            active=self._active,
            is_break=self._phase == SessionPhase.BREAK,
        )

    @property
    def clock_text(self) -> str:
        return format_clock(self._minutes, self._seconds)

    # ---- Commands ----

    def start(self, minutes: int, now_ms: int | None) -> tuple[bool, TickResult]:
        """Begin a work session of `minutes`. Only valid while idle."""
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise ValueError(f"duration must be a positive number of minutes, got {minutes!r}")
        if self._phase != SessionPhase.IDLE:
            return False, TickResult()

        result = TickResult()
        self._configured_minutes = minutes
        self._session_started_ms = now_ms
        self._continue_started_ms = None
        self._enter(SessionPhase.WORKING, Direction.DOWN, minutes, active=True, result=result)
        result.events.insert(0, SessionEvent.STARTED)
        return True, result

    def tick(self, now_ms: int | None, today: str) -> TickResult:
        """Advance the session by one second."""
        if not self._active:
            return TickResult()

        if self._direction == Direction.UP:
            self._seconds += 1
            if self._seconds == 60:
                self._seconds = 0
                self._minutes += 1
            return TickResult()

        if self._seconds > 0:
            self._seconds -= 1
        elif self._minutes > 0:
            self._minutes -= 1
            self._seconds = 59

        if self._minutes == 0 and self._seconds == 0:
            return self._complete(now_ms, today)
        return TickResult()

    def choose_continue(self, now_ms: int | None) -> tuple[bool, TickResult]:
        """Extend a completed session with an open-ended count-up."""
        if self._phase != SessionPhase.AWAITING_CHOICE:
            return False, TickResult()

        result = TickResult()
        self._continue_started_ms = now_ms
        self._enter(SessionPhase.CONTINUING, Direction.UP, 0, active=True, result=result)
        result.events.insert(0, SessionEvent.CONTINUE_STARTED)
        return True, result

    def choose_break(self, now_ms: int | None) -> tuple[bool, TickResult]:
        """Take the break after a completed session or a continuation."""
        if self._phase not in (SessionPhase.AWAITING_CHOICE, SessionPhase.CONTINUING):
            return False, TickResult()

        result = TickResult(chime=True)
        if (
            self._phase == SessionPhase.CONTINUING
            and self._continue_started_ms is not None
            and now_ms is not None
        ):
            extra = round_minutes(now_ms - self._continue_started_ms)
            record = self._records.add_minutes(self._completed_on or "", extra)
            if record is not None:
                result.records_changed = True
                result.record = record
        self._continue_started_ms = None
        self._enter(SessionPhase.BREAK, Direction.DOWN, self._break_minutes, active=True, result=result)
        result.events.insert(0, SessionEvent.BREAK_STARTED)
        return True, result

    def give_up(self) -> tuple[bool, TickResult]:
        """Abandon the session without recording anything.

        Continuation time that was not yet credited by choose_break is
        forfeited along with it.
        """
        if self._phase not in _GIVE_UP_PHASES:
            return False, TickResult()

        result = TickResult()
        self._to_idle(DEFAULT_WORK_MINUTES, result)
        result.events.insert(0, SessionEvent.GAVE_UP)
        return True, result

    def reset(self) -> TickResult:
        """Hard return to idle from any phase. Records are untouched."""
        result = TickResult()
        self._configured_minutes = DEFAULT_WORK_MINUTES
        self._to_idle(DEFAULT_WORK_MINUTES, result)
        result.events.insert(0, SessionEvent.RESET)
        return result

    # ---- Internal ----

    def _complete(self, now_ms: int | None, today: str) -> TickResult:
        if self._phase == SessionPhase.WORKING:
            return self._complete_work(now_ms, today)
        if self._phase == SessionPhase.BREAK:
            return self._complete_break()
        # Counting down in any other phase cannot happen; stop rather than loop.
        self._active = False
        return TickResult()

    def _complete_work(self, now_ms: int | None, today: str) -> TickResult:
        if now_ms is None or self._session_started_ms is None:
            elapsed = self._configured_minutes
        else:
            elapsed = round_minutes(now_ms - self._session_started_ms)

        result = TickResult(events=[SessionEvent.WORK_COMPLETED], chime=True, records_changed=True)
        self._records.record_completion(today, elapsed)
        result.record = self._records.get(today)
        self._completed_on = today
        self._session_started_ms = None

        if self._policy == BreakPolicy.AUTO:
            self._enter(SessionPhase.BREAK, Direction.DOWN, self._break_minutes, active=True, result=result)
            result.events.insert(1, SessionEvent.BREAK_STARTED)
            result.notification = WORK_DONE_AUTO
        else:
            self._enter(SessionPhase.AWAITING_CHOICE, Direction.DOWN, 0, active=False, result=result)
            result.notification = WORK_DONE_CHOICE
        return result

    def _complete_break(self) -> TickResult:
        result = TickResult(events=[SessionEvent.BREAK_COMPLETED], chime=True, notification=BREAK_OVER)
        self._to_idle(self._configured_minutes, result)
        return result

    def _to_idle(self, minutes: int, result: TickResult) -> None:
        self._session_started_ms = None
        self._continue_started_ms = None
        self._enter(SessionPhase.IDLE, Direction.DOWN, minutes, active=False, result=result)

    def _enter(
        self,
        phase: SessionPhase,
        direction: Direction,
        minutes: int,
        active: bool,
        result: TickResult,
    ) -> None:
        """Apply a whole phase change at once."""
        old_phase = self._phase
        self._phase = phase
        self._direction = direction
        self._minutes = minutes
        self._seconds = 0
        self._active = active
        if old_phase != phase:
            result.events.append(SessionEvent.PHASE_CHANGED)
            result.old_phase = old_phase
