"""Configuration for focus-timer.

Values come from FOCUS_TIMER_* environment variables (a ``.env`` in the
working directory is loaded first) and can be overridden by CLI options.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

import click
from dotenv import load_dotenv

from .engine import BREAK_MINUTES, BreakPolicy
from .store import DEFAULT_DB_PATH

POLICY_CHOICES: Dict[str, BreakPolicy] = {
    "auto": BreakPolicy.AUTO,
    "choice": BreakPolicy.USER_CHOICE,
}

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class TimerConfig:
    """Resolved configuration for one run."""

    db_path: Path = DEFAULT_DB_PATH
    policy: str = "auto"
    break_minutes: int = BREAK_MINUTES
    chime: bool = True
    sound_command: Optional[str] = None
    notifications: bool = True
    verbose: bool = False

    @property
    def break_policy(self) -> BreakPolicy:
        return POLICY_CHOICES[self.policy]

    def validate(self) -> None:
        if self.policy not in POLICY_CHOICES:
            valid = ", ".join(POLICY_CHOICES)
            raise click.ClickException(f"Invalid break policy '{self.policy}'. Valid options: {valid}")
        if self.break_minutes <= 0:
            raise click.ClickException(f"Break length must be positive, got {self.break_minutes}")

    def with_overrides(self, **overrides) -> "TimerConfig":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        config = replace(self, **changes)
        config.validate()
        return config


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise click.ClickException(f"{name} must be an integer, got '{value}'")


def get_config(env_file: Optional[Path] = None) -> TimerConfig:
    """Build configuration from the environment."""
    load_dotenv(env_file or Path.cwd() / ".env")

    db_path = os.environ.get("FOCUS_TIMER_DB")
    config = TimerConfig(
        db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
        policy=os.environ.get("FOCUS_TIMER_POLICY", "auto").strip().lower(),
        break_minutes=_int_env("FOCUS_TIMER_BREAK_MINUTES", BREAK_MINUTES),
        chime=_env_flag("FOCUS_TIMER_CHIME", True),
        sound_command=os.environ.get("FOCUS_TIMER_SOUND_COMMAND") or None,
        notifications=_env_flag("FOCUS_TIMER_NOTIFICATIONS", True),
        verbose=_env_flag("FOCUS_TIMER_VERBOSE", False),
    )
    config.validate()
    return config
