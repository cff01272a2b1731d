"""Tests for environment-driven configuration."""

from pathlib import Path

import click
import pytest

from focus_timer.config import TimerConfig, get_config
from focus_timer.engine import BreakPolicy
from focus_timer.store import DEFAULT_DB_PATH

ENV_VARS = (
    "FOCUS_TIMER_DB",
    "FOCUS_TIMER_POLICY",
    "FOCUS_TIMER_BREAK_MINUTES",
    "FOCUS_TIMER_CHIME",
    "FOCUS_TIMER_SOUND_COMMAND",
    "FOCUS_TIMER_NOTIFICATIONS",
    "FOCUS_TIMER_VERBOSE",
)


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Start from an empty FOCUS_TIMER_* environment; undo anything .env loading sets."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_defaults(self):
        config = get_config()
        assert config.db_path == DEFAULT_DB_PATH
        assert config.policy == "auto"
        assert config.break_policy == BreakPolicy.AUTO
        assert config.break_minutes == 5
        assert config.chime
        assert config.sound_command is None
        assert config.notifications
        assert not config.verbose


class TestEnvironment:
    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FOCUS_TIMER_DB", str(tmp_path / "focus.db"))
        monkeypatch.setenv("FOCUS_TIMER_POLICY", "Choice")
        monkeypatch.setenv("FOCUS_TIMER_BREAK_MINUTES", "10")
        monkeypatch.setenv("FOCUS_TIMER_CHIME", "off")
        monkeypatch.setenv("FOCUS_TIMER_SOUND_COMMAND", "paplay")
        monkeypatch.setenv("FOCUS_TIMER_NOTIFICATIONS", "0")
        monkeypatch.setenv("FOCUS_TIMER_VERBOSE", "yes")

        config = get_config()
        assert config.db_path == tmp_path / "focus.db"
        assert config.break_policy == BreakPolicy.USER_CHOICE
        assert config.break_minutes == 10
        assert not config.chime
        assert config.sound_command == "paplay"
        assert not config.notifications
        assert config.verbose

    def test_db_path_expands_home(self, monkeypatch):
        monkeypatch.setenv("FOCUS_TIMER_DB", "~/timer.db")
        assert get_config().db_path == Path.home() / "timer.db"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("FOCUS_TIMER_POLICY=choice\nFOCUS_TIMER_BREAK_MINUTES=15\n")
        config = get_config()
        assert config.policy == "choice"
        assert config.break_minutes == 15

    def test_environment_beats_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("FOCUS_TIMER_BREAK_MINUTES=15\n")
        monkeypatch.setenv("FOCUS_TIMER_BREAK_MINUTES", "3")
        assert get_config().break_minutes == 3

    def test_non_integer_break(self, monkeypatch):
        monkeypatch.setenv("FOCUS_TIMER_BREAK_MINUTES", "ten")
        with pytest.raises(click.ClickException, match="must be an integer"):
            get_config()

    def test_non_positive_break(self, monkeypatch):
        monkeypatch.setenv("FOCUS_TIMER_BREAK_MINUTES", "0")
        with pytest.raises(click.ClickException, match="must be positive"):
            get_config()

    def test_unknown_policy(self, monkeypatch):
        monkeypatch.setenv("FOCUS_TIMER_POLICY", "sometimes")
        with pytest.raises(click.ClickException, match="Invalid break policy"):
            get_config()


class TestOverrides:
    def test_none_values_are_ignored(self):
        config = TimerConfig(policy="choice", break_minutes=10)
        updated = config.with_overrides(policy=None, break_minutes=None, chime=False)
        assert updated.policy == "choice"
        assert updated.break_minutes == 10
        assert not updated.chime
        assert config.chime

    def test_invalid_override(self):
        with pytest.raises(click.ClickException):
            TimerConfig().with_overrides(break_minutes=-1)
