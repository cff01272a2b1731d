"""Audible and visual cues at phase transitions.

Both cues are fire-and-forget: nothing here blocks the tick, and every
failure is logged and dropped. A broken speaker or a blocked notification
never changes session state.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import math
import shlex
import shutil
import subprocess
import sys
import tempfile
import wave
from array import array
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


# ============ Chime ============


@dataclass(frozen=True)
class ChimeNote:
    frequency: float  # Hz
    offset: float  # seconds from chime start
    duration: float  # seconds


NOTE_SPACING = 0.5
NOTE_DURATION = 0.5

# Westminster-style school chime: G5, E5, F5, C5
CHIME_NOTES = (
    ChimeNote(783.99, 0 * NOTE_SPACING, NOTE_DURATION),
    ChimeNote(659.25, 1 * NOTE_SPACING, NOTE_DURATION),
    ChimeNote(698.46, 2 * NOTE_SPACING, NOTE_DURATION),
    ChimeNote(523.25, 3 * NOTE_SPACING, NOTE_DURATION),
)

PEAK_GAIN = 0.3
FLOOR_GAIN = 0.01
ATTACK_SECONDS = 0.02
DEFAULT_SAMPLE_RATE = 22050

PLAYER_COMMANDS = (
    ("afplay",),
    ("paplay",),
    ("aplay", "-q"),
)


def _envelope(t: float, duration: float) -> float:
    """Bell envelope: fast linear attack, exponential decay to the floor."""
    if t < 0 or t >= duration:
        return 0.0
    if t < ATTACK_SECONDS:
        return PEAK_GAIN * t / ATTACK_SECONDS
    decay = (t - ATTACK_SECONDS) / (duration - ATTACK_SECONDS)
    return PEAK_GAIN * (FLOOR_GAIN / PEAK_GAIN) ** decay


def render_chime(path: Path, sample_rate: int = DEFAULT_SAMPLE_RATE) -> Path:
    """Render CHIME_NOTES to a mono 16-bit WAV file."""
    total = max(note.offset + note.duration for note in CHIME_NOTES)
    frames = int(total * sample_rate)
    mix = [0.0] * frames

    for note in CHIME_NOTES:
        start = int(note.offset * sample_rate)
        length = int(note.duration * sample_rate)
        for i in range(length):
            if start + i >= frames:
                break
            t = i / sample_rate
            mix[start + i] += _envelope(t, note.duration) * math.sin(2 * math.pi * note.frequency * t)

    samples = array("h", (int(max(-1.0, min(1.0, s)) * 32767) for s in mix))
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.tobytes())
    return path


def detect_player() -> Optional[list[str]]:
    """First available command-line audio player, or None."""
    for command in PLAYER_COMMANDS:
        if shutil.which(command[0]):
            return list(command)
    return None


class Chime:
    """Plays the chime without waiting for playback to finish.

    The rendered WAV is the audio output. When it is missing (never rendered,
    or the temp dir was cleaned) the output counts as suspended and play()
    resumes it by rendering again before playing.
    """

    def __init__(
        self,
        enabled: bool = True,
        sound_command: Optional[str] = None,
        wav_path: Optional[Path] = None,
    ):
        self.enabled = enabled
        self.wav_path = Path(wav_path) if wav_path else Path(tempfile.gettempdir()) / "focus-timer-chime.wav"
        self._command = shlex.split(sound_command) if sound_command else None
        self._process: Optional[subprocess.Popen] = None

    @property
    def suspended(self) -> bool:
        return not self.wav_path.exists()

    def resume(self) -> bool:
        try:
            render_chime(self.wav_path)
            return True
        except OSError as e:
            logger.warning(f"Chime: could not prepare audio output: {e}")
            return False

    def play(self) -> None:
        if not self.enabled:
            return
        if self.suspended and not self.resume():
            self._bell()
            return

        command = self._command or detect_player()
        if command is None:
            self._bell()
            return

        try:
            self._process = subprocess.Popen(
                [*command, str(self.wav_path)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"Chime: {command[0]} failed: {e}")
            self._bell()

    @staticmethod
    def _bell() -> None:
        try:
            sys.stdout.write("\a")
            sys.stdout.flush()
        except (OSError, ValueError):
            pass


# ============ Notifications ============


class PermissionState(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


def _probe_backend() -> PermissionState:
    """Check whether plyer can reach a notification service here."""
    from plyer.utils import platform

    if platform == "linux":
        has_dbus = importlib.util.find_spec("dbus") is not None
        if not (has_dbus or shutil.which("notify-send")):
            return PermissionState.DENIED
        return PermissionState.GRANTED
    if platform in ("macosx", "win"):
        return PermissionState.GRANTED
    return PermissionState.DENIED


class DesktopNotifier:
    """Best-effort desktop notifications through plyer.

    Permission starts undetermined and is resolved lazily by
    request_permission(), which never blocks the caller. Notifications are
    only sent once permission is granted.
    """

    def __init__(self, enabled: bool = True, app_name: str = "focus-timer", timeout: int = 5):
        self.app_name = app_name
        self.timeout = timeout
        self.permission = PermissionState.DEFAULT if enabled else PermissionState.DENIED
        self._probe: Optional[asyncio.Future] = None

    def request_permission(self) -> None:
        if self.permission != PermissionState.DEFAULT or self._probe is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._set_permission(_probe_backend())
            return
        self._probe = loop.run_in_executor(None, _probe_backend)
        self._probe.add_done_callback(self._on_probe_done)

    def _on_probe_done(self, future: asyncio.Future) -> None:
        self._probe = None
        try:
            self._set_permission(future.result())
        except Exception as e:
            logger.warning(f"Notifications: permission probe failed: {e}")
            self._set_permission(PermissionState.DENIED)

    def _set_permission(self, state: PermissionState) -> None:
        self.permission = state
        logger.info(f"Notifications: permission {state.value}")

    def notify(self, title: str, body: str) -> None:
        if self.permission != PermissionState.GRANTED:
            logger.debug(f"Notifications: skipped '{title}' (permission {self.permission.value})")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._send(title, body)
            return
        loop.run_in_executor(None, self._send, title, body)

    def _send(self, title: str, body: str) -> None:
        from plyer import notification

        try:
            notification.notify(title=title, message=body, app_name=self.app_name, timeout=self.timeout)
        except NotImplementedError:
            logger.warning("Notifications: no backend on this platform, disabling")
            self.permission = PermissionState.DENIED
        except Exception as e:
            logger.warning(f"Notifications: failed to send '{title}': {e}")
