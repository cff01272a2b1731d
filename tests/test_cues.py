"""Tests for the chime renderer/player and the desktop notifier."""

import asyncio
import wave
from unittest.mock import MagicMock

import plyer
import pytest

from focus_timer import cues
from focus_timer.cues import (
    ATTACK_SECONDS,
    CHIME_NOTES,
    FLOOR_GAIN,
    PEAK_GAIN,
    Chime,
    DesktopNotifier,
    PermissionState,
    _envelope,
    render_chime,
)


def run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ============ Chime ============


class TestRenderChime:
    def test_wav_layout(self, tmp_path):
        path = render_chime(tmp_path / "chime.wav", sample_rate=8000)
        with wave.open(str(path), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == 8000
            # four notes, 0.5 s apart, 0.5 s each
            assert wav.getnframes() == 16000

    def test_note_sequence(self):
        assert [n.frequency for n in CHIME_NOTES] == [783.99, 659.25, 698.46, 523.25]
        assert [n.offset for n in CHIME_NOTES] == [0.0, 0.5, 1.0, 1.5]


class TestEnvelope:
    def test_silent_outside_note(self):
        assert _envelope(-0.1, 0.5) == 0.0
        assert _envelope(0.5, 0.5) == 0.0

    def test_attack_peak(self):
        assert _envelope(0.0, 0.5) == 0.0
        assert _envelope(ATTACK_SECONDS, 0.5) == pytest.approx(PEAK_GAIN)

    def test_decays_toward_floor(self):
        assert _envelope(0.4999, 0.5) == pytest.approx(FLOOR_GAIN, rel=0.01)
        assert _envelope(0.1, 0.5) > _envelope(0.3, 0.5)


class TestChimePlay:
    def test_disabled_does_nothing(self, tmp_path, monkeypatch):
        popen = MagicMock()
        monkeypatch.setattr(cues.subprocess, "Popen", popen)
        chime = Chime(enabled=False, wav_path=tmp_path / "c.wav")
        chime.play()
        popen.assert_not_called()
        assert chime.suspended

    def test_resumes_suspended_output_before_playing(self, tmp_path, monkeypatch):
        popen = MagicMock()
        monkeypatch.setattr(cues.subprocess, "Popen", popen)
        wav_path = tmp_path / "c.wav"
        chime = Chime(sound_command="mpv --really-quiet", wav_path=wav_path)
        assert chime.suspended
        chime.play()
        assert not chime.suspended
        args, _ = popen.call_args
        assert args[0] == ["mpv", "--really-quiet", str(wav_path)]

    def test_uses_detected_player(self, tmp_path, monkeypatch):
        popen = MagicMock()
        monkeypatch.setattr(cues.subprocess, "Popen", popen)
        monkeypatch.setattr(cues, "detect_player", lambda: ["paplay"])
        Chime(wav_path=tmp_path / "c.wav").play()
        assert popen.call_args[0][0][0] == "paplay"

    def test_falls_back_to_bell_without_player(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cues, "detect_player", lambda: None)
        Chime(wav_path=tmp_path / "c.wav").play()
        assert capsys.readouterr().out == "\a"

    def test_player_failure_is_contained(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cues.subprocess, "Popen", MagicMock(side_effect=FileNotFoundError("nope")))
        Chime(sound_command="missing-player", wav_path=tmp_path / "c.wav").play()
        assert capsys.readouterr().out == "\a"


# ============ Notifications ============


class TestPermission:
    def test_disabled_is_denied(self):
        assert DesktopNotifier(enabled=False).permission == PermissionState.DENIED

    def test_starts_undetermined(self):
        assert DesktopNotifier().permission == PermissionState.DEFAULT

    def test_request_without_loop_probes_inline(self, monkeypatch):
        monkeypatch.setattr(cues, "_probe_backend", lambda: PermissionState.GRANTED)
        notifier = DesktopNotifier()
        notifier.request_permission()
        assert notifier.permission == PermissionState.GRANTED

    def test_request_on_loop_does_not_block(self, monkeypatch):
        monkeypatch.setattr(cues, "_probe_backend", lambda: PermissionState.DENIED)
        notifier = DesktopNotifier()

        async def scenario():
            notifier.request_permission()
            assert notifier.permission == PermissionState.DEFAULT
            await notifier._probe
            await asyncio.sleep(0)

        run(scenario())
        assert notifier.permission == PermissionState.DENIED

    def test_decided_permission_is_not_reprobed(self, monkeypatch):
        probe = MagicMock(return_value=PermissionState.GRANTED)
        monkeypatch.setattr(cues, "_probe_backend", probe)
        notifier = DesktopNotifier(enabled=False)
        notifier.request_permission()
        probe.assert_not_called()

    def test_probe_platforms(self, monkeypatch):
        monkeypatch.setattr("plyer.utils.platform", "macosx")
        assert cues._probe_backend() == PermissionState.GRANTED
        monkeypatch.setattr("plyer.utils.platform", "ios")
        assert cues._probe_backend() == PermissionState.DENIED

    def test_probe_linux_without_service(self, monkeypatch):
        monkeypatch.setattr("plyer.utils.platform", "linux")
        monkeypatch.setattr(cues.shutil, "which", lambda name: None)
        monkeypatch.setattr(cues.importlib.util, "find_spec", lambda name: None)
        assert cues._probe_backend() == PermissionState.DENIED


class TestNotify:
    def test_skipped_until_granted(self):
        notifier = DesktopNotifier()
        notifier._send = MagicMock()
        notifier.notify("Break over!", "Time to get back to work.")
        notifier._send.assert_not_called()

    def test_sent_when_granted(self):
        notifier = DesktopNotifier()
        notifier.permission = PermissionState.GRANTED
        notifier._send = MagicMock()
        notifier.notify("Break over!", "Time to get back to work.")
        notifier._send.assert_called_once_with("Break over!", "Time to get back to work.")

    def test_send_uses_plyer(self, monkeypatch):
        fake = MagicMock()
        monkeypatch.setattr(plyer, "notification", fake)
        notifier = DesktopNotifier(app_name="focus-timer", timeout=3)
        notifier._send("Pomodoro complete!", "Nice work. Time for a break.")
        fake.notify.assert_called_once_with(
            title="Pomodoro complete!",
            message="Nice work. Time for a break.",
            app_name="focus-timer",
            timeout=3,
        )

    def test_missing_backend_disables(self, monkeypatch):
        fake = MagicMock()
        fake.notify.side_effect = NotImplementedError()
        monkeypatch.setattr(plyer, "notification", fake)
        notifier = DesktopNotifier()
        notifier.permission = PermissionState.GRANTED
        notifier.notify("t", "b")
        assert notifier.permission == PermissionState.DENIED

    def test_send_failure_is_contained(self, monkeypatch):
        fake = MagicMock()
        fake.notify.side_effect = RuntimeError("dbus went away")
        monkeypatch.setattr(plyer, "notification", fake)
        notifier = DesktopNotifier()
        notifier.permission = PermissionState.GRANTED
        notifier.notify("t", "b")
        assert notifier.permission == PermissionState.GRANTED
