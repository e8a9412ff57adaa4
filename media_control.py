"""Pause background media while recording and resume it afterwards."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from command_runner import CommandRunner
from models import ActionOutcome

logger = logging.getLogger(__name__)

_WINDOWS_PEAK_PROBE = r'''
Add-Type @"
using System;
using System.Runtime.InteropServices;

[Guid("C02216F6-8C67-4B5B-9D00-D008E73E0064"), InterfaceType(ComInterfaceType.InterfaceIsIUnknown)]
interface IAudioMeterInformation {
    int GetPeakValue(out float pfPeak);
}

[Guid("D666063F-1587-4E43-81F1-B948E807363F"), InterfaceType(ComInterfaceType.InterfaceIsIUnknown)]
interface IMMDevice {
    int Activate(ref Guid iid, int dwClsCtx, IntPtr pActivationParams, [MarshalAs(UnmanagedType.IUnknown)] out object ppInterface);
}

[Guid("A95664D2-9614-4F35-A746-DE8DB63617E6"), InterfaceType(ComInterfaceType.InterfaceIsIUnknown)]
interface IMMDeviceEnumerator {
    int NotImpl1();
    int GetDefaultAudioEndpoint(int dataFlow, int role, out IMMDevice ppDevice);
}

[ComImport, Guid("BCDE0395-E52F-467C-8E3D-C4579291692E")]
class MMDeviceEnumerator { }

public class PeakMeter {
    public static bool Audible() {
        try {
            var enumerator = new MMDeviceEnumerator() as IMMDeviceEnumerator;
            IMMDevice device;
            enumerator.GetDefaultAudioEndpoint(0, 1, out device);
            Guid iid = typeof(IAudioMeterInformation).GUID;
            object o;
            device.Activate(ref iid, 0, IntPtr.Zero, out o);
            float peak;
            (o as IAudioMeterInformation).GetPeakValue(out peak);
            return peak > 0.001f;
        } catch {
            return false;
        }
    }
}
"@

$playing = $false
for ($i = 0; $i -lt 4; $i++) {
    if ([PeakMeter]::Audible()) { $playing = $true; break }
    Start-Sleep -Milliseconds 50
}
if ($playing) { Write-Output "Playing" } else { Write-Output "NotPlaying" }
'''

_WINDOWS_PLAY_PAUSE_KEY = r'''
Add-Type -TypeDefinition @"
using System;
using System.Runtime.InteropServices;
public class MediaKey {
    [DllImport("user32.dll")]
    public static extern void keybd_event(byte bVk, byte bScan, uint dwFlags, UIntPtr dwExtraInfo);
    public static void PlayPause() {
        keybd_event(0xB3, 0, 0, UIntPtr.Zero);
        keybd_event(0xB3, 0, 2, UIntPtr.Zero);
    }
}
"@
[MediaKey]::PlayPause()
'''

_MAC_PLAYER_STATE = '''
set isPlaying to false
try
  tell application "System Events"
    set processList to name of every process
    if processList contains "Spotify" then
      tell application "Spotify"
        if player state is playing then set isPlaying to true
      end tell
    end if
    if processList contains "Music" then
      tell application "Music"
        if player state is playing then set isPlaying to true
      end tell
    end if
  end tell
end try
if isPlaying then
  return "Playing"
else
  return "NotPlaying"
end if
'''

_MAC_PLAY_PAUSE_KEY = 'tell application "System Events" to key code 100'


class MediaController:
    """Toggles system media playback around a recording.

    ``pause_media`` only remembers that it paused something when the probe
    reported audible playback right before toggling; ``resume_media`` toggles
    back only in that case. The flag lives for the lifetime of this object.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        script_dir: Optional[Path] = None,
        platform: Optional[str] = None,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._script_dir = script_dir or Path.home() / ".config" / "clarifyvoice"
        self._platform = platform or sys.platform
        self._lock = threading.Lock()
        self._paused_by_us = False

    @property
    def paused_by_us(self) -> bool:
        return self._paused_by_us

    def pause_media(self) -> ActionOutcome:
        with self._lock:
            self._paused_by_us = False
            try:
                if not self.is_playing():
                    logger.info("No media playing, skipping pause")
                    return ActionOutcome(ok=True, reason="nothing playing")
                logger.info("Media is playing, pausing...")
                outcome = self._toggle(play=False)
            except OSError as exc:
                outcome = ActionOutcome(ok=False, reason=str(exc))
            if outcome.ok:
                self._paused_by_us = True
            else:
                logger.warning("Failed to pause media: %s", outcome.reason)
            return outcome

    def resume_media(self) -> ActionOutcome:
        with self._lock:
            if not self._paused_by_us:
                logger.debug("Media was not paused by us, skipping resume")
                return ActionOutcome(ok=True, reason="nothing to resume")
            self._paused_by_us = False
            logger.info("Resuming media playback...")
            try:
                outcome = self._toggle(play=True)
            except OSError as exc:
                outcome = ActionOutcome(ok=False, reason=str(exc))
            if not outcome.ok:
                logger.warning("Failed to resume media: %s", outcome.reason)
            return outcome

    def is_playing(self) -> bool:
        if self._platform == "win32":
            script = self._write_script("check_media.ps1", _WINDOWS_PEAK_PROBE)
            result = self._runner.run(_powershell(script), timeout_s=5.0)
        elif self._platform == "darwin":
            result = self._runner.run(["osascript", "-e", _MAC_PLAYER_STATE])
        else:
            result = self._runner.run(["playerctl", "status"])
        if not result.ok:
            logger.debug("Could not check media status, assuming not playing")
            return False
        return result.stdout.strip() == "Playing"

    def _toggle(self, play: bool) -> ActionOutcome:
        if self._platform == "win32":
            script = self._write_script("media_key.ps1", _WINDOWS_PLAY_PAUSE_KEY)
            result = self._runner.run(_powershell(script))
        elif self._platform == "darwin":
            result = self._runner.run(["osascript", "-e", _MAC_PLAY_PAUSE_KEY])
        else:
            result = self._runner.run(["playerctl", "play" if play else "pause"])
        if result.ok:
            return ActionOutcome(ok=True)
        return ActionOutcome(ok=False, reason=result.stderr.strip() or f"exit {result.returncode}")

    def _write_script(self, name: str, body: str) -> Path:
        self._script_dir.mkdir(parents=True, exist_ok=True)
        path = self._script_dir / name
        path.write_text(body, encoding="utf-8")
        return path


def _powershell(script: Path) -> list:
    return ["powershell", "-ExecutionPolicy", "Bypass", "-File", str(script)]
