"""Select the SoX input backend for the host platform."""

from __future__ import annotations

import logging
import sys
import threading
from typing import List, Optional

from command_runner import CommandRunner
from models import Backend

logger = logging.getLogger(__name__)


class AudioBackendProbe:
    """Builds the SoX input arguments for this machine.

    Windows and macOS have a fixed native driver. On Linux the sound server is
    probed through ``pactl`` once; the first classification is kept for the
    lifetime of the probe.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, platform: Optional[str] = None) -> None:
        self._runner = runner or CommandRunner()
        self._platform = platform or sys.platform
        self._lock = threading.Lock()
        self._detected: Optional[Backend] = None

    @property
    def detected(self) -> Optional[Backend]:
        return self._detected

    def backend(self) -> Backend:
        if self._platform == "win32":
            return Backend.WINDOWS
        if self._platform == "darwin":
            return Backend.MACOS
        with self._lock:
            if self._detected is None:
                self._detected = self._probe_linux()
            return self._detected

    def input_args(self) -> List[str]:
        backend = self.backend()
        if backend is Backend.WINDOWS:
            return ["-t", "waveaudio", "-d"]
        if backend is Backend.MACOS:
            return ["-t", "coreaudio", "default"]
        if backend in (Backend.PIPEWIRE, Backend.PULSEAUDIO):
            # PipeWire is driven through its pulseaudio-compatible server.
            return ["-t", "pulseaudio", "default"]
        return ["-t", "alsa", "default"]

    def _probe_linux(self) -> Backend:
        result = self._runner.run(["pactl", "info"])
        if result.ok and "pipewire" in result.stdout.lower():
            logger.info("Detected PipeWire audio backend")
            return Backend.PIPEWIRE
        if result.ok:
            logger.info("Detected PulseAudio backend")
            return Backend.PULSEAUDIO
        logger.info("Falling back to ALSA backend")
        return Backend.ALSA
