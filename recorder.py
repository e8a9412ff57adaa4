"""Microphone recorder adapter driving the SoX command-line binary."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional

from audio_backend import AudioBackendProbe

logger = logging.getLogger(__name__)

ExitCallback = Callable[[Optional[int]], None]


class SoxCapture:
    """Handle on one running SoX process.

    A watcher thread drains stderr, waits for exit and then fires ``on_exit``
    with the return code. ``closed`` is set once the process has gone.
    """

    def __init__(self, process: Any, on_exit: Optional[ExitCallback] = None) -> None:
        self.process = process
        self.returncode: Optional[int] = None
        self.closed = threading.Event()
        self._on_exit = on_exit
        self._watcher = threading.Thread(target=self._watch, daemon=True)
        self._watcher.start()

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    def interrupt(self) -> None:
        if self.closed.is_set():
            return
        try:
            if sys.platform == "win32":
                self.process.terminate()
            else:
                self.process.send_signal(signal.SIGINT)
        except (ProcessLookupError, OSError) as exc:
            logger.debug("Interrupt of sox failed, process likely gone: %s", exc)

    def kill(self) -> None:
        if self.closed.is_set():
            return
        try:
            self.process.kill()
        except (ProcessLookupError, OSError) as exc:
            logger.debug("Kill of sox failed: %s", exc)

    def wait_closed(self, timeout_s: float) -> bool:
        return self.closed.wait(timeout=timeout_s)

    def _watch(self) -> None:
        stderr = getattr(self.process, "stderr", None)
        if stderr is not None:
            try:
                for line in stderr:
                    text = line.decode(errors="replace") if isinstance(line, bytes) else line
                    if text.strip():
                        logger.debug("sox stderr: %s", text.rstrip())
            except (OSError, ValueError):
                pass
        code = self.process.wait()
        self.returncode = code
        self.closed.set()
        logger.info("sox process exited with code: %s", code)
        if self._on_exit is not None:
            self._on_exit(code)


class SoxRecorder:
    def __init__(
        self,
        probe: Optional[AudioBackendProbe] = None,
        sox_exe: str = "sox",
        sox_dir: Optional[Path] = None,
        sample_rate: int = 16000,
        channels: int = 1,
        bits: int = 16,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self._probe = probe or AudioBackendProbe()
        self._sox_exe = sox_exe
        self._sox_dir = sox_dir
        self.sample_rate = sample_rate
        self.channels = channels
        self.bits = bits
        self._popen = popen

    @property
    def executable(self) -> str:
        if self._sox_dir is not None and not os.path.dirname(self._sox_exe):
            return str(Path(self._sox_dir) / self._sox_exe)
        return self._sox_exe

    def build_args(self, output_path: Path) -> List[str]:
        return [
            *self._probe.input_args(),
            "-r", str(self.sample_rate),
            "-c", str(self.channels),
            "-b", str(self.bits),
            "-e", "signed-integer",
            str(output_path),
        ]

    def start(self, output_path: Path, on_exit: Optional[ExitCallback] = None) -> SoxCapture:
        """Spawn SoX writing to ``output_path``. Spawn errors propagate."""
        args = self.build_args(output_path)
        logger.info("Starting sox with args: %s", " ".join(args))
        kwargs: dict = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.PIPE,
        }
        if self._sox_dir is not None:
            kwargs["cwd"] = str(self._sox_dir)
            kwargs["env"] = self._bundled_env()
        if sys.platform == "win32":
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        process = self._popen([self.executable, *args], **kwargs)
        return SoxCapture(process, on_exit=on_exit)

    def _bundled_env(self) -> dict:
        """Child environment with the bundled SoX directory first on PATH."""
        env = dict(os.environ)
        env["PATH"] = str(self._sox_dir) + os.pathsep + env.get("PATH", "")
        return env

    def stop(self, capture: SoxCapture, timeout_s: float = 2.0) -> bool:
        """Interrupt ``capture`` and wait for it to close.

        Returns True when the process closed within ``timeout_s``. A process
        still alive after the wait is killed so it cannot keep the file open.
        """
        capture.interrupt()
        if capture.wait_closed(timeout_s):
            return True
        logger.warning("sox did not exit within %.1fs, killing it", timeout_s)
        capture.kill()
        return False
