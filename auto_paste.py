"""Auto paste service for text insertion."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from command_runner import CommandRunner
from errors import DEPENDENCY_MISSING, NO_ACTIVE_TARGET
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

logger = logging.getLogger(__name__)

_WINDOWS_SEND_PASTE = """
Set WshShell = CreateObject("WScript.Shell")
WScript.Sleep 200
WshShell.SendKeys "^v"
"""


class ClipboardPasteService:
    """Copies text to the clipboard and presses the platform paste shortcut."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        script_dir: Optional[Path] = None,
        platform: Optional[str] = None,
        restore_delay_s: float = 0.2,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._restore_delay_s = restore_delay_s
        self._script_dir = script_dir or Path.home() / ".config" / "clarifyvoice"
        self._platform = platform or sys.platform

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text")
        if pyperclip is None:
            return PasteResult(success=False, reason=f"{DEPENDENCY_MISSING}: pyperclip")

        preview = text[:100] + ("..." if len(text) > 100 else "")
        logger.info("Attempting to paste text: %s", preview)
        old_clip: Optional[str] = None
        try:
            old_clip = pyperclip.paste()
        except pyperclip.PyperclipException as exc:
            logger.warning("Could not read the current clipboard: %s", exc)
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            logger.error("Failed to copy text to clipboard: %s", exc)
            return PasteResult(success=False, reason=f"{DEPENDENCY_MISSING}: {exc}")

        result = self._runner.run(self._paste_command())
        restored = self._restore_clipboard(old_clip)
        if not result.ok:
            reason = result.stderr.strip() or f"exit {result.returncode}"
            logger.error("Paste keystroke failed: %s", reason)
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {reason}",
                clipboard_restored=restored,
            )
        return PasteResult(success=True, reason="ok", clipboard_restored=restored)

    def _restore_clipboard(self, old_clip: Optional[str]) -> bool:
        if old_clip is None:
            return False
        # The target app reads the clipboard after the keystroke returns.
        time.sleep(self._restore_delay_s)
        try:
            pyperclip.copy(old_clip)
        except pyperclip.PyperclipException as exc:
            logger.warning("Could not restore the previous clipboard: %s", exc)
            return False
        return True

    def _paste_command(self) -> list:
        if self._platform == "win32":
            self._script_dir.mkdir(parents=True, exist_ok=True)
            script = self._script_dir / "paste.vbs"
            script.write_text(_WINDOWS_SEND_PASTE, encoding="utf-8")
            return ["cscript", "//nologo", str(script)]
        if self._platform == "darwin":
            return [
                "osascript",
                "-e",
                'tell application "System Events" to keystroke "v" using command down',
            ]
        return ["xdotool", "key", "ctrl+v"]
