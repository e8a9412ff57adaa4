"""Run a single external command and capture its output."""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Optional, Sequence, Union

from models import CommandResult

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


class CommandRunner:
    def __init__(self, default_timeout_s: float = 5.0) -> None:
        self._default_timeout_s = default_timeout_s

    def run(self, command: Command, timeout_s: Optional[float] = None) -> CommandResult:
        """Execute ``command`` and report how it went.

        A string is handed to the shell, a sequence is executed directly.
        Failure to start, a timeout and a non-zero exit all come back as
        ``CommandResult(ok=False)``; nothing is raised.
        """
        timeout = self._default_timeout_s if timeout_s is None else timeout_s
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        try:
            completed = subprocess.run(
                command,
                shell=isinstance(command, str),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
                **kwargs,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %.1fs: %s", timeout, _describe(command))
            return CommandResult(ok=False, stderr="timeout")
        except OSError as exc:
            logger.debug("Command could not start: %s (%s)", _describe(command), exc)
            return CommandResult(ok=False, stderr=str(exc))

        result = CommandResult(
            ok=completed.returncode == 0,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if not result.ok:
            logger.debug(
                "Command exited with %s: %s %s",
                completed.returncode,
                _describe(command),
                result.stderr.strip(),
            )
        return result


def _describe(command: Command) -> str:
    if isinstance(command, str):
        return command
    return " ".join(command)
