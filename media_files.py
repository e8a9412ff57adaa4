"""Temporary media files shared between capture and inference."""

from __future__ import annotations

import errno
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

MIN_MEDIA_BYTES = 1000
_RETRYABLE_ERRNOS = {errno.EBUSY, errno.EACCES, errno.EPERM}


@dataclass(frozen=True)
class MediaPaths:
    audio: Path
    video: Path

    @classmethod
    def in_directory(cls, directory: Optional[Path] = None) -> "MediaPaths":
        base = directory or Path.home() / ".config" / "clarifyvoice"
        base.mkdir(parents=True, exist_ok=True)
        return cls(audio=base / "temp_recording.wav", video=base / "temp_recording.webm")


def media_present(path: Path, min_bytes: int = MIN_MEDIA_BYTES) -> bool:
    """True when ``path`` exists and is larger than a bare header."""
    try:
        return path.is_file() and path.stat().st_size > min_bytes
    except OSError:
        return False


def safe_delete(
    path: Path,
    max_retries: int = 5,
    delay_s: float = 0.3,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Delete ``path``, retrying while another process holds it open.

    Lock errors are retried with a linearly growing delay. Returns False if the
    file is still there after ``max_retries`` attempts. Other errors propagate.
    """
    for attempt in range(max_retries):
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return True
        except OSError as exc:
            if not isinstance(exc, PermissionError) and exc.errno not in _RETRYABLE_ERRNOS:
                raise
            if attempt < max_retries - 1:
                sleep(delay_s * (attempt + 1))
    logger.warning("Could not delete file after %d retries: %s", max_retries, path)
    return False


def cleanup_temp_files(
    paths: MediaPaths,
    delay_s: float = 0.3,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    for path in (paths.audio, paths.video):
        try:
            safe_delete(path, delay_s=delay_s, sleep=sleep)
        except OSError as exc:
            logger.warning("Error during temp file cleanup of %s: %s", path, exc)
