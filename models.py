"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    CANCELLING = "CANCELLING"


class Mode(str, Enum):
    PROMPT = "prompt"
    TRANSCRIPTION = "transcription"


class Status(str, Enum):
    READY = "ready"
    RECORDING = "recording"
    PROCESSING = "processing"


class Backend(str, Enum):
    WINDOWS = "waveaudio"
    MACOS = "coreaudio"
    PIPEWIRE = "pipewire"
    PULSEAUDIO = "pulseaudio"
    ALSA = "alsa"


@dataclass
class SessionRecord:
    """Mutable state of the one recording session a controller owns."""

    is_recording: bool = False
    mode: Mode = Mode.PROMPT
    include_video: bool = False
    capture: Optional[Any] = None
    video_frames: List[str] = field(default_factory=list)
    video_confirmed: bool = False
    was_main_window_visible: bool = False


@dataclass
class ActionOutcome:
    ok: bool
    reason: str = ""


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool = False


@dataclass
class CommandResult:
    ok: bool
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class SoundCue:
    frequency: int
    duration_ms: int


START_CUE = SoundCue(frequency=800, duration_ms=100)
SUCCESS_CUE = SoundCue(frequency=1000, duration_ms=100)
FAILURE_CUE = SoundCue(frequency=400, duration_ms=200)


@dataclass(frozen=True)
class RecordingIndicator:
    visible: bool
    restore_main_window: bool = False
