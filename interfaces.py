"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Sequence

from models import ActionOutcome, Mode, PasteResult


class CaptureHandle(Protocol):
    def wait_closed(self, timeout_s: float) -> bool: ...


class Recorder(Protocol):
    def start(
        self,
        output_path: Path,
        on_exit: Optional[Callable[[Optional[int]], None]] = None,
    ) -> CaptureHandle: ...

    def stop(self, capture: CaptureHandle, timeout_s: float = 2.0) -> bool: ...


class InferenceAdapter(Protocol):
    last_error: str

    def process_audio(
        self,
        audio_path: Path,
        frames: Sequence[str] = (),
        mode: Mode = Mode.PROMPT,
    ) -> str: ...

    def process_video(
        self,
        video_path: Path,
        audio_path: Optional[Path] = None,
        frames: Sequence[str] = (),
        mode: Mode = Mode.PROMPT,
    ) -> str: ...


class PasteService(Protocol):
    def paste_text(self, text: str) -> PasteResult: ...


class MediaControl(Protocol):
    def pause_media(self) -> ActionOutcome: ...

    def resume_media(self) -> ActionOutcome: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_mode(self) -> Mode: ...

    def set_mode(self, mode: Mode) -> None: ...

    def get_include_video(self) -> bool: ...

    def set_include_video(self, enabled: bool) -> None: ...

    def get_hotkeys(self) -> Dict[str, str]: ...
