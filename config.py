"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Optional

from models import Mode

try:
    from dotenv import load_dotenv
except Exception:  # pragma: no cover
    load_dotenv = None  # type: ignore

CONFIG_DIR = Path.home() / ".config" / "clarifyvoice"

DEFAULT_MODEL = "gemini-2.5-flash"

DEFAULT_HOTKEYS = {
    "toggle_recording": "<alt>+l",
    "mode_prompt": "<alt>+1",
    "mode_transcription": "<alt>+2",
    "toggle_video": "<alt>+v",
    "cancel_recording": "<alt>+c",
}


def load_environment(env_path: Optional[Path] = None) -> None:
    """Load ``.env`` values without overriding variables already set."""
    if load_dotenv is None:
        return
    if env_path is not None:
        load_dotenv(env_path, override=False)
        return
    load_dotenv(Path(__file__).resolve().parent / ".env", override=False)
    load_dotenv(Path.cwd() / ".env", override=False)


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._path.parent

    def get_api_key(self) -> str:
        data = self._read_all()
        stored = str(data.get("api_key", ""))
        return stored or os.getenv("API_KEY", "") or os.getenv("GEMINI_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_model(self) -> str:
        return str(self._read_all().get("model", DEFAULT_MODEL))

    def get_mode(self) -> Mode:
        try:
            return Mode(self._read_all().get("mode", Mode.PROMPT.value))
        except ValueError:
            return Mode.PROMPT

    def set_mode(self, mode: Mode) -> None:
        data = self._read_all()
        data["mode"] = mode.value
        self._write_all(data)

    def get_include_video(self) -> bool:
        return bool(self._read_all().get("include_video", False))

    def set_include_video(self, enabled: bool) -> None:
        data = self._read_all()
        data["include_video"] = enabled
        self._write_all(data)

    def get_hotkeys(self) -> Dict[str, str]:
        hotkeys = dict(DEFAULT_HOTKEYS)
        stored = self._read_all().get("hotkeys", {})
        if isinstance(stored, dict):
            hotkeys.update({str(k): str(v) for k, v in stored.items() if k in DEFAULT_HOTKEYS})
        return hotkeys

    def get_sox_path(self) -> str:
        return str(self._read_all().get("sox_path", "sox"))

    def get_sox_dir(self) -> Optional[Path]:
        """Directory of a bundled SoX build, or None to use PATH."""
        value = self._read_all().get("sox_dir")
        if not value:
            return None
        return Path(str(value)).expanduser()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
