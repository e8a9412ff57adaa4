"""Inference adapter using Gemini through the google-genai SDK.

One request is made per session. Sampled screen frames go first as
``image/jpeg`` parts, then the captured media (``video/webm`` and/or
``audio/wav``), then a short user prompt. The mode picks the system
instruction. Any failure is logged and reported as an empty string so the
caller never has to handle exceptions for an ordinary "no result".
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path
from typing import Any, List, Optional, Sequence

import prompts
from errors import AUTH_FAILED, INFERENCE_FAILED, NETWORK_ERROR
from models import Mode

try:
    from google import genai
    from google.genai import types
except Exception:  # pragma: no cover
    genai = None  # type: ignore
    types = None  # type: ignore

logger = logging.getLogger(__name__)

AUDIO_FRAME_CAP = 10
VIDEO_FRAME_CAP = 5


def subsample_frames(frames: Sequence[str], cap: int) -> List[str]:
    """Pick at most ``cap`` frames at a uniform stride of ``max(1, n // cap)``.

    Taking every stride-th frame alone can overshoot the cap (37 frames at
    stride 3 gives 13), so the result is cut to the first ``cap`` frames and
    the tail of a long recording is dropped.
    """
    if not frames or cap <= 0:
        return []
    stride = max(1, len(frames) // cap)
    return list(frames[::stride])[:cap]


class GeminiInferenceAdapter:
    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
        client: Optional[Any] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._client = client
        self.last_error = ""

    def process_audio(
        self,
        audio_path: Path,
        frames: Sequence[str] = (),
        mode: Mode = Mode.PROMPT,
    ) -> str:
        """Audio-only flow, optionally enriched with sampled screen frames."""
        has_frames = bool(frames)
        if mode is Mode.TRANSCRIPTION:
            instruction = prompts.TRANSCRIPTION_INSTRUCTION
            user_prompt = prompts.TRANSCRIBE_PROMPT
        elif has_frames:
            instruction = prompts.SCREEN_CONTEXT_INSTRUCTION
            user_prompt = prompts.FRAMES_WITH_AUDIO_PROMPT
        else:
            instruction = prompts.CLARITY_INSTRUCTION
            user_prompt = prompts.CLARITY_PROMPT

        try:
            parts = self._frame_parts(frames, AUDIO_FRAME_CAP)
            parts.append(self._file_part(audio_path, "audio/wav"))
            parts.append(types.Part.from_text(text=user_prompt))
        except (OSError, AttributeError) as exc:
            return self._fail(INFERENCE_FAILED, f"could not build audio request: {exc}")
        return self._generate(parts, instruction)

    def process_video(
        self,
        video_path: Path,
        audio_path: Optional[Path] = None,
        frames: Sequence[str] = (),
        mode: Mode = Mode.PROMPT,
    ) -> str:
        """Screen recording flow, with or without the separate audio track."""
        if mode is Mode.TRANSCRIPTION and audio_path is not None:
            instruction = prompts.TRANSCRIPTION_INSTRUCTION
            user_prompt = prompts.TRANSCRIBE_PROMPT
        else:
            instruction = prompts.SCREEN_CONTEXT_INSTRUCTION
            user_prompt = (
                prompts.VIDEO_WITH_AUDIO_PROMPT if audio_path is not None else prompts.VIDEO_ONLY_PROMPT
            )

        try:
            parts = self._frame_parts(frames, VIDEO_FRAME_CAP)
            if video_path.is_file():
                parts.append(self._file_part(video_path, "video/webm"))
            if audio_path is not None and audio_path.is_file():
                parts.append(self._file_part(audio_path, "audio/wav"))
            parts.append(types.Part.from_text(text=user_prompt))
        except (OSError, AttributeError) as exc:
            return self._fail(INFERENCE_FAILED, f"could not build video request: {exc}")
        return self._generate(parts, instruction)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_client(self) -> Optional[Any]:
        if self._client is not None:
            return self._client
        if genai is None:
            return None
        api_key = self._api_key or os.getenv("API_KEY", "") or os.getenv("GEMINI_API_KEY", "")
        if not api_key:
            return None
        self._client = genai.Client(api_key=api_key)
        return self._client

    def _frame_parts(self, frames: Sequence[str], cap: int) -> List[Any]:
        selected = subsample_frames(frames, cap)
        parts = []
        for frame in selected:
            try:
                data = base64.b64decode(frame, validate=True)
            except (binascii.Error, ValueError):
                logger.warning("Skipping a frame that is not valid base64")
                continue
            parts.append(types.Part.from_bytes(data=data, mime_type="image/jpeg"))
        if selected:
            logger.info("Sending %d of %d video frames", len(parts), len(frames))
        return parts

    def _file_part(self, path: Path, mime_type: str) -> Any:
        return types.Part.from_bytes(data=path.read_bytes(), mime_type=mime_type)

    def _generate(self, parts: List[Any], instruction: str) -> str:
        self.last_error = ""
        client = self._get_client()
        if client is None:
            if genai is None:
                return self._fail(INFERENCE_FAILED, "google-genai is not installed")
            return self._fail(AUTH_FAILED, "No API key configured")

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=parts,
                config=types.GenerateContentConfig(
                    system_instruction=instruction,
                    temperature=self._temperature,
                ),
            )
            text = (response.text or "").strip()
        except Exception as exc:
            return self._fail(self._classify(exc), f"Gemini API error: {exc}")

        if not text:
            return self._fail(INFERENCE_FAILED, "Gemini returned an empty response")
        return text

    def _fail(self, code: str, message: str) -> str:
        logger.error("%s: %s", code, message)
        self.last_error = code
        return ""

    def _classify(self, exc: Exception) -> str:
        """Map an SDK/network exception to a standard error code."""
        low = str(exc).lower()
        if "401" in low or "403" in low or "api key" in low or "permission" in low:
            return AUTH_FAILED
        if "timeout" in low or "network" in low or "connection" in low:
            return NETWORK_ERROR
        return INFERENCE_FAILED
