"""Short sine tones used as audible cues."""

from __future__ import annotations

import logging
import threading

from models import SoundCue

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def render_tone(cue: SoundCue, sample_rate: int = 44100, volume: float = 0.3):
    """Sine wave for ``cue`` with a half-sine envelope so it does not click."""
    n_samples = max(1, int(sample_rate * cue.duration_ms / 1000.0))
    t = np.linspace(0, cue.duration_ms / 1000.0, n_samples, False)
    envelope = np.sin(np.pi * np.arange(n_samples) / n_samples)
    return (np.sin(2 * np.pi * cue.frequency * t) * envelope * volume).astype(np.float32)


class TonePlayer:
    def __init__(self, sample_rate: int = 44100, volume: float = 0.3) -> None:
        self.sample_rate = sample_rate
        self.volume = volume
        self._lock = threading.Lock()

    def play(self, cue: SoundCue) -> bool:
        """Play ``cue`` without blocking. Returns False if nothing could play."""
        if np is None or sd is None:
            logger.debug("Audio cue skipped, numpy/sounddevice missing")
            return False
        try:
            samples = render_tone(cue, self.sample_rate, self.volume)
            with self._lock:
                sd.play(samples, self.sample_rate, blocking=False)
        except Exception as exc:
            logger.debug("Audio cue failed: %s", exc)
            return False
        return True
