"""Samples still frames of the screen while video capture is on."""

from __future__ import annotations

import base64
import io
import logging
import threading
from typing import Any, Callable, List, Optional

from message_bus import Channel, MessageBus

try:
    import mss
except Exception:  # pragma: no cover
    mss = None  # type: ignore

try:
    from PIL import Image
except Exception:  # pragma: no cover
    Image = None  # type: ignore

logger = logging.getLogger(__name__)


def encode_jpeg_base64(image: Any, quality: int = 70, max_width: int = 1280) -> str:
    """JPEG-encode a PIL image, shrinking it to ``max_width`` first."""
    if image.width > max_width:
        height = int(image.height * max_width / image.width)
        image = image.resize((max_width, height))
    buffered = io.BytesIO()
    image.save(buffered, format="JPEG", quality=quality)
    return base64.b64encode(buffered.getvalue()).decode("ascii")


def grab_primary_monitor() -> Any:
    with mss.mss() as sct:
        monitors = sct.monitors
        # monitors[0] is the union of all screens
        target = monitors[1] if len(monitors) > 1 else monitors[0]
        shot = sct.grab(target)
        return Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")


class ScreenFrameSampler:
    """Answers ``start-video-recording``/``stop-video-recording`` messages.

    While active, one JPEG frame per ``interval_s`` is published on
    ``video-frame``. Start success or failure is announced on
    ``video-recording-started`` / ``video-recording-error``.
    """

    def __init__(
        self,
        bus: MessageBus,
        interval_s: float = 1.0,
        grab: Optional[Callable[[], Any]] = None,
        encode: Callable[[Any], str] = encode_jpeg_base64,
    ) -> None:
        self._bus = bus
        self._interval_s = interval_s
        self._grab = grab
        self._encode = encode
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._unsubscribers: List[Callable[[], None]] = []

    def attach(self) -> None:
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._bus.subscribe(Channel.START_VIDEO_RECORDING, lambda _p: self.start()),
            self._bus.subscribe(Channel.STOP_VIDEO_RECORDING, lambda _p: self.stop()),
        ]

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        grab = self._grab
        if grab is None:
            if mss is None or Image is None:
                self._bus.publish(Channel.VIDEO_RECORDING_ERROR, "mss/Pillow is not installed")
                return
            grab = grab_primary_monitor
        try:
            first = self._encode(grab())
        except Exception as exc:
            logger.error("Screen capture failed to start: %s", exc)
            self._bus.publish(Channel.VIDEO_RECORDING_ERROR, str(exc))
            return

        self._bus.publish(Channel.VIDEO_RECORDING_STARTED, {"screen": True, "audioTracks": 0})
        self._bus.publish(Channel.VIDEO_FRAME, first)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, args=(grab,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self._interval_s + 0.5)
        self._thread = None

    def _worker(self, grab: Callable[[], Any]) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                frame = self._encode(grab())
            except Exception as exc:
                logger.warning("Skipping screen frame: %s", exc)
                continue
            self._bus.publish(Channel.VIDEO_FRAME, frame)
