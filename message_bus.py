"""Named, fire-and-forget messages between the controller and the UI shell."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Channel(str, Enum):
    # controller -> UI
    START_VIDEO_RECORDING = "start-video-recording"
    STOP_VIDEO_RECORDING = "stop-video-recording"
    UPDATE_STATUS = "update-status"
    PLAY_SOUND = "play-sound"
    SHOW_TRANSCRIPTION = "show-transcription"
    RECORDING_INDICATOR = "recording-indicator"
    # UI -> controller
    VIDEO_RECORDING_STARTED = "video-recording-started"
    VIDEO_RECORDING_ERROR = "video-recording-error"
    VIDEO_FRAME = "video-frame"
    VIDEO_FILE_COMPLETE = "video-file-complete"
    SET_MODE = "set-mode"
    SET_INCLUDE_VIDEO = "set-include-video"
    CANCEL_RECORDING = "cancel-recording"


class MessageBus:
    """Delivers each published message once to every current subscriber.

    Handlers run on the publishing thread. A handler that raises is logged
    and does not stop delivery to the others or reach the publisher.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: Dict[Channel, List[Handler]] = {}

    def subscribe(self, channel: Channel, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(channel, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(channel, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, channel: Channel, payload: Any = None) -> int:
        with self._lock:
            handlers = list(self._handlers.get(channel, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", channel.value)
        return len(handlers)
