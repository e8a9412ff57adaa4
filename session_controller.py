"""State-machine based session orchestration."""

from __future__ import annotations

import base64
import binascii
import functools
import logging
import threading
import time
from typing import Any, Callable, List, Optional

from errors import CAPTURE_FAILED, INFERENCE_FAILED, NO_ACTIVE_TARGET, NO_MEDIA, VIDEO_ERROR
from interfaces import CaptureHandle, InferenceAdapter, MediaControl, PasteService, Recorder
from media_files import MIN_MEDIA_BYTES, MediaPaths, cleanup_temp_files, media_present
from message_bus import Channel, MessageBus
from models import (
    FAILURE_CUE,
    START_CUE,
    SUCCESS_CUE,
    Mode,
    PasteResult,
    RecordingIndicator,
    SessionRecord,
    SessionState,
    SoundCue,
    Status,
)

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
ErrorCallback = Callable[[str, str], None]


class SessionController:
    """Coordinates one recording session at a time.

    ``IDLE -> RECORDING -> PROCESSING -> IDLE`` on the normal path and
    ``RECORDING -> CANCELLING -> IDLE`` when the user aborts. Every public
    transition goes through a single-slot lock: a call that arrives while
    another transition is still running is dropped and returns False.
    """

    def __init__(
        self,
        recorder: Recorder,
        inference: InferenceAdapter,
        paste_service: PasteService,
        media_control: MediaControl,
        bus: MessageBus,
        paths: MediaPaths,
        mode: Mode = Mode.PROMPT,
        include_video: bool = False,
        stop_timeout_s: float = 2.0,
        cancel_timeout_s: float = 1.0,
        video_settle_s: float = 1.5,
        flush_settle_s: float = 0.5,
        cancel_release_s: float = 0.2,
        delete_retry_delay_s: float = 0.3,
        min_media_bytes: int = MIN_MEDIA_BYTES,
        is_main_window_visible: Optional[Callable[[], bool]] = None,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._recorder = recorder
        self._inference = inference
        self._paste_service = paste_service
        self._media = media_control
        self._bus = bus
        self._paths = paths
        self._stop_timeout_s = stop_timeout_s
        self._cancel_timeout_s = cancel_timeout_s
        self._video_settle_s = video_settle_s
        self._flush_settle_s = flush_settle_s
        self._cancel_release_s = cancel_release_s
        self._delete_retry_delay_s = delete_retry_delay_s
        self._min_media_bytes = min_media_bytes
        self._is_main_window_visible = is_main_window_visible
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._sleep = sleep

        self._lock = threading.RLock()
        self._transition_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._record = SessionRecord(mode=mode, include_video=include_video)
        self._video_file_event = threading.Event()
        self._session_id = 0
        self._unsubscribers: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Start listening to UI messages."""
        if self._unsubscribers:
            return
        handlers = {
            Channel.SET_MODE: self._on_set_mode,
            Channel.SET_INCLUDE_VIDEO: self._on_set_include_video,
            Channel.VIDEO_RECORDING_STARTED: self._on_video_recording_started,
            Channel.VIDEO_RECORDING_ERROR: self._on_video_recording_error,
            Channel.VIDEO_FRAME: self._on_video_frame,
            Channel.VIDEO_FILE_COMPLETE: self._on_video_file_complete,
            Channel.CANCEL_RECORDING: self._on_cancel_requested,
        }
        for channel, handler in handlers.items():
            self._unsubscribers.append(self._bus.subscribe(channel, handler))

    def close(self) -> None:
        """Abort any active capture and stop listening."""
        if self.is_recording:
            self.cancel_recording()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._record.is_recording

    @property
    def mode(self) -> Mode:
        return self._record.mode

    @property
    def include_video(self) -> bool:
        return self._record.include_video

    @property
    def capture(self) -> Optional[CaptureHandle]:
        return self._record.capture

    @property
    def video_frames(self) -> List[str]:
        with self._lock:
            return list(self._record.video_frames)

    def set_mode(self, mode: Mode) -> None:
        with self._lock:
            self._record.mode = mode
        logger.info("Switching mode to: %s", mode.value)

    def set_include_video(self, enabled: bool) -> None:
        with self._lock:
            self._record.include_video = enabled
        logger.info("Include video: %s", enabled)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def toggle_recording(self) -> bool:
        return self._run_transition(self._toggle)

    def start_recording(self) -> bool:
        return self._run_transition(self._start)

    def stop_recording(self) -> bool:
        return self._run_transition(self._stop)

    def cancel_recording(self) -> bool:
        return self._run_transition(self._cancel)

    def _run_transition(self, step: Callable[[], bool]) -> bool:
        if not self._transition_lock.acquire(blocking=False):
            logger.info("Transition already in flight, ignoring %s", step.__name__.lstrip("_"))
            return False
        try:
            return step()
        finally:
            self._transition_lock.release()

    def _toggle(self) -> bool:
        if self._record.is_recording:
            return self._stop()
        return self._start()

    def _start(self) -> bool:
        with self._lock:
            if self._record.is_recording:
                return False
        logger.info("Starting recording (include video: %s)", self._record.include_video)

        # Leftovers from an aborted session must not reach the model.
        cleanup_temp_files(self._paths, delay_s=self._delete_retry_delay_s, sleep=self._sleep)
        self._safe_pause_media()

        was_visible = self._query_main_window_visible()
        with self._lock:
            self._session_id += 1
            session_id = self._session_id
            self._record.is_recording = True
            self._record.video_frames.clear()
            self._record.video_confirmed = False
            self._record.was_main_window_visible = was_visible
            self._video_file_event.clear()
            include_video = self._record.include_video
            self._transition(SessionState.RECORDING)

        self._publish(Channel.UPDATE_STATUS, Status.RECORDING)
        self._play(START_CUE)
        if include_video:
            logger.info("Starting video recording in the UI")
            self._publish(Channel.START_VIDEO_RECORDING)
        self._publish(Channel.RECORDING_INDICATOR, RecordingIndicator(visible=True))

        try:
            capture = self._recorder.start(
                self._paths.audio,
                on_exit=functools.partial(self._handle_capture_exit, session_id),
            )
        except Exception as exc:
            logger.error("Failed to start recording: %s", exc)
            with self._lock:
                self._reset_after_capture_failure()
            self._abort_capture(f"could not start sox: {exc}")
            return True

        with self._lock:
            self._record.capture = capture
        return True

    def _stop(self) -> bool:
        with self._lock:
            if not self._record.is_recording:
                return False
            # Cleared first so the exit watcher treats the coming exit as expected.
            self._record.is_recording = False
            capture = self._record.capture
            self._record.capture = None
            include_video = self._record.include_video
            mode = self._record.mode
            restore = self._record.was_main_window_visible
            self._transition(SessionState.PROCESSING)
        logger.info("Stopping recording...")

        self._publish(Channel.RECORDING_INDICATOR, RecordingIndicator(False, restore))
        self._publish(Channel.UPDATE_STATUS, Status.PROCESSING)
        if include_video:
            self._publish(Channel.STOP_VIDEO_RECORDING)

        if capture is not None:
            self._safe_stop_capture(capture, self._stop_timeout_s)

        self._safe_resume_media()

        if include_video:
            self._video_file_event.wait(timeout=self._video_settle_s)
            if not self._record.video_confirmed:
                logger.error("Video recording never started; continuing with audio only")

        self._pause(self._flush_settle_s)

        try:
            self._process(include_video, mode)
        except Exception:
            logger.exception("Error processing recording")
            self._emit_error(INFERENCE_FAILED, "processing failed")
            self._play(FAILURE_CUE)
        finally:
            self._finish_session()
        return True

    def _cancel(self) -> bool:
        with self._lock:
            if not self._record.is_recording:
                logger.info("Nothing to cancel")
                return False
            self._record.is_recording = False
            capture = self._record.capture
            self._record.capture = None
            include_video = self._record.include_video
            restore = self._record.was_main_window_visible
            self._transition(SessionState.CANCELLING)
        logger.info("Cancelling recording...")

        try:
            self._safe_resume_media()
            self._publish(Channel.RECORDING_INDICATOR, RecordingIndicator(False, restore))
            if include_video:
                self._publish(Channel.STOP_VIDEO_RECORDING)
            with self._lock:
                self._record.video_frames.clear()
            if capture is not None:
                self._safe_stop_capture(capture, self._cancel_timeout_s)
            self._pause(self._cancel_release_s)
        finally:
            self._finish_session()
        return True

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _process(self, include_video: bool, mode: Mode) -> None:
        # Only a file delivered during this session counts as video.
        has_video = (
            include_video
            and self._video_file_event.is_set()
            and media_present(self._paths.video, self._min_media_bytes)
        )
        has_audio = media_present(self._paths.audio, self._min_media_bytes)
        if not has_audio and not has_video:
            logger.error("No valid recording files exist")
            self._emit_error(NO_MEDIA, "no audio or video was captured")
            self._play(FAILURE_CUE)
            return

        frames = self.video_frames
        logger.info("Calling Gemini (video: %s, audio: %s, frames: %d)", has_video, has_audio, len(frames))
        if has_video and has_audio:
            text = self._inference.process_video(self._paths.video, self._paths.audio, frames, mode)
        elif has_audio:
            text = self._inference.process_audio(self._paths.audio, frames, mode)
        else:
            text = self._inference.process_video(self._paths.video, None, frames, mode)

        if not text:
            logger.warning("Gemini response: (empty)")
            self._emit_error(self._inference.last_error or INFERENCE_FAILED, "no text returned")
            self._play(FAILURE_CUE)
            return

        logger.info("Gemini response: %s", text[:100])
        self._play(SUCCESS_CUE)
        self._publish(Channel.SHOW_TRANSCRIPTION, text)
        result = self._run_paste(text)
        if not result.success:
            logger.warning("Paste failed: %s", result.reason)
            self._emit_error(NO_ACTIVE_TARGET, result.reason)

    def _run_paste(self, text: str) -> PasteResult:
        try:
            return self._paste_service.paste_text(text)
        except Exception as exc:
            logger.exception("Paste service raised")
            return PasteResult(success=False, reason=str(exc))

    def _finish_session(self) -> None:
        with self._lock:
            self._record.video_frames.clear()
            self._record.video_confirmed = False
            self._video_file_event.clear()
        cleanup_temp_files(self._paths, delay_s=self._delete_retry_delay_s, sleep=self._sleep)
        self._publish(Channel.UPDATE_STATUS, Status.READY)
        with self._lock:
            self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Capture process events
    # ------------------------------------------------------------------

    def _handle_capture_exit(self, session_id: int, code: Optional[int]) -> None:
        """Tear down the session whose sox process died on its own.

        Runs on the watcher thread. The teardown holds the transition lock so
        a hotkey press cannot start a new session halfway through it, and an
        exit from an older session never touches the current one.
        """
        if code is None or code <= 0:
            return
        with self._transition_lock:
            with self._lock:
                if not self._record.is_recording or session_id != self._session_id:
                    return
                logger.error("sox exited with error code: %s", code)
                self._reset_after_capture_failure()
            self._abort_capture(f"sox exited with code {code}")

    def _reset_after_capture_failure(self) -> None:
        self._record.is_recording = False
        self._record.capture = None
        self._transition(SessionState.IDLE)

    def _abort_capture(self, message: str) -> None:
        self._emit_error(CAPTURE_FAILED, message)
        self._safe_resume_media()
        with self._lock:
            include_video = self._record.include_video
            restore = self._record.was_main_window_visible
            self._record.video_frames.clear()
        if include_video:
            self._publish(Channel.STOP_VIDEO_RECORDING)
        self._publish(Channel.RECORDING_INDICATOR, RecordingIndicator(False, restore))
        cleanup_temp_files(self._paths, delay_s=self._delete_retry_delay_s, sleep=self._sleep)
        self._publish(Channel.UPDATE_STATUS, Status.READY)

    # ------------------------------------------------------------------
    # UI messages
    # ------------------------------------------------------------------

    def _on_set_mode(self, payload: Any) -> None:
        try:
            self.set_mode(Mode(payload))
        except ValueError:
            logger.warning("Ignoring unknown mode: %r", payload)

    def _on_set_include_video(self, payload: Any) -> None:
        self.set_include_video(bool(payload))

    def _on_video_recording_started(self, info: Any) -> None:
        with self._lock:
            self._record.video_confirmed = True
        logger.info("UI reports video recording started: %s", info)

    def _on_video_recording_error(self, message: Any) -> None:
        if not message:
            return
        logger.error("Video recording error (UI): %s", message)
        self._emit_error(VIDEO_ERROR, str(message))
        self._play(FAILURE_CUE)

    def _on_video_frame(self, frame: Any) -> None:
        if not isinstance(frame, str) or not frame:
            return
        with self._lock:
            self._record.video_frames.append(frame)

    def _on_video_file_complete(self, data: Any) -> None:
        if not isinstance(data, str) or not data:
            return
        with self._lock:
            active = self._state in (SessionState.RECORDING, SessionState.PROCESSING)
        if not active:
            logger.warning("Ignoring video file received outside a session")
            return
        logger.info("Received video file, size: %d", len(data))
        try:
            self._paths.video.write_bytes(base64.b64decode(data))
        except (binascii.Error, ValueError, OSError) as exc:
            logger.error("Failed to save video file: %s", exc)
            return
        with self._lock:
            self._record.video_confirmed = True
        self._video_file_event.set()
        logger.info("Video file saved: %s", self._paths.video)

    def _on_cancel_requested(self, _payload: Any) -> None:
        if self._record.is_recording:
            self.cancel_recording()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _safe_pause_media(self) -> None:
        try:
            self._media.pause_media()
        except Exception:
            logger.exception("Pausing media failed")

    def _safe_resume_media(self) -> None:
        try:
            self._media.resume_media()
        except Exception:
            logger.exception("Resuming media failed")

    def _safe_stop_capture(self, capture: CaptureHandle, timeout_s: float) -> None:
        try:
            self._recorder.stop(capture, timeout_s=timeout_s)
        except Exception:
            logger.exception("Stopping sox failed")

    def _query_main_window_visible(self) -> bool:
        if self._is_main_window_visible is None:
            return False
        try:
            return bool(self._is_main_window_visible())
        except Exception:
            logger.exception("Could not read main window visibility")
            return False

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    def _play(self, cue: SoundCue) -> None:
        self._publish(Channel.PLAY_SOUND, cue)

    def _publish(self, channel: Channel, payload: Any = None) -> None:
        self._bus.publish(channel, payload)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
