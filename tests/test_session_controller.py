from __future__ import annotations

import base64
import threading
from pathlib import Path
from typing import Any, Optional

import pytest

from errors import CAPTURE_FAILED, INFERENCE_FAILED, NO_ACTIVE_TARGET, NO_MEDIA
from media_files import MediaPaths
from message_bus import Channel, MessageBus
from models import (
    FAILURE_CUE,
    START_CUE,
    SUCCESS_CUE,
    ActionOutcome,
    Mode,
    PasteResult,
    RecordingIndicator,
    SessionState,
    Status,
)
import session_controller
from session_controller import SessionController


class FakeCapture:
    def __init__(self, on_exit) -> None:  # noqa: ANN001
        self.on_exit = on_exit
        self.interrupted = False
        self.closed = threading.Event()

    def wait_closed(self, timeout_s: float) -> bool:
        return self.closed.wait(timeout_s)

    def exit(self, code: Optional[int]) -> None:
        self.closed.set()
        if self.on_exit is not None:
            self.on_exit(code)


class FakeRecorder:
    def __init__(
        self,
        audio_bytes: int = 5000,
        fail: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.audio_bytes = audio_bytes
        self.fail = fail
        self.gate = gate
        self.entered = threading.Event()
        self.starts = 0
        self.stop_timeouts: list[float] = []
        self.captures: list[FakeCapture] = []

    def start(self, output_path: Path, on_exit=None) -> FakeCapture:  # noqa: ANN001
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=2.0)
        self.starts += 1
        if self.fail is not None:
            raise self.fail
        if self.audio_bytes:
            output_path.write_bytes(b"\x00" * self.audio_bytes)
        capture = FakeCapture(on_exit)
        self.captures.append(capture)
        return capture

    def stop(self, capture: FakeCapture, timeout_s: float = 2.0) -> bool:
        self.stop_timeouts.append(timeout_s)
        capture.interrupted = True
        capture.exit(0)
        return True

    @property
    def alive(self) -> int:
        return sum(1 for c in self.captures if not c.closed.is_set())


class FakeInference:
    def __init__(self, text: str = "Hello world", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[Any, ...]] = []
        self.last_error = ""

    def process_audio(self, audio_path, frames=(), mode=Mode.PROMPT) -> str:  # noqa: ANN001
        self.calls.append(("audio", audio_path.exists(), list(frames), mode))
        if self.error is not None:
            raise self.error
        return self.text

    def process_video(self, video_path, audio_path=None, frames=(), mode=Mode.PROMPT) -> str:  # noqa: ANN001
        self.calls.append(("video", video_path.exists(), audio_path, list(frames), mode))
        if self.error is not None:
            raise self.error
        return self.text


class FakePasteService:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.calls: list[str] = []

    def paste_text(self, text: str) -> PasteResult:
        self.calls.append(text)
        if self.success:
            return PasteResult(success=True, reason="ok")
        return PasteResult(success=False, reason="no target")


class FakeMediaControl:
    def __init__(self) -> None:
        self.pauses = 0
        self.resumes = 0

    def pause_media(self) -> ActionOutcome:
        self.pauses += 1
        return ActionOutcome(ok=True)

    def resume_media(self) -> ActionOutcome:
        self.resumes += 1
        return ActionOutcome(ok=True)


class BusLog:
    def __init__(self, bus: MessageBus) -> None:
        self.messages: list[tuple[Channel, Any]] = []
        for channel in Channel:
            bus.subscribe(channel, lambda payload, ch=channel: self.messages.append((ch, payload)))

    def payloads(self, channel: Channel) -> list[Any]:
        return [p for c, p in self.messages if c == channel]


class Harness:
    def __init__(self, tmp_path: Path, **kwargs: Any) -> None:
        self.paths = MediaPaths.in_directory(tmp_path)
        self.bus = MessageBus()
        self.log = BusLog(self.bus)
        self.recorder = kwargs.pop("recorder", FakeRecorder())
        self.inference = kwargs.pop("inference", FakeInference())
        self.paste = kwargs.pop("paste", FakePasteService())
        self.media = FakeMediaControl()
        self.errors: list[tuple[str, str]] = []
        self.transitions: list[tuple[SessionState, SessionState]] = []
        options = dict(
            stop_timeout_s=0.1,
            cancel_timeout_s=0.1,
            video_settle_s=0.0,
            flush_settle_s=0.0,
            cancel_release_s=0.0,
            delete_retry_delay_s=0.0,
            sleep=lambda _s: None,
            on_error=lambda c, m: self.errors.append((c, m)),
            on_state_change=lambda f, t: self.transitions.append((f, t)),
        )
        options.update(kwargs)
        self.controller = SessionController(
            recorder=self.recorder,
            inference=self.inference,
            paste_service=self.paste,
            media_control=self.media,
            bus=self.bus,
            paths=self.paths,
            **options,
        )
        self.controller.attach()

    def files_gone(self) -> bool:
        return not self.paths.audio.exists() and not self.paths.video.exists()

    def statuses(self) -> list[Status]:
        return self.log.payloads(Channel.UPDATE_STATUS)


def test_happy_path_transcribes_pastes_and_cleans_up(tmp_path: Path) -> None:
    h = Harness(tmp_path, mode=Mode.TRANSCRIPTION)

    assert h.controller.toggle_recording() is True
    assert h.controller.is_recording is True
    assert h.controller.capture is not None
    assert h.paths.audio.stat().st_size == 5000

    assert h.controller.toggle_recording() is True

    assert h.inference.calls == [("audio", True, [], Mode.TRANSCRIPTION)]
    sounds = h.log.payloads(Channel.PLAY_SOUND)
    assert sounds == [START_CUE, SUCCESS_CUE]
    assert h.log.payloads(Channel.SHOW_TRANSCRIPTION) == ["Hello world"]
    assert h.paste.calls == ["Hello world"]
    assert h.files_gone()
    assert h.statuses() == [Status.RECORDING, Status.PROCESSING, Status.READY]
    assert h.controller.state == SessionState.IDLE
    assert h.controller.is_recording is False
    assert h.controller.capture is None
    assert h.recorder.captures[0].interrupted is True
    assert h.recorder.stop_timeouts == [0.1]
    assert (SessionState.RECORDING, SessionState.PROCESSING) in h.transitions
    assert (SessionState.PROCESSING, SessionState.IDLE) in h.transitions
    assert h.errors == []


def test_audio_below_threshold_never_calls_inference(tmp_path: Path) -> None:
    h = Harness(tmp_path, recorder=FakeRecorder(audio_bytes=500))

    h.controller.start_recording()
    h.controller.stop_recording()

    assert h.inference.calls == []
    assert h.paste.calls == []
    assert h.log.payloads(Channel.PLAY_SOUND)[-1] == FAILURE_CUE
    assert h.errors[0][0] == NO_MEDIA
    assert h.files_gone()
    assert h.statuses()[-1] == Status.READY


def test_no_audio_file_at_all_aborts_to_ready(tmp_path: Path) -> None:
    h = Harness(tmp_path, recorder=FakeRecorder(audio_bytes=0))

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert h.inference.calls == []
    assert h.controller.state == SessionState.IDLE
    assert h.statuses()[-1] == Status.READY


def test_empty_inference_result_skips_paste(tmp_path: Path) -> None:
    h = Harness(tmp_path, inference=FakeInference(text=""))

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert len(h.inference.calls) == 1
    assert h.paste.calls == []
    assert h.log.payloads(Channel.SHOW_TRANSCRIPTION) == []
    assert h.log.payloads(Channel.PLAY_SOUND)[-1] == FAILURE_CUE
    assert h.errors[0][0] == INFERENCE_FAILED
    assert h.files_gone()
    assert h.controller.is_recording is False


def test_inference_exception_still_cleans_up(tmp_path: Path) -> None:
    h = Harness(tmp_path, inference=FakeInference(error=RuntimeError("boom")))

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert h.log.payloads(Channel.PLAY_SOUND)[-1] == FAILURE_CUE
    assert h.files_gone()
    assert h.statuses()[-1] == Status.READY
    assert h.controller.state == SessionState.IDLE


def test_paste_failure_does_not_fail_session(tmp_path: Path) -> None:
    h = Harness(tmp_path, paste=FakePasteService(success=False))

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert h.log.payloads(Channel.PLAY_SOUND)[-1] == SUCCESS_CUE
    assert h.log.payloads(Channel.SHOW_TRANSCRIPTION) == ["Hello world"]
    assert h.errors == [(NO_ACTIVE_TARGET, "no target")]
    assert h.files_gone()
    assert h.statuses()[-1] == Status.READY


def test_capture_exit_with_error_returns_to_ready(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    h.recorder.captures[0].exit(1)

    assert h.controller.is_recording is False
    assert h.controller.capture is None
    assert h.controller.state == SessionState.IDLE
    assert h.statuses()[-1] == Status.READY
    assert h.errors[0][0] == CAPTURE_FAILED

    assert h.controller.stop_recording() is False
    assert h.inference.calls == []


def test_capture_exit_after_stop_is_not_an_error(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    h.controller.stop_recording()
    h.recorder.captures[0].exit(1)

    assert h.errors == []
    assert len(h.inference.calls) == 1


def test_toggle_during_crash_teardown_is_dropped(tmp_path: Path) -> None:
    restarts: list[bool] = []
    holder: dict[str, SessionController] = {}

    def on_error(code: str, message: str) -> None:
        restarts.append(holder["controller"].toggle_recording())

    h = Harness(tmp_path, on_error=on_error)
    holder["controller"] = h.controller

    h.controller.start_recording()
    h.recorder.captures[0].exit(1)

    assert restarts == [False]
    assert h.recorder.starts == 1
    assert h.controller.state == SessionState.IDLE
    assert h.statuses() == [Status.RECORDING, Status.READY]
    assert h.log.payloads(Channel.RECORDING_INDICATOR)[-1].visible is False

    # Once the teardown is over the next session records and transcribes.
    assert h.controller.toggle_recording() is True
    assert h.paths.audio.exists()
    h.controller.toggle_recording()
    assert h.inference.calls[0][0] == "audio"


def test_crash_of_previous_session_leaves_current_one_alone(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    late_exit = h.recorder.captures[0].on_exit
    h.controller.stop_recording()
    h.controller.start_recording()

    late_exit(1)

    assert h.errors == []
    assert h.controller.is_recording is True
    assert h.paths.audio.exists()
    assert h.statuses()[-1] == Status.RECORDING
    h.controller.cancel_recording()


def test_crash_teardown_waits_for_running_transition(tmp_path: Path) -> None:
    gate = threading.Event()
    inside_stop = threading.Event()
    recorder = FakeRecorder()
    h = Harness(tmp_path, recorder=recorder)
    h.controller.start_recording()
    crashed = recorder.captures[0]

    def slow_stop(capture: FakeCapture, timeout_s: float = 2.0) -> bool:
        capture.closed.set()
        inside_stop.set()
        gate.wait(timeout=2.0)
        return True

    recorder.stop = slow_stop  # type: ignore[method-assign]
    worker = threading.Thread(target=h.controller.cancel_recording)
    worker.start()
    assert inside_stop.wait(timeout=1.0)
    exit_thread = threading.Thread(target=crashed.on_exit, args=(1,))
    exit_thread.start()
    gate.set()
    worker.join(timeout=2.0)
    exit_thread.join(timeout=2.0)

    assert h.errors == []
    assert h.controller.state == SessionState.IDLE
    assert h.statuses()[-1] == Status.READY


def test_spawn_failure_is_recoverable(tmp_path: Path) -> None:
    h = Harness(tmp_path, recorder=FakeRecorder(fail=FileNotFoundError("sox")))

    assert h.controller.start_recording() is True

    assert h.controller.is_recording is False
    assert h.controller.capture is None
    assert h.controller.state == SessionState.IDLE
    assert h.statuses() == [Status.RECORDING, Status.READY]
    assert h.errors[0][0] == CAPTURE_FAILED
    assert h.media.resumes == 1

    # The next toggle starts again.
    h.recorder.fail = None
    h.controller.toggle_recording()
    assert h.controller.is_recording is True


def test_cancel_interrupts_capture_and_deletes_files(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    h.paths.video.write_bytes(b"\x01" * 4000)
    assert h.controller.cancel_recording() is True

    assert h.recorder.captures[0].interrupted is True
    assert h.files_gone()
    assert h.inference.calls == []
    assert h.statuses()[-1] == Status.READY
    assert h.controller.state == SessionState.IDLE
    assert h.controller.is_recording is False
    assert (SessionState.RECORDING, SessionState.CANCELLING) in h.transitions
    assert h.media.resumes == 1


def test_cancel_from_idle_is_noop(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    assert h.controller.cancel_recording() is False
    assert h.controller.state == SessionState.IDLE
    assert h.statuses() == []


def test_cancel_after_capture_already_exited(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    h.recorder.captures[0].exit(0)
    assert h.controller.is_recording is True

    assert h.controller.cancel_recording() is True
    assert h.files_gone()
    assert h.controller.state == SessionState.IDLE


def test_cancel_message_from_ui(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.bus.publish(Channel.CANCEL_RECORDING)
    assert h.recorder.starts == 0

    h.controller.start_recording()
    h.bus.publish(Channel.CANCEL_RECORDING)

    assert h.controller.is_recording is False
    assert h.inference.calls == []
    assert h.files_gone()


def test_rapid_double_toggle_starts_one_capture(tmp_path: Path) -> None:
    gate = threading.Event()
    recorder = FakeRecorder(gate=gate)
    h = Harness(tmp_path, recorder=recorder)

    worker = threading.Thread(target=h.controller.toggle_recording)
    worker.start()
    assert recorder.entered.wait(timeout=1.0)

    assert h.controller.toggle_recording() is False
    gate.set()
    worker.join(timeout=2.0)

    assert recorder.starts == 1
    assert recorder.alive == 1
    assert h.controller.is_recording is True

    h.controller.toggle_recording()
    assert recorder.alive == 0
    assert len(h.inference.calls) == 1


def test_pause_and_resume_media_around_session(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    assert (h.media.pauses, h.media.resumes) == (1, 0)
    h.controller.stop_recording()
    assert (h.media.pauses, h.media.resumes) == (1, 1)


def test_video_and_audio_flow_with_frames(tmp_path: Path) -> None:
    h = Harness(tmp_path, include_video=True, video_settle_s=1.0)

    h.controller.start_recording()
    assert h.log.payloads(Channel.START_VIDEO_RECORDING) == [None]

    h.bus.publish(Channel.VIDEO_RECORDING_STARTED, {"screen": True, "audioTracks": 0})
    for name in ("a", "b", "c"):
        h.bus.publish(Channel.VIDEO_FRAME, base64.b64encode(name.encode()).decode())
    h.bus.publish(Channel.VIDEO_FILE_COMPLETE, base64.b64encode(b"\x1a" * 2000).decode())
    assert h.paths.video.stat().st_size == 2000

    h.controller.stop_recording()

    assert h.log.payloads(Channel.STOP_VIDEO_RECORDING) == [None]
    flow, video_existed, audio_path, frames, mode = h.inference.calls[0]
    assert flow == "video"
    assert video_existed is True
    assert audio_path == h.paths.audio
    assert len(frames) == 3
    assert h.controller.video_frames == []
    assert h.files_gone()


def test_unconfirmed_video_falls_back_to_audio_only(tmp_path: Path) -> None:
    h = Harness(tmp_path, include_video=True, video_settle_s=0.01)

    h.controller.start_recording()
    h.bus.publish(Channel.VIDEO_FRAME, "ZnJhbWU=")
    h.controller.stop_recording()

    assert h.inference.calls == [("audio", True, ["ZnJhbWU="], Mode.PROMPT)]
    assert h.files_gone()


def test_video_only_when_audio_missing(tmp_path: Path) -> None:
    h = Harness(tmp_path, recorder=FakeRecorder(audio_bytes=0), include_video=True)

    h.controller.start_recording()
    h.bus.publish(Channel.VIDEO_FILE_COMPLETE, base64.b64encode(b"\x1a" * 3000).decode())
    h.controller.stop_recording()

    flow, _, audio_path, _, _ = h.inference.calls[0]
    assert flow == "video"
    assert audio_path is None
    assert h.files_gone()


def test_leftover_video_file_ignored_when_video_disabled(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.paths.video.write_bytes(b"\x1a" * 5000)

    h.controller.start_recording()
    h.controller.stop_recording()

    assert h.inference.calls[0][0] == "audio"
    assert h.files_gone()


def test_leftover_video_file_ignored_when_video_enabled(tmp_path: Path) -> None:
    h = Harness(tmp_path, include_video=True, video_settle_s=0.01)
    h.paths.video.write_bytes(b"\x1a" * 4000)

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert [call[0] for call in h.inference.calls] == ["audio"]
    assert h.files_gone()


def test_undeletable_leftover_video_is_not_sent(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    h = Harness(tmp_path, include_video=True, video_settle_s=0.01)
    monkeypatch.setattr(session_controller, "cleanup_temp_files", lambda *a, **kw: None)
    h.paths.video.write_bytes(b"\x1a" * 4000)

    h.controller.toggle_recording()
    h.controller.toggle_recording()

    assert [call[0] for call in h.inference.calls] == ["audio"]


def test_video_file_outside_a_session_is_not_written(tmp_path: Path) -> None:
    h = Harness(tmp_path, include_video=True)

    h.bus.publish(Channel.VIDEO_FILE_COMPLETE, base64.b64encode(b"\x1a" * 3000).decode())

    assert not h.paths.video.exists()


def test_video_error_message_plays_failure_cue(tmp_path: Path) -> None:
    h = Harness(tmp_path, include_video=True)

    h.controller.start_recording()
    h.bus.publish(Channel.VIDEO_RECORDING_ERROR, "denied")

    assert h.log.payloads(Channel.PLAY_SOUND)[-1] == FAILURE_CUE
    assert h.controller.is_recording is True
    h.controller.cancel_recording()


@pytest.mark.parametrize(
    "payload, expected",
    [("transcription", Mode.TRANSCRIPTION), ("prompt", Mode.PROMPT), ("bogus", Mode.PROMPT)],
)
def test_set_mode_message(tmp_path: Path, payload: str, expected: Mode) -> None:
    h = Harness(tmp_path)

    h.bus.publish(Channel.SET_MODE, payload)

    assert h.controller.mode is expected


def test_set_include_video_message(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.bus.publish(Channel.SET_INCLUDE_VIDEO, True)
    assert h.controller.include_video is True
    h.bus.publish(Channel.SET_INCLUDE_VIDEO, False)
    assert h.controller.include_video is False


def test_recording_indicator_restores_main_window(tmp_path: Path) -> None:
    h = Harness(tmp_path, is_main_window_visible=lambda: True)

    h.controller.start_recording()
    h.controller.stop_recording()

    assert h.log.payloads(Channel.RECORDING_INDICATOR) == [
        RecordingIndicator(visible=True),
        RecordingIndicator(visible=False, restore_main_window=True),
    ]


def test_close_cancels_and_detaches(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    h.controller.start_recording()
    h.controller.close()

    assert h.controller.is_recording is False
    assert h.files_gone()
    h.bus.publish(Channel.SET_MODE, "transcription")
    assert h.controller.mode is Mode.PROMPT
