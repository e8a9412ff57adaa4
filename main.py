"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Callable

from audio_backend import AudioBackendProbe
from auto_paste import ClipboardPasteService
from command_runner import CommandRunner
from config import JsonConfigStore, load_environment
from errors import ERROR_MESSAGES
from hotkey import GlobalHotkeyAdapter
from inference import GeminiInferenceAdapter
from media_control import MediaController
from media_files import MediaPaths
from message_bus import Channel, MessageBus
from models import Mode, RecordingIndicator, SessionState, SoundCue, Status
from overlay import OverlayWindow
from recorder import SoxRecorder
from screen_capture import ScreenFrameSampler
from session_controller import SessionController
from tone import TonePlayer

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QActionGroup, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#3B82F6", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#3B82F6"       # blue
ICON_RECORDING = "#EF4444"  # red
ICON_BUSY = "#F59E0B"       # amber


def configure_logging() -> None:
    level = os.getenv("CLARIFYVOICE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("google_genai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def check_dependencies(runner: CommandRunner, sox_exe: str) -> None:
    """Log install hints for missing helper binaries."""
    if runner.run([sox_exe, "--version"]).ok:
        logger.info("SoX is available")
    else:
        logger.error("SoX not found! Please install SoX:")
        if sys.platform == "darwin":
            logger.error("  macOS: brew install sox")
        elif sys.platform == "win32":
            logger.error("  Windows: install SoX and add it to PATH, or set sox_path in the config")
        else:
            logger.error("  Ubuntu/Debian: sudo apt install sox libsox-fmt-all")
    if sys.platform.startswith("linux"):
        if runner.run(["which", "xdotool"]).ok:
            logger.info("xdotool is available")
        else:
            logger.error("xdotool not found! Paste will not work. Install with: sudo apt install xdotool")


class UIBridge(QObject):
    status_signal = Signal(str)
    transcription_signal = Signal(str)
    indicator_signal = Signal(bool, bool)
    error_signal = Signal(str)
    mode_signal = Signal(str)
    video_toggle_signal = Signal()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        load_environment()
        self.config_store = JsonConfigStore()
        self.runner = CommandRunner()
        self.bus = MessageBus()
        self.overlay = OverlayWindow()
        self.tones = TonePlayer()
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.transcription_signal.connect(self._on_transcription_ui)
        self.ui.indicator_signal.connect(self._on_indicator_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.mode_signal.connect(lambda value: self._set_mode(Mode(value)))
        self.ui.video_toggle_signal.connect(self._on_video_toggle_ui)

        script_dir = self.config_store.directory
        paths = MediaPaths.in_directory(script_dir)
        self.inference = GeminiInferenceAdapter(
            api_key=self.config_store.get_api_key(),
            model=self.config_store.get_model(),
        )
        self.recorder = SoxRecorder(
            probe=AudioBackendProbe(self.runner),
            sox_exe=self.config_store.get_sox_path(),
            sox_dir=self.config_store.get_sox_dir(),
        )
        self.controller = SessionController(
            recorder=self.recorder,
            inference=self.inference,
            paste_service=ClipboardPasteService(self.runner, script_dir=script_dir),
            media_control=MediaController(self.runner, script_dir=script_dir),
            bus=self.bus,
            paths=paths,
            mode=self.config_store.get_mode(),
            include_video=self.config_store.get_include_video(),
            is_main_window_visible=self.overlay.shown.is_set,
            on_state_change=self._on_state_change,
            on_error=self._on_error,
        )
        self.sampler = ScreenFrameSampler(self.bus)
        self.hotkey = GlobalHotkeyAdapter(self.config_store.get_hotkeys())

        self.bus.subscribe(Channel.UPDATE_STATUS, self._on_status)
        self.bus.subscribe(Channel.PLAY_SOUND, self._on_play_sound)
        self.bus.subscribe(Channel.SHOW_TRANSCRIPTION, self.ui.transcription_signal.emit)
        self.bus.subscribe(Channel.RECORDING_INDICATOR, self._on_indicator)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("ClarifyVoice")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        toggle_action = QAction("Start/Stop Recording", menu)
        toggle_action.triggered.connect(self._toggle_recording)
        menu.addAction(toggle_action)

        cancel_action = QAction("Cancel Recording", menu)
        cancel_action.triggered.connect(self._cancel_recording)
        menu.addAction(cancel_action)

        menu.addSeparator()
        group = QActionGroup(menu)
        group.setExclusive(True)
        self.prompt_action = QAction("Prompt mode", menu, checkable=True)
        self.transcription_action = QAction("Transcription mode", menu, checkable=True)
        for action, mode in ((self.prompt_action, Mode.PROMPT), (self.transcription_action, Mode.TRANSCRIPTION)):
            action.setChecked(self.controller.mode is mode)
            action.triggered.connect(lambda _checked=False, m=mode: self._set_mode(m))
            group.addAction(action)
            menu.addAction(action)

        self.video_action = QAction("Include screen", menu, checkable=True)
        self.video_action.setChecked(self.controller.include_video)
        self.video_action.setEnabled(self.controller.mode is Mode.PROMPT)
        self.video_action.toggled.connect(self._set_include_video)
        menu.addAction(self.video_action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Gemini API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved. Restart app to apply.")

    def _set_mode(self, mode: Mode) -> None:
        self.bus.publish(Channel.SET_MODE, mode.value)
        self.config_store.set_mode(mode)
        self.prompt_action.setChecked(mode is Mode.PROMPT)
        self.transcription_action.setChecked(mode is Mode.TRANSCRIPTION)
        self.video_action.setEnabled(mode is Mode.PROMPT)

    def _set_include_video(self, enabled: bool) -> None:
        self.bus.publish(Channel.SET_INCLUDE_VIDEO, enabled)
        self.config_store.set_include_video(enabled)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        logger.debug("State %s -> %s", from_state.value, to_state.value)

    def _on_status(self, status: Status) -> None:
        self.ui.status_signal.emit(status.value)

    def _on_play_sound(self, cue: SoundCue) -> None:
        self.tones.play(cue)

    def _on_indicator(self, indicator: RecordingIndicator) -> None:
        self.ui.indicator_signal.emit(indicator.visible, indicator.restore_main_window)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{ERROR_MESSAGES.get(code, code)} ({message})")

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_status_ui(self, status: str) -> None:
        if status == Status.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("ClarifyVoice - Recording...")
        elif status == Status.PROCESSING.value:
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("ClarifyVoice - Processing...")
            self.overlay.show_processing()
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("ClarifyVoice")

    def _on_indicator_ui(self, visible: bool, restore: bool) -> None:
        if visible:
            self.overlay.show_recording()
        elif not restore:
            self.overlay.hide_with_delay(400)

    def _on_transcription_ui(self, text: str) -> None:
        self.overlay.show_transcription(text)

    def _on_error_ui(self, msg: str) -> None:
        self.overlay.show_error(msg)

    def _on_video_toggle_ui(self) -> None:
        # Screen context only applies to prompt mode.
        if self.controller.mode is Mode.PROMPT:
            self.video_action.setChecked(not self.video_action.isChecked())

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _in_background(self, target: Callable[[], object]) -> None:
        # Transitions wait on sox and the network; keep them off the Qt thread.
        threading.Thread(target=target, daemon=True).start()

    def _toggle_recording(self) -> None:
        self._in_background(self.controller.toggle_recording)

    def _cancel_recording(self) -> None:
        self._in_background(lambda: self.bus.publish(Channel.CANCEL_RECORDING))

    def _hotkey_mode(self, mode: Mode) -> Callable[[], None]:
        return lambda: self.ui.mode_signal.emit(mode.value)

    def _hotkey_toggle_video(self) -> None:
        self.ui.video_toggle_signal.emit()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        check_dependencies(self.runner, self.recorder.executable)
        self.controller.attach()
        self.sampler.attach()
        try:
            self.hotkey.start(
                {
                    "toggle_recording": self._toggle_recording,
                    "cancel_recording": self._cancel_recording,
                    "mode_prompt": self._hotkey_mode(Mode.PROMPT),
                    "mode_transcription": self._hotkey_mode(Mode.TRANSCRIPTION),
                    "toggle_video": self._hotkey_toggle_video,
                }
            )
        except Exception as exc:
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.close()
        self.sampler.close()
        self.app.quit()


def main() -> int:
    configure_logging()
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
