"""Overlay window for recording status and the returned text."""

from __future__ import annotations

import threading

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_DEFAULT_STYLE = (
    "color: white; font-size: 16px; padding: 14px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_RECORDING_STYLE = (
    "color: white; font-size: 16px; padding: 14px;"
    "background: rgba(200,40,40,200); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 16px; padding: 14px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(530)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self._label.setStyleSheet(_DEFAULT_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None
        # Mirrors isVisible() for readers off the Qt thread.
        self.shown = threading.Event()

    def showEvent(self, event) -> None:  # noqa: ANN001, N802
        self.shown.set()
        super().showEvent(event)

    def hideEvent(self, event) -> None:  # noqa: ANN001, N802
        self.shown.clear()
        super().hideEvent(event)

    def _place_top_right(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + geom.width() - self.width() - 20, geom.y() + 20)

    def set_text(self, text: str, style: str = _DEFAULT_STYLE) -> None:
        """Show ``text`` in the overlay until told otherwise."""
        self._cancel_hide_timer()
        self._label.setStyleSheet(style)
        self._label.setText(text)
        self._place_top_right()
        self.show()

    def show_recording(self) -> None:
        self.set_text("Recording... press the hotkey again to stop", _RECORDING_STYLE)

    def show_processing(self) -> None:
        self.set_text("Processing...")

    def show_transcription(self, text: str, hide_after_ms: int = 8000) -> None:
        self.set_text(text)
        self.hide_with_delay(hide_after_ms)

    def show_error(self, text: str, hide_after_ms: int = 2500) -> None:
        self.set_text(f"⚠️ {text}", _ERROR_STYLE)
        self.hide_with_delay(hide_after_ms)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
