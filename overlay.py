"""Overlay window showing the live dictation preview."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 18px; padding: 16px; border-radius: 12px;"
_TEXT_STYLE = "color: white; background: rgba(0,0,0,190);" + _BASE_STYLE
_STATUS_STYLE = "color: #BBBBBB; background: rgba(0,0,0,160);" + _BASE_STYLE
_ERROR_STYLE = "color: #FF6B6B; background: rgba(0,0,0,210);" + _BASE_STYLE

# Only the tail of long dictations fits on screen.
MAX_PREVIEW_CHARS = 400


def preview_tail(text: str, limit: int = MAX_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    tail = text[-limit:]
    space = tail.find(" ")
    if 0 <= space < limit // 4:
        tail = tail[space + 1 :]
    return "…" + tail


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(640)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(_TEXT_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40
        self.move(x, y)

    def _show(self, text: str, style: str) -> None:
        self._cancel_hide_timer()
        self._label.setStyleSheet(style)
        self._label.setText(text)
        self._center_top()
        self.show()

    def show_preview(self, display_text: str) -> None:
        """Show committed text plus the in-flight fragment."""
        self._show(preview_tail(display_text) or "🎙️ Listening...", _TEXT_STYLE)

    def show_status(self, text: str) -> None:
        self._show(text, _STATUS_STYLE)

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        self._show(f"⚠️ {text}", _ERROR_STYLE)
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
