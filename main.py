"""Application entrypoint: tray app that dictates into the focused window."""

from __future__ import annotations

import logging
import sys
import threading

from auto_paste import ClipboardPasteService
from config import JsonConfigStore
from errors import AlreadyActiveError
from hotkey import ToggleHotkey
from models import ErrorClassification, SessionState
from overlay import OverlayWindow
from recognizer import DashscopeRecognizer
from recorder import SoundDevicePermissionGate, SoundDeviceRecorder, sd
from session_controller import DictationSession

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
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


ICON_IDLE = "#888888"
ICON_LISTENING = "#FF4444"
ICON_BUSY = "#FFBB33"
ICON_ERROR = "#FF8800"

_TOOLTIPS = {
    SessionState.IDLE.value: "Dictation: Ready",
    SessionState.STARTING.value: "Dictation: Starting...",
    SessionState.LISTENING.value: "Dictation: Listening...",
    SessionState.RECOVERING.value: "Dictation: Reconnecting...",
    SessionState.ENDING.value: "Dictation: Finishing...",
}


class UIBridge(QObject):
    text_signal = Signal(str)
    error_signal = Signal(str)
    state_signal = Signal(str, str)  # from_state, to_state
    commit_signal = Signal(str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        logging.basicConfig(
            level=getattr(logging, self.config_store.get_log_level(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        self.overlay = OverlayWindow()
        self.paste_service = ClipboardPasteService()
        self.ui = UIBridge()
        self.ui.text_signal.connect(self._on_text_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.commit_signal.connect(self._on_commit_ui)

        settings = self.config_store.get_settings()
        self.recognizer = DashscopeRecognizer(
            api_key=self.config_store.get_api_key(),
            recorder=SoundDeviceRecorder(),
            language=self.config_store.get_language(),
            request_timeout_s=settings.request_timeout_s,
            no_speech_timeout_s=settings.no_speech_timeout_s,
            utterance_silence_ms=settings.utterance_silence_ms,
            energy_threshold=settings.energy_threshold,
        )
        self.session = DictationSession(
            capability=self.recognizer,
            permission_gate=SoundDevicePermissionGate(),
            max_restart_attempts=settings.max_restart_attempts,
            transient_backoff_s=settings.transient_backoff_s,
            recoverable_backoff_s=settings.recoverable_backoff_s,
            end_timeout_s=settings.ending_watchdog_s,
            on_state_change=self._on_state_change,
            on_text=self._on_text,
            on_error=self._on_error,
            on_commit=self._on_commit,
        )
        self.hotkey = ToggleHotkey(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip(_TOOLTIPS[SessionState.IDLE.value])
        self._setup_menu()
        self.tray.show()

    @staticmethod
    def speech_supported() -> bool:
        return DashscopeRecognizer.is_available() and sd is not None

    def _setup_menu(self) -> None:
        menu = QMenu()

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        language_action = QAction("Set Language", menu)
        language_action.triggered.connect(self._set_language)
        menu.addAction(language_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.recognizer.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_language(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Language", "Recognition language, e.g. en-US", text=self.config_store.get_language()
        )
        if not ok or not value:
            return
        self.config_store.set_language(value)
        self.recognizer.set_language(value)
        QMessageBox.information(None, "Saved", "Language applies to the next dictation.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.alt_r"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    # ------------------------------------------------------------------
    # Session callbacks (worker threads → signals for the UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_text(self, display_text: str) -> None:
        self.ui.text_signal.emit(display_text)

    def _on_error(self, classification: ErrorClassification) -> None:
        self.ui.error_signal.emit(classification.message)

    def _on_commit(self, committed_text: str) -> None:
        self.ui.commit_signal.emit(committed_text)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_text_ui(self, display_text: str) -> None:
        if self.session.state == SessionState.LISTENING:
            self.overlay.show_preview(display_text)

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.overlay.show_error(msg)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.tray.setToolTip(_TOOLTIPS.get(to_state, "Dictation"))
        if to_state == SessionState.LISTENING.value:
            self.tray.setIcon(_create_icon(ICON_LISTENING))
            self.overlay.show_preview(self.session.get_display_text())
        elif to_state in (SessionState.STARTING.value, SessionState.RECOVERING.value):
            self.tray.setIcon(_create_icon(ICON_BUSY))
        elif to_state == SessionState.ENDING.value:
            self.overlay.show_status("Finishing...")
        elif to_state == SessionState.IDLE.value:
            status = self.session.get_status()
            if status.last_error is None:
                self.tray.setIcon(_create_icon(ICON_IDLE))
                self.overlay.hide_with_delay(400)

    def _on_commit_ui(self, committed_text: str) -> None:
        if not committed_text.strip():
            return
        result = self.paste_service.paste_text(committed_text)
        if not result.success:
            logger.warning("Paste failed: %s", result.reason)
            self.overlay.show_error("No active input target, text kept in clipboard.")

    # ------------------------------------------------------------------
    # Hotkey handler
    # ------------------------------------------------------------------

    def _on_hotkey_toggle(self) -> None:
        if not self.speech_supported():
            self.ui.error_signal.emit("Voice-to-text is not supported: install dashscope and sounddevice.")
            return
        if self.session.state != SessionState.IDLE:
            self.session.stop()
            return
        # Permission checks may touch the audio device; keep them off the listener thread.
        threading.Thread(target=self._start_session, daemon=True).start()

    def _start_session(self) -> None:
        try:
            self.session.start()
        except AlreadyActiveError:
            logger.debug("Dictation already active, ignoring start")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start(on_toggle=self._on_hotkey_toggle)
        except Exception as exc:
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.session.stop()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
