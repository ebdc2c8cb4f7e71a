"""Fold finished dictation text into the focused application."""

from __future__ import annotations

import logging
import sys
import time

from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


def _paste_modifier():  # noqa: ANN202
    return Key.cmd if sys.platform == "darwin" else Key.ctrl


class ClipboardPasteService:
    """Pastes text through the clipboard, restoring the previous clipboard.

    When pasting fails the dictated text is left in the clipboard so it is
    never lost.
    """

    def __init__(self, restore_delay_s: float = 0.1) -> None:
        self._restore_delay_s = restore_delay_s

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        old_clip: str | None = None
        try:
            old_clip = pyperclip.paste()
            pyperclip.copy(text)
            keyboard = Controller()
            modifier = _paste_modifier()
            keyboard.press(modifier)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(modifier)
            time.sleep(self._restore_delay_s)
            pyperclip.copy(old_clip)
            return PasteResult(success=True, reason="ok", clipboard_restored=True)
        except Exception as exc:
            logger.warning("Paste failed, dictated text kept in clipboard: %s", exc)
            try:
                pyperclip.copy(text)
            except Exception:
                logger.debug("Clipboard unavailable", exc_info=True)
            return PasteResult(
                success=False,
                reason=f"no active input target: {exc}",
                clipboard_restored=False,
            )
