"""Global toggle hotkey based on pynput."""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class ToggleHotkey:
    """Calls ``on_toggle`` once per press of the hotkey, ignoring key repeat."""

    def __init__(self, hotkey_name: str = "Key.alt_r") -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._held = False
        self._lock = threading.Lock()

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")

        def _on_press(key: object) -> None:
            if str(key) != self._hotkey_name:
                return
            with self._lock:
                if self._held:
                    return
                self._held = True
            on_toggle()

        def _on_release(key: object) -> None:
            if str(key) != self._hotkey_name:
                return
            with self._lock:
                self._held = False

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
