"""Global toggle hotkey based on pynput."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from config import DEFAULT_HOTKEY

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class GlobalHotkeyAdapter:
    """Calls ``on_toggle`` once per press of the configured key.

    Key repeat while held is ignored; the callback runs on the listener
    thread, so callers hand it over to their own loop.
    """

    def __init__(self, hotkey_name: str = DEFAULT_HOTKEY) -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._pressed = False
        self._lock = threading.Lock()
        self._on_toggle: Optional[Callable[[], None]] = None

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_toggle = on_toggle
        self._listener = keyboard.Listener(on_press=self._handle_press, on_release=self._handle_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def _handle_press(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            if self._pressed:
                return
            self._pressed = True
        if self._on_toggle:
            self._on_toggle()

    def _handle_release(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            self._pressed = False
