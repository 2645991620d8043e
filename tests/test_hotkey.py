from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from hotkey import GlobalHotkeyAdapter


class _Key:
    def __init__(self, name: str) -> None:
        self.name = name

    def __str__(self) -> str:
        return self.name


@patch("hotkey.keyboard")
def test_start_registers_listener(mock_keyboard: MagicMock) -> None:
    adapter = GlobalHotkeyAdapter("Key.f9")
    adapter.start(lambda: None)

    mock_keyboard.Listener.assert_called_once()
    mock_keyboard.Listener.return_value.start.assert_called_once()

    adapter.stop()
    mock_keyboard.Listener.return_value.stop.assert_called_once()
    adapter.stop()


@patch("hotkey.keyboard")
def test_toggle_fires_once_per_press(mock_keyboard: MagicMock) -> None:
    toggles: list[None] = []
    adapter = GlobalHotkeyAdapter("Key.f9")
    adapter.start(lambda: toggles.append(None))
    kwargs = mock_keyboard.Listener.call_args.kwargs
    on_press, on_release = kwargs["on_press"], kwargs["on_release"]

    on_press(_Key("Key.f9"))
    on_press(_Key("Key.f9"))
    on_release(_Key("Key.f9"))
    on_press(_Key("Key.f9"))

    assert len(toggles) == 2


@patch("hotkey.keyboard")
def test_other_keys_are_ignored(mock_keyboard: MagicMock) -> None:
    toggles: list[None] = []
    adapter = GlobalHotkeyAdapter("Key.f9")
    adapter.start(lambda: toggles.append(None))
    kwargs = mock_keyboard.Listener.call_args.kwargs

    kwargs["on_press"](_Key("Key.f8"))
    kwargs["on_release"](_Key("Key.f8"))

    assert toggles == []


@patch("hotkey.keyboard", None)
def test_start_without_pynput() -> None:
    with pytest.raises(RuntimeError, match="pynput is not installed"):
        GlobalHotkeyAdapter().start(lambda: None)
