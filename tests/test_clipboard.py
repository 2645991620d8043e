from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from clipboard import ClipboardService
from errors import CLIPBOARD_FAILURE


@patch("clipboard.pyperclip")
def test_write_copies_text(mock_clip: MagicMock) -> None:
    assert ClipboardService().write("メモ") is True
    mock_clip.copy.assert_called_once_with("メモ")


@patch("clipboard.pyperclip")
def test_write_failure_is_reported(mock_clip: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
    mock_clip.copy.side_effect = RuntimeError("no clipboard mechanism")

    with caplog.at_level(logging.WARNING, logger="clipboard"):
        assert ClipboardService().write("メモ") is False

    assert CLIPBOARD_FAILURE in caplog.text


@patch("clipboard.pyperclip", None)
def test_write_without_pyperclip() -> None:
    assert ClipboardService().write("メモ") is False
