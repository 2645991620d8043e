"""Best-effort clipboard writes."""

from __future__ import annotations

import logging

from errors import CLIPBOARD_FAILURE

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardService:
    def write(self, text: str) -> bool:
        if pyperclip is None:
            logger.warning("%s: pyperclip is not installed", CLIPBOARD_FAILURE)
            return False
        try:
            pyperclip.copy(text)
        except Exception as exc:
            logger.warning("%s: %s", CLIPBOARD_FAILURE, exc)
            return False
        return True
