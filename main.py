"""Application entrypoint: terminal front end with a global toggle hotkey."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional

from app import NoteApp
from config import JsonConfigStore
from errors import ERROR_MESSAGES
from hotkey import GlobalHotkeyAdapter
from models import SessionStatus, SummaryStyle, View
from recognizer import make_stream_factory
from recorder import SoundDeviceCaptureSource

logger = logging.getLogger(__name__)

HELP = """Commands:
  start | stop              control recording (or press the hotkey)
  view raw|formatted|summary
  format                    AI proofreading of the transcript
  summarize [concise|detailed|minutes]
  edit <text>               overwrite the active view
  key <value>               save the AI API key
  copy                      copy the active view to the clipboard
  show | clear | help | quit"""


class App:
    def __init__(self) -> None:
        self.config_store = JsonConfigStore()
        self.note = NoteApp(
            config_store=self.config_store,
            stream_factory=make_stream_factory(self.config_store.get_recognizer_api_key),
            capture_source=SoundDeviceCaptureSource(),
            on_error=self._on_error,
            on_state_change=self._on_state_change,
            on_transcript=self._on_transcript,
        )
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._printed_len = 0

    # ------------------------------------------------------------------
    # Callbacks (run on the event loop)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionStatus, to_state: SessionStatus) -> None:
        if to_state == SessionStatus.LISTENING:
            print("🎙️ Listening...")
        elif to_state == SessionStatus.RECONNECTING:
            print("… reconnecting")
        elif to_state in (SessionStatus.STOPPED, SessionStatus.FAILED):
            print(f"■ {to_state.value.lower()}")

    def _on_transcript(self, finalized: str, interim: str) -> None:
        if len(finalized) > self._printed_len:
            print(finalized[self._printed_len:])
        self._printed_len = len(finalized)

    def _on_error(self, code: str, message: str) -> None:
        print(f"⚠️ {ERROR_MESSAGES.get(code, code)} ({message})")

    def _on_hotkey(self) -> None:
        # pynput thread -> event loop
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.note.toggle)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _handle_command(self, line: str) -> bool:
        command, _, argument = line.strip().partition(" ")
        argument = argument.strip()
        if not command:
            return True
        if command == "quit":
            return False
        if command == "start":
            self.note.start()
        elif command == "stop":
            self.note.stop()
        elif command == "view":
            await self._await(self.note.select_view(View(argument or "raw")))
            self._show()
        elif command == "format":
            await self._await(self.note.request_transform(View.FORMATTED))
            self._show()
        elif command == "summarize":
            style = SummaryStyle(argument) if argument else None
            await self._await(self.note.request_transform(View.SUMMARY, style))
            self._show()
        elif command == "edit":
            self.note.edit_view(self.note.active_view, argument)
            self._printed_len = len(self.note.transcript_text)
        elif command == "key":
            self.note.set_credential(argument)
            print("API key saved.")
        elif command == "copy":
            print("Copied." if self.note.copy_active_view() else "Copy failed.")
        elif command == "show":
            self._show()
        elif command == "clear":
            self.note.clear()
            self._printed_len = 0
        else:
            print(HELP)
        return True

    async def _await(self, task: Optional[asyncio.Task]) -> None:
        if task is not None:
            await task
        if self.note.credential_required:
            print("Set the AI API key with: key <value>")

    def _show(self) -> None:
        view = self.note.active_view
        print(f"[{view.value}]")
        print(self.note.view_text(view) or "(empty)")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> int:
        self._loop = asyncio.get_running_loop()
        try:
            self.hotkey.start(on_toggle=self._on_hotkey)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
        print(HELP)
        try:
            while True:
                line = await self._loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                try:
                    if not await self._handle_command(line):
                        break
                except ValueError as exc:
                    print(f"Invalid argument: {exc}")
        finally:
            self.hotkey.stop()
            await self.note.aclose()
        return 0


def main() -> int:
    logging.basicConfig(
        level=os.getenv("VOICE_NOTE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(App().run())


if __name__ == "__main__":
    raise SystemExit(main())
