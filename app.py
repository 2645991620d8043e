"""Presentation boundary: one session, one document, and the user actions."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ai_gateway import AITransformGateway
from clipboard import ClipboardService
from config import JsonConfigStore
from document_store import DocumentStore
from interfaces import CaptureSource, Clipboard, RecognitionStreamFactory, TransformGateway
from level_meter import AudioLevelMeter
from models import SessionStatus, SummaryStyle, View
from session_controller import SessionController
from transcript import TranscriptAccumulator

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
ErrorListener = Callable[[str, str], None]
StateListener = Callable[[SessionStatus, SessionStatus], None]
TranscriptListener = Callable[[str, str], None]


class NoteApp:
    def __init__(
        self,
        config_store: JsonConfigStore,
        stream_factory: RecognitionStreamFactory,
        capture_source: Optional[CaptureSource] = None,
        gateway: Optional[TransformGateway] = None,
        clipboard: Optional[Clipboard] = None,
        meter_interval_s: float = 1 / 60,
        on_update: Optional[Listener] = None,
        on_error: Optional[ErrorListener] = None,
        on_state_change: Optional[StateListener] = None,
        on_transcript: Optional[TranscriptListener] = None,
        **controller_options,
    ) -> None:
        self.config_store = config_store
        self.clipboard = clipboard or ClipboardService()
        self.gateway = gateway or AITransformGateway(config_store, endpoint=config_store.get_endpoint())
        self._on_update = on_update
        self._on_error = on_error
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self.last_message: Optional[tuple[str, str]] = None

        self.transcript = TranscriptAccumulator()
        self.meter = AudioLevelMeter(interval_s=meter_interval_s, on_level=lambda _level: self._updated())
        self.controller = SessionController(
            stream_factory=stream_factory,
            transcript=self.transcript,
            level_meter=self.meter,
            capture_source=capture_source,
            on_state_change=self._state_changed,
            on_transcript=self._transcript_changed,
            on_error=self._report_error,
            **controller_options,
        )
        self.document = DocumentStore(
            transcript=self.transcript,
            gateway=self.gateway,
            is_listening=lambda: self.controller.is_listening,
            on_change=lambda _view: self._updated(),
            on_error=self._report_error,
        )

    # ------------------------------------------------------------------
    # State exposed to the presentation layer
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self.controller.state

    @property
    def last_error(self) -> Optional[str]:
        return self.controller.session.last_error

    @property
    def transcript_text(self) -> str:
        return self.transcript.finalized

    @property
    def interim_text(self) -> str:
        return self.transcript.interim if self.controller.is_listening else ""

    @property
    def audio_level(self) -> float:
        return self.meter.level

    @property
    def active_view(self) -> View:
        return self.document.active_view

    @property
    def credential_required(self) -> bool:
        return self.document.credential_required or not self.config_store.get_api_key()

    def view_text(self, view: Optional[View] = None) -> str:
        return self.document.get_text(view or self.document.active_view)

    def is_pending(self, view: View) -> bool:
        return self.document.is_pending(view)

    def view_error(self, view: View) -> Optional[str]:
        slot = self.document.slot(view)
        return slot.error if slot else None

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.controller.start()

    def stop(self) -> None:
        self.controller.stop()

    def toggle(self) -> None:
        if self.status in (SessionStatus.LISTENING, SessionStatus.RECONNECTING):
            self.stop()
        else:
            self.start()

    def select_view(self, view: View):
        return self.document.set_active_view(view)

    def edit_view(self, view: View, text: str) -> None:
        self.document.edit_text(view, text)

    def request_transform(self, view: View, style: Optional[SummaryStyle] = None):
        task = self.document.request_transform(view, style)
        self.document.set_active_view(view)
        return task

    def set_credential(self, value: str) -> None:
        self.config_store.set_api_key(value)
        self.document.credential_required = False
        self._updated()

    def copy_active_view(self) -> bool:
        return self.clipboard.write(self.view_text())

    def clear(self) -> None:
        self.document.clear()

    async def aclose(self) -> None:
        await self.controller.aclose()
        await self.document.aclose()
        aclose = getattr(self.gateway, "aclose", None)
        if aclose is not None:
            await aclose()

    def _report_error(self, code: str, message: str) -> None:
        self.last_message = (code, message)
        if self._on_error:
            self._on_error(code, message)
        self._updated()

    def _state_changed(self, from_state: SessionStatus, to_state: SessionStatus) -> None:
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
        self._updated()

    def _transcript_changed(self, finalized: str, interim: str) -> None:
        if self._on_transcript:
            self._on_transcript(finalized, interim)
        self._updated()

    def _updated(self) -> None:
        if self._on_update:
            self._on_update()
