"""Three-view document model (raw / formatted / summary) with lazy AI transforms."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from errors import MISSING_CREDENTIAL, TransformError
from interfaces import TransformGateway
from models import Slot, SlotOrigin, SummaryStyle, TransformKind, View
from transcript import TranscriptAccumulator

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[View], None]
ErrorCallback = Callable[[str, str], None]

SLOT_KINDS: Dict[View, TransformKind] = {
    View.FORMATTED: TransformKind.FORMAT,
    View.SUMMARY: TransformKind.SUMMARIZE,
}


class DocumentStore:
    def __init__(
        self,
        transcript: TranscriptAccumulator,
        gateway: TransformGateway,
        is_listening: Callable[[], bool] = lambda: False,
        summary_style: SummaryStyle = SummaryStyle.CONCISE,
        on_change: Optional[ChangeCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._transcript = transcript
        self._gateway = gateway
        self._is_listening = is_listening
        self._on_change = on_change
        self._on_error = on_error
        self._slots: Dict[View, Slot] = {view: Slot() for view in SLOT_KINDS}
        self._tasks: Dict[View, asyncio.Task] = {}
        self._active_view = View.RAW
        self.summary_style = summary_style
        self.credential_required = False

    @property
    def active_view(self) -> View:
        return self._active_view

    def slot(self, view: View) -> Optional[Slot]:
        return self._slots.get(View(view))

    def is_pending(self, view: View) -> bool:
        slot = self.slot(view)
        return bool(slot and slot.pending)

    def set_active_view(self, view: View) -> Optional[asyncio.Task]:
        view = View(view)
        self._active_view = view
        self._notify(view)
        slot = self._slots.get(view)
        if slot is None or slot.content or slot.pending or not self._transcript.finalized:
            return None
        return self.request_transform(view)

    def get_text(self, view: View) -> str:
        view = View(view)
        if view == View.RAW:
            include_interim = self._is_listening() and self._active_view == View.RAW
            return self._transcript.text(include_interim=include_interim)
        return self._slots[view].content

    def edit_text(self, view: View, text: str) -> None:
        view = View(view)
        if view == View.RAW:
            # User edits are authoritative over recognized text.
            self._transcript.replace(text)
        else:
            slot = self._slots[view]
            slot.content = text
            slot.origin = SlotOrigin.USER_EDITED
            slot.revision += 1
        self._notify(view)

    def request_transform(
        self, view: View, style: Optional[SummaryStyle] = None
    ) -> Optional[asyncio.Task]:
        view = View(view)
        slot = self._slots.get(view)
        if slot is None:
            return None
        if slot.pending:
            return self._tasks.get(view)
        source_text = self._transcript.finalized
        if not source_text:
            return None
        if view == View.SUMMARY:
            style = SummaryStyle(style) if style is not None else self.summary_style
            self.summary_style = style
        else:
            style = None

        slot.pending = True
        slot.error = None
        task = asyncio.get_running_loop().create_task(
            self._run_transform(view, SLOT_KINDS[view], source_text, style, slot.revision)
        )
        self._tasks[view] = task
        self._notify(view)
        return task

    def clear(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        self._tasks.clear()
        self._transcript.clear()
        self._slots = {view: Slot() for view in SLOT_KINDS}
        self._active_view = View.RAW
        self._notify(View.RAW)

    async def aclose(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_transform(
        self,
        view: View,
        kind: TransformKind,
        source_text: str,
        style: Optional[SummaryStyle],
        revision: int,
    ) -> Optional[str]:
        slot = self._slots[view]
        try:
            content = await self._gateway.transform(kind, source_text, style)
        except TransformError as exc:
            slot.error = exc.code
            if exc.code == MISSING_CREDENTIAL:
                self.credential_required = True
            logger.warning("%s transform failed: %s", view.value, exc.message)
            if self._on_error:
                self._on_error(exc.code, exc.message)
            return None
        finally:
            slot.pending = False
            if self._tasks.get(view) is asyncio.current_task():
                del self._tasks[view]
            self._notify(view)

        if slot.revision != revision:
            logger.info("Discarding %s result, slot was edited meanwhile", view.value)
            return None
        self.credential_required = False
        slot.content = content
        slot.origin = SlotOrigin.AI
        self._notify(view)
        return content

    def _notify(self, view: View) -> None:
        if self._on_change:
            self._on_change(view)
