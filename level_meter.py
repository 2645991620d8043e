"""Real-time audio level sampling for UI feedback."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence

from interfaces import CaptureHandle

logger = logging.getLogger(__name__)

LevelCallback = Callable[[float], None]

LEVEL_GAIN = 1.5
MAX_LEVEL = 100.0


def compute_level(bins: Sequence[int]) -> float:
    """Mean of the low-frequency quarter of the bins, scaled and clamped."""
    count = len(bins) // 4
    if count <= 0:
        return 0.0
    average = sum(float(value) for value in bins[:count]) / count
    return max(0.0, min(MAX_LEVEL, average * LEVEL_GAIN))


class AudioLevelMeter:
    def __init__(
        self,
        interval_s: float = 1 / 60,
        on_level: Optional[LevelCallback] = None,
    ) -> None:
        self._interval_s = interval_s
        self._on_level = on_level
        self._handle: Optional[CaptureHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._level = 0.0

    @property
    def level(self) -> float:
        return self._level

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def attach(self, handle: Optional[CaptureHandle]) -> bool:
        self.detach()
        if handle is None:
            logger.warning("No capture handle, audio level display disabled")
            return False
        self._handle = handle
        self._task = asyncio.get_running_loop().create_task(self._run(handle))
        return True

    def detach(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except Exception as exc:
                logger.debug("Closing capture handle failed: %s", exc)
        self._set_level(0.0)

    async def _run(self, handle: CaptureHandle) -> None:
        while handle.is_open and self._handle is handle:
            try:
                bins = handle.frequency_data()
            except Exception as exc:
                logger.warning("Audio level sampling stopped: %s", exc)
                break
            self._set_level(compute_level(bins))
            await asyncio.sleep(self._interval_s)
        if self._handle is handle:
            self._set_level(0.0)

    def _set_level(self, level: float) -> None:
        if level == self._level:
            return
        self._level = level
        if self._on_level:
            self._on_level(level)
