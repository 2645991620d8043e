"""Protocol interfaces for the external capabilities used by the core."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from models import StreamEvent, SummaryStyle, TransformKind

StreamEventSink = Callable[[StreamEvent], None]


class RecognitionStream(Protocol):
    def start(self, on_event: StreamEventSink) -> None: ...

    def stop(self) -> None: ...

    def abort(self) -> None: ...


class CaptureHandle(Protocol):
    @property
    def is_open(self) -> bool: ...

    def frequency_data(self) -> Sequence[int]: ...

    def close(self) -> None: ...


class CaptureSource(Protocol):
    def acquire(self) -> CaptureHandle: ...


class CredentialStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...


class Clipboard(Protocol):
    def write(self, text: str) -> bool: ...


class TransformGateway(Protocol):
    async def transform(
        self,
        kind: TransformKind,
        source_text: str,
        style: Optional[SummaryStyle] = None,
    ) -> str: ...


RecognitionStreamFactory = Callable[[], RecognitionStream]
