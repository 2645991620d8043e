from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import pytest

from errors import UnsupportedEnvironmentError
from models import RecognitionSegment, StreamEvent


class FakeStream:
    def __init__(self, start_error: Optional[Exception] = None) -> None:
        self.start_error = start_error
        self.on_event = None
        self.started = False
        self.stopped = False
        self.aborted = False

    def start(self, on_event) -> None:  # noqa: ANN001
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        self.on_event = on_event

    def stop(self) -> None:
        self.stopped = True

    def abort(self) -> None:
        self.aborted = True

    def emit(self, event: StreamEvent) -> None:
        assert self.on_event is not None
        self.on_event(event)

    def final(self, text: str) -> None:
        self.emit(StreamEvent.result(RecognitionSegment(text, is_final=True)))

    def interim(self, text: str) -> None:
        self.emit(StreamEvent.result(RecognitionSegment(text, is_final=False)))

    def error(self, code: str, message: str = "") -> None:
        self.emit(StreamEvent.error(code, message))

    def end(self) -> None:
        self.emit(StreamEvent.end())


class FakeStreamFactory:
    def __init__(self) -> None:
        self.streams: List[FakeStream] = []
        self.unsupported = False
        self.next_start_error: Optional[Exception] = None
        self.factory_errors: List[Exception] = []

    def __call__(self) -> FakeStream:
        if self.unsupported:
            raise UnsupportedEnvironmentError("speech recognition missing")
        if self.factory_errors:
            raise self.factory_errors.pop(0)
        stream = FakeStream(start_error=self.next_start_error)
        self.next_start_error = None
        self.streams.append(stream)
        return stream

    @property
    def latest(self) -> FakeStream:
        return self.streams[-1]


class FakeCaptureHandle:
    def __init__(self, bins: Optional[List[int]] = None) -> None:
        self.bins = bins if bins is not None else [40] * 128
        self.is_open = True
        self.closed = False
        self.samples = 0
        self.error: Optional[Exception] = None

    def frequency_data(self) -> List[int]:
        if self.error is not None:
            raise self.error
        self.samples += 1
        return self.bins

    def close(self) -> None:
        self.is_open = False
        self.closed = True


class FakeCaptureSource:
    def __init__(self, fail: Optional[Exception] = None) -> None:
        self.fail = fail
        self.handles: List[FakeCaptureHandle] = []

    def acquire(self) -> FakeCaptureHandle:
        if self.fail is not None:
            raise self.fail
        handle = FakeCaptureHandle()
        self.handles.append(handle)
        return handle


class FakeCredentials:
    def __init__(self, key: str = "") -> None:
        self.key = key

    def get_api_key(self) -> str:
        return self.key

    def set_api_key(self, key: str) -> None:
        self.key = key


class FakeClipboard:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.writes: List[str] = []

    def write(self, text: str) -> bool:
        self.writes.append(text)
        return self.success


@pytest.fixture
def streams() -> FakeStreamFactory:
    return FakeStreamFactory()


@pytest.fixture
def capture() -> FakeCaptureSource:
    return FakeCaptureSource()


@pytest.fixture
def failing_capture() -> FakeCaptureSource:
    return FakeCaptureSource(fail=RuntimeError("no microphone"))


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def wait_until() -> Callable:
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
