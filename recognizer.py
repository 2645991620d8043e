"""Speech recognition stream backed by DashScope real-time ASR.

Microphone PCM frames from :class:`SoundDeviceRecorder` are pumped into a
``dashscope.audio.asr.Recognition`` session from a worker thread.  SDK
callbacks arrive on DashScope's own thread and are translated into
:class:`StreamEvent` values handed to ``on_event``, which must therefore be
thread-safe.  Every stream emits at most one ``END`` event.
"""

from __future__ import annotations

import logging
import os
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional

from errors import UnsupportedEnvironmentError
from interfaces import StreamEventSink
from models import AudioFrame, RecognitionSegment, StreamEvent, StreamEventKind
import recorder as recorder_module
from recorder import SoundDeviceRecorder

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore
    RecognitionResult = None  # type: ignore

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "paraformer-realtime-v2"
DEFAULT_LANGUAGE = "ja"


def _is_sentence_end(sentence: dict) -> bool:
    if RecognitionResult is not None:
        return bool(RecognitionResult.is_sentence_end(sentence))
    return bool(sentence.get("sentence_end") or sentence.get("end_time"))


def _classify_error(message: str) -> str:
    low = message.lower()
    if "401" in low or "403" in low or "auth" in low or "api key" in low or "apikey" in low:
        return "service-not-allowed"
    return "network"


class _CallbackBridge(RecognitionCallback):  # type: ignore[misc]
    def __init__(self, stream: "DashscopeRecognitionStream") -> None:
        self._stream = stream

    def on_open(self) -> None:
        logger.debug("DashScope recognition opened")

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict) or "text" not in sentence:
            return
        segment = RecognitionSegment(
            transcript=str(sentence.get("text", "")),
            is_final=_is_sentence_end(sentence),
        )
        self._stream.emit(StreamEvent.result(segment))

    def on_error(self, result: Any) -> None:
        message = str(getattr(result, "message", result))
        self._stream.emit(StreamEvent.error(_classify_error(message), message))
        self._stream.emit(StreamEvent.end())

    def on_complete(self) -> None:
        self._stream.emit(StreamEvent.end())

    def on_close(self) -> None:
        self._stream.emit(StreamEvent.end())


class DashscopeRecognitionStream:
    def __init__(
        self,
        api_key: str = "",
        recorder: Optional[SoundDeviceRecorder] = None,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        queue_maxsize: int = 50,
    ) -> None:
        self._api_key = api_key
        self._recorder = recorder or SoundDeviceRecorder()
        self._model = model
        self._language = language
        self._queue_maxsize = queue_maxsize
        self._recognition: Any = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._on_event: Optional[StreamEventSink] = None
        self._ended = False
        self._aborted = False

    def start(self, on_event: StreamEventSink) -> None:
        if self._thread and self._thread.is_alive():
            return
        if Recognition is None:
            raise UnsupportedEnvironmentError("dashscope is not installed")
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise PermissionError("No recognizer API key configured")

        self._on_event = on_event
        self._ended = False
        self._aborted = False
        self._stop_event.clear()

        dashscope.api_key = api_key
        self._recognition = Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._recorder.sample_rate,
            callback=_CallbackBridge(self),
            language_hints=[self._language],
        )
        self._recognition.start()

        audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
        try:
            self._recorder.start(audio_queue)
        except Exception:
            self._aborted = True
            self._stop_recognition()
            raise
        self._thread = threading.Thread(target=self._pump, args=(audio_queue,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._safe_stop_recorder()
        self._join()

    def abort(self) -> None:
        with self._lock:
            self._aborted = True
        self.stop()

    def emit(self, event: StreamEvent) -> None:
        with self._lock:
            if self._aborted or self._on_event is None:
                return
            if event.kind == StreamEventKind.END.value:
                if self._ended:
                    return
                self._ended = True
            elif self._ended:
                return
            on_event = self._on_event
        on_event(event)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _pump(self, audio_queue: Queue[AudioFrame | None]) -> None:
        """Forward recorder frames until the sentinel, then close the session."""
        while not self._stop_event.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:
                break
            try:
                self._recognition.send_audio_frame(frame.pcm16_bytes)
            except Exception as exc:
                self.emit(StreamEvent.error(_classify_error(str(exc)), str(exc)))
                break
        self._safe_stop_recorder()
        self._stop_recognition()
        self.emit(StreamEvent.end())

    def _stop_recognition(self) -> None:
        recognition, self._recognition = self._recognition, None
        if recognition is None:
            return
        try:
            recognition.stop()
        except Exception as exc:
            logger.debug("DashScope recognition stop failed: %s", exc)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception as exc:
            logger.debug("Recorder stop failed: %s", exc)

    def _join(self) -> None:
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)


def make_stream_factory(
    key_provider: Callable[[], str],
    model: str = DEFAULT_MODEL,
    language: str = DEFAULT_LANGUAGE,
    device: Optional[int] = None,
) -> Callable[[], DashscopeRecognitionStream]:
    """Build a factory opening a fresh stream, reading the key on every call."""

    def factory() -> DashscopeRecognitionStream:
        if Recognition is None:
            raise UnsupportedEnvironmentError("dashscope is not installed")
        if recorder_module.sd is None:
            raise UnsupportedEnvironmentError("sounddevice is not installed")
        return DashscopeRecognitionStream(
            api_key=key_provider(),
            recorder=SoundDeviceRecorder(device=device),
            model=model,
            language=language,
        )

    return factory
