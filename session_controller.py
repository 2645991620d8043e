"""State-machine based orchestration of the live recognition session."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from errors import (
    ERROR_MESSAGES,
    NETWORK_TRANSIENT,
    PERMISSION_DENIED,
    RECONNECT_EXHAUSTED,
    UNSUPPORTED_ENVIRONMENT,
    UnsupportedEnvironmentError,
)
from interfaces import CaptureHandle, CaptureSource, RecognitionStream, RecognitionStreamFactory
from level_meter import AudioLevelMeter
from models import Session, SessionStatus, StreamEvent, StreamEventKind
from transcript import TranscriptAccumulator

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionStatus, SessionStatus], None]
TranscriptCallback = Callable[[str, str], None]
ErrorCallback = Callable[[str, str], None]
ReconnectCallback = Callable[[int, int], None]

FATAL_STREAM_ERRORS = frozenset({"not-allowed", "service-not-allowed", "audio-capture"})
BENIGN_STREAM_ERRORS = frozenset({"no-speech", "aborted"})

ACTIVE_STATES = (SessionStatus.LISTENING, SessionStatus.RECONNECTING)


def backoff_delay_ms(retry_count: int, base_ms: int = 1000, max_ms: int = 8000) -> int:
    return min(base_ms * 2 ** retry_count, max_ms)


class SessionController:
    def __init__(
        self,
        stream_factory: RecognitionStreamFactory,
        transcript: Optional[TranscriptAccumulator] = None,
        level_meter: Optional[AudioLevelMeter] = None,
        capture_source: Optional[CaptureSource] = None,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 8000,
        max_retries: int = 5,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_reconnect_scheduled: Optional[ReconnectCallback] = None,
    ) -> None:
        self._stream_factory = stream_factory
        self._transcript = transcript or TranscriptAccumulator()
        self._meter = level_meter or AudioLevelMeter()
        self._capture_source = capture_source
        self._base_delay_ms = base_delay_ms
        self._max_delay_ms = max_delay_ms
        self._max_retries = max_retries
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._on_reconnect_scheduled = on_reconnect_scheduled

        self._session = Session()
        self._generation = 0
        self._stream: Optional[RecognitionStream] = None
        self._stream_id = 0
        self._reconnect_timer: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._channel: Optional[asyncio.Queue[Tuple[int, StreamEvent]]] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionStatus:
        return self._session.status

    @property
    def transcript(self) -> TranscriptAccumulator:
        return self._transcript

    @property
    def level_meter(self) -> AudioLevelMeter:
        return self._meter

    @property
    def is_listening(self) -> bool:
        return self._session.status == SessionStatus.LISTENING

    def start(self) -> None:
        if self._session.status in ACTIVE_STATES:
            return
        self._ensure_consumer()
        self._generation += 1
        self._cancel_reconnect()
        failure: Optional[Exception] = None
        stream: Optional[RecognitionStream] = None
        try:
            stream = self._stream_factory()
        except UnsupportedEnvironmentError as exc:
            self._session.last_error = UNSUPPORTED_ENVIRONMENT
            logger.error("Speech recognition unavailable: %s", exc)
            self._emit_error(UNSUPPORTED_ENVIRONMENT, str(exc) or ERROR_MESSAGES[UNSUPPORTED_ENVIRONMENT])
            return
        except Exception as exc:
            failure = exc

        self._session.retry_count = 0
        self._session.last_error = None
        self._transcript.clear_interim()
        self._transition(SessionStatus.LISTENING)
        if failure is not None:
            self._retry_after_failure(failure)
        else:
            self._open_stream(stream)
        self._attach_meter()

    def stop(self) -> None:
        self._generation += 1
        self._cancel_reconnect()
        self._release_resources()
        self._session.retry_count = 0
        if self._session.status in ACTIVE_STATES:
            self._transition(SessionStatus.STOPPED)
        self._notify_transcript()

    async def flush_events(self) -> None:
        """Wait until every event already delivered by a stream is handled."""
        await asyncio.sleep(0)
        if self._channel is not None:
            await self._channel.join()

    async def aclose(self) -> None:
        self.stop()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Stream lifecycle
    # ------------------------------------------------------------------

    def _ensure_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._loop = asyncio.get_running_loop()
        self._channel = asyncio.Queue()
        self._consumer = self._loop.create_task(self._consume(self._channel))

    def _open_stream(self, stream: Optional[RecognitionStream] = None) -> None:
        self._close_stream(abort=True)
        if stream is None:
            try:
                stream = self._stream_factory()
            except UnsupportedEnvironmentError as exc:
                self._fail(UNSUPPORTED_ENVIRONMENT, str(exc))
                return
            except Exception as exc:
                self._retry_after_failure(exc)
                return
        self._stream_id += 1
        self._stream = stream
        try:
            stream.start(self._make_sink(self._stream_id))
        except PermissionError as exc:
            self._fail(PERMISSION_DENIED, str(exc))
        except Exception as exc:
            self._retry_after_failure(exc)

    def _retry_after_failure(self, exc: Exception) -> None:
        logger.warning("Recognition stream failed to start: %s", exc)
        self._session.last_error = NETWORK_TRANSIENT
        self._emit_error(NETWORK_TRANSIENT, str(exc) or ERROR_MESSAGES[NETWORK_TRANSIENT])
        self._handle_stream_end()

    def _make_sink(self, stream_id: int) -> Callable[[StreamEvent], None]:
        loop = self._loop
        channel = self._channel
        if loop is None or channel is None:
            raise RuntimeError("event channel is not running")

        def sink(event: StreamEvent) -> None:
            # Streams may deliver from their own threads.
            try:
                loop.call_soon_threadsafe(channel.put_nowait, (stream_id, event))
            except RuntimeError:
                logger.debug("Dropping %s event, loop is closed", event.kind)

        return sink

    def _close_stream(self, abort: bool = False) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            if abort:
                stream.abort()
            else:
                stream.stop()
        except Exception as exc:
            logger.debug("Closing recognition stream failed: %s", exc)

    def _acquire_capture(self) -> Optional[CaptureHandle]:
        if self._capture_source is None:
            return None
        try:
            return self._capture_source.acquire()
        except Exception as exc:
            logger.warning("Audio capture unavailable, level meter disabled: %s", exc)
            return None

    def _attach_meter(self) -> None:
        # Only one capture handle, sampled only while listening.
        if self.is_listening:
            self._meter.attach(self._acquire_capture())

    def _release_resources(self, abort: bool = False) -> None:
        self._close_stream(abort=abort)
        self._meter.detach()
        self._transcript.clear_interim()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def _consume(self, channel: asyncio.Queue[Tuple[int, StreamEvent]]) -> None:
        while True:
            stream_id, event = await channel.get()
            try:
                if stream_id == self._stream_id and self._stream is not None:
                    self._handle_event(event)
                else:
                    logger.debug("Ignoring %s event from stale stream %d", event.kind, stream_id)
            except Exception:
                logger.exception("Failed to handle %s event", event.kind)
            finally:
                channel.task_done()

    def _handle_event(self, event: StreamEvent) -> None:
        kind = event.kind
        if kind == StreamEventKind.RESULT.value:
            self._handle_result(event)
        elif kind == StreamEventKind.ERROR.value:
            self._handle_error(event.code, event.message)
        elif kind == StreamEventKind.END.value:
            self._transcript.clear_interim()
            self._notify_transcript()
            self._handle_stream_end()

    def _handle_result(self, event: StreamEvent) -> None:
        if not self.is_listening:
            return
        if self._session.retry_count or self._session.last_error:
            self._session.retry_count = 0
            self._session.last_error = None
        finals: List[str] = []
        interim = ""
        for segment in event.results[event.result_index:]:
            if segment.is_final:
                finals.append(segment.transcript)
            else:
                interim += segment.transcript
        self._transcript.apply_result(finals, interim)
        self._notify_transcript()

    def _handle_error(self, code: str, message: str) -> None:
        if code in FATAL_STREAM_ERRORS:
            self._fail(PERMISSION_DENIED, message)
            return
        if code in BENIGN_STREAM_ERRORS:
            logger.debug("Recognition stream reported %s", code)
            return
        logger.warning("Recognition stream error %s: %s", code, message)
        self._session.last_error = NETWORK_TRANSIENT
        self._emit_error(NETWORK_TRANSIENT, message or ERROR_MESSAGES[NETWORK_TRANSIENT])

    def _handle_stream_end(self) -> None:
        if not self.is_listening:
            return
        if self._session.retry_count >= self._max_retries:
            self._fail(RECONNECT_EXHAUSTED, ERROR_MESSAGES[RECONNECT_EXHAUSTED])
            return
        delay_ms = backoff_delay_ms(self._session.retry_count, self._base_delay_ms, self._max_delay_ms)
        self._session.retry_count += 1
        self._close_stream(abort=True)
        self._meter.detach()
        self._transition(SessionStatus.RECONNECTING)
        logger.info("Reconnecting in %d ms (attempt %d)", delay_ms, self._session.retry_count)
        self._reconnect_timer = asyncio.get_running_loop().call_later(
            delay_ms / 1000.0, self._on_reconnect_timer, self._generation
        )
        if self._on_reconnect_scheduled:
            self._on_reconnect_scheduled(self._session.retry_count, delay_ms)

    def _on_reconnect_timer(self, generation: int) -> None:
        self._reconnect_timer = None
        if generation != self._generation or self._session.status != SessionStatus.RECONNECTING:
            return
        self._transition(SessionStatus.LISTENING)
        self._open_stream()
        self._attach_meter()

    def _cancel_reconnect(self) -> None:
        timer, self._reconnect_timer = self._reconnect_timer, None
        if timer is not None:
            timer.cancel()

    def _fail(self, code: str, message: str) -> None:
        self._generation += 1
        self._cancel_reconnect()
        self._release_resources(abort=True)
        self._session.retry_count = 0
        self._session.last_error = code
        self._transition(SessionStatus.FAILED)
        self._notify_transcript()
        self._emit_error(code, message or ERROR_MESSAGES.get(code, code))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _notify_transcript(self) -> None:
        if self._on_transcript:
            self._on_transcript(self._transcript.finalized, self._transcript.interim)

    def _transition(self, to_state: SessionStatus) -> None:
        from_state = self._session.status
        if from_state == to_state:
            return
        self._session.status = to_state
        logger.info("Session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
