"""Microphone adapters: PCM recorder for recognition and spectrum capture for the level meter."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any, Optional

from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

FFT_SIZE = 256
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def byte_frequency_data(samples: Any) -> Any:
    """Byte-scaled magnitude spectrum of ``FFT_SIZE`` float samples.

    Produces ``FFT_SIZE // 2`` bins in 0..255, mapping the decibel range
    ``MIN_DECIBELS``..``MAX_DECIBELS`` linearly like a browser analyser node.
    """
    if np is None:
        raise RuntimeError("numpy is not installed")
    block = np.zeros(FFT_SIZE, dtype=np.float64)
    data = np.asarray(samples, dtype=np.float64)[-FFT_SIZE:]
    block[FFT_SIZE - len(data):] = data
    spectrum = np.abs(np.fft.rfft(block * np.blackman(FFT_SIZE)))[: FFT_SIZE // 2] / FFT_SIZE
    decibels = 20.0 * np.log10(np.maximum(spectrum, 1e-12))
    scaled = (decibels - MIN_DECIBELS) * 255.0 / (MAX_DECIBELS - MIN_DECIBELS)
    return np.clip(scaled, 0, 255).astype(np.uint8)


class SoundDeviceRecorder:
    """Streams PCM16 frames from the microphone into a queue."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._audio_queue = audio_queue
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._stream.start()
            except sd.PortAudioError as exc:
                self._stream = None
                raise PermissionError(f"microphone unavailable: {exc}") from exc
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if self._running:
                self._running = False
                stream, self._stream = self._stream, None
                if stream is not None:
                    stream.stop()
                    stream.close()
            self._emit_sentinel_if_needed()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None:
            return
        if np is None:
            return
        if status:
            logger.debug("Recorder status: %s", status)
        frame = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass


class SpectrumCapture:
    """An open microphone stream exposing its latest frequency bins."""

    def __init__(self) -> None:
        self._stream: Any = None
        self._lock = threading.Lock()
        self._samples = np.zeros(FFT_SIZE, dtype=np.float32)
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def bind(self, stream: Any) -> None:
        self._stream = stream

    def on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._open:
            return
        mono = np.asarray(indata, dtype=np.float32).reshape(frames, -1)[:, 0]
        with self._lock:
            self._samples = np.concatenate((self._samples, mono))[-FFT_SIZE:]

    def frequency_data(self) -> Any:
        if not self._open:
            raise RuntimeError("capture handle is closed")
        with self._lock:
            samples = self._samples.copy()
        return byte_frequency_data(samples)

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()


class SoundDeviceCaptureSource:
    """Opens microphone streams for the level meter."""

    def __init__(self, sample_rate: int = 16000, device: Optional[int] = None) -> None:
        self.sample_rate = sample_rate
        self.device = device

    def acquire(self) -> SpectrumCapture:
        if sd is None or np is None:
            raise RuntimeError("sounddevice/numpy is not installed")
        handle = SpectrumCapture()
        stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=FFT_SIZE,
            device=self.device,
            callback=handle.on_audio,
        )
        handle.bind(stream)
        try:
            stream.start()
        except Exception:
            handle.close()
            raise
        return handle
