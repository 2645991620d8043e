"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SessionStatus(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    RECONNECTING = "RECONNECTING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"


class StreamEventKind(str, Enum):
    RESULT = "result"
    ERROR = "error"
    END = "end"


class View(str, Enum):
    RAW = "raw"
    FORMATTED = "formatted"
    SUMMARY = "summary"


class SlotOrigin(str, Enum):
    AI = "ai"
    USER_EDITED = "user-edited"


class TransformKind(str, Enum):
    FORMAT = "format"
    SUMMARIZE = "summarize"


class SummaryStyle(str, Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    MINUTES = "minutes"


@dataclass
class Session:
    status: SessionStatus = SessionStatus.IDLE
    retry_count: int = 0
    last_error: Optional[str] = None


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionSegment:
    transcript: str
    is_final: bool = False


@dataclass
class StreamEvent:
    kind: str
    result_index: int = 0
    results: List[RecognitionSegment] = field(default_factory=list)
    code: str = ""
    message: str = ""

    @classmethod
    def result(cls, *segments: RecognitionSegment, result_index: int = 0) -> "StreamEvent":
        return cls(kind=StreamEventKind.RESULT.value, result_index=result_index, results=list(segments))

    @classmethod
    def error(cls, code: str, message: str = "") -> "StreamEvent":
        return cls(kind=StreamEventKind.ERROR.value, code=code, message=message)

    @classmethod
    def end(cls) -> "StreamEvent":
        return cls(kind=StreamEventKind.END.value)


@dataclass
class Slot:
    content: str = ""
    origin: SlotOrigin = SlotOrigin.AI
    pending: bool = False
    error: Optional[str] = None
    revision: int = 0


@dataclass(frozen=True)
class AIRequest:
    source_text: str
    kind: TransformKind
    style: Optional[SummaryStyle] = None
