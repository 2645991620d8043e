"""Merges incremental recognition output into a durable transcript."""

from __future__ import annotations

from typing import Iterable

SENTENCE_TERMINATORS = "、。！？"
DEFAULT_TERMINATOR = "。"


def punctuate(segment: str) -> str:
    """Trim a finalized segment and close it with a sentence mark if needed."""
    text = segment.strip()
    if text and not text.endswith(tuple(SENTENCE_TERMINATORS)):
        text += DEFAULT_TERMINATOR
    return text


class TranscriptAccumulator:
    def __init__(self) -> None:
        self._finalized = ""
        self._interim = ""

    @property
    def finalized(self) -> str:
        return self._finalized

    @property
    def interim(self) -> str:
        return self._interim

    def apply_result(self, final_segments: Iterable[str], interim_segment: str) -> None:
        # Append-only: committed text is never rewritten here.
        for segment in final_segments:
            self._finalized += punctuate(segment)
        self._interim = interim_segment or ""

    def clear_interim(self) -> None:
        self._interim = ""

    def replace(self, text: str) -> None:
        """Overwrite the finalized text with a user edit."""
        self._finalized = text

    def clear(self) -> None:
        self._finalized = ""
        self._interim = ""

    def text(self, include_interim: bool = False) -> str:
        if include_interim:
            return self._finalized + self._interim
        return self._finalized
