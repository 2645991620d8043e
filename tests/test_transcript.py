from __future__ import annotations

from transcript import TranscriptAccumulator, punctuate


def test_final_segment_gets_terminal_mark() -> None:
    acc = TranscriptAccumulator()
    acc.apply_result(["こんにちは"], "")
    assert acc.finalized == "こんにちは。"


def test_already_terminated_segment_is_unchanged() -> None:
    acc = TranscriptAccumulator()
    acc.apply_result(["こんにちは"], "")
    acc.apply_result(["テストです。"], "")
    assert acc.finalized == "こんにちは。テストです。"


def test_each_terminator_is_respected() -> None:
    for mark in "、。！？":
        assert punctuate(f"はい{mark}") == f"はい{mark}"


def test_segments_are_trimmed_and_blank_ones_dropped() -> None:
    acc = TranscriptAccumulator()
    acc.apply_result(["  今日は晴れ  ", "   ", "", "明日は雨？"], "")
    assert acc.finalized == "今日は晴れ。明日は雨？"


def test_interim_is_replaced_wholesale() -> None:
    acc = TranscriptAccumulator()
    acc.apply_result([], "きょう")
    acc.apply_result([], "きょうは")
    assert acc.interim == "きょうは"
    acc.apply_result(["今日は"], "")
    assert acc.interim == ""
    assert acc.text(include_interim=True) == "今日は。"


def test_finalized_never_shrinks() -> None:
    acc = TranscriptAccumulator()
    batches = [["一"], [], ["二。", " "], ["三！"], [""], ["四"]]
    previous = ""
    for batch in batches:
        acc.apply_result(batch, "途中")
        assert acc.finalized.startswith(previous)
        assert len(acc.finalized) >= len(previous)
        previous = acc.finalized
    assert acc.finalized == "一。二。三！四。"


def test_replace_and_clear() -> None:
    acc = TranscriptAccumulator()
    acc.apply_result(["元の文"], "途中")
    acc.replace("編集済み")
    assert acc.finalized == "編集済み"
    assert acc.interim == "途中"
    acc.clear()
    assert acc.text(include_interim=True) == ""
