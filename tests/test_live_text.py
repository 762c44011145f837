from __future__ import annotations

from livesub.live.text import (
    collapse_ws,
    has_target_script,
    is_plausible_final,
    merge_target_transcript,
    preview,
    tail_for_translation,
)


def test_tail_for_translation_short_text_untouched() -> None:
    assert tail_for_translation("  Hello there  ", 180) == "Hello there"
    assert tail_for_translation("   ", 180) == ""


def test_tail_for_translation_prefers_sentence_break() -> None:
    first = "This is an opening sentence that goes on for a while. "
    second = "Then the speaker keeps talking about something else entirely"
    text = first * 3 + second
    tail = tail_for_translation(text, 80)
    assert tail == second


def test_tail_for_translation_hard_cut_without_break() -> None:
    text = "word " * 100
    tail = tail_for_translation(text, 80)
    assert len(tail) <= 80
    assert text.strip().endswith(tail)


def test_has_target_script_by_language() -> None:
    assert has_target_script("안녕하세요", "ko")
    assert not has_target_script("hello", "ko")
    assert has_target_script("こんにちは", "ja")
    assert has_target_script("hola", "es")
    assert not has_target_script("1234 !!", "es")


def test_merge_target_transcript_cases() -> None:
    assert merge_target_transcript("", "안녕", "ko") == "안녕"
    assert merge_target_transcript("안녕", "안녕하세요", "ko") == "안녕하세요"
    assert merge_target_transcript("안녕하세요", "하세요", "ko") == "안녕하세요"
    assert merge_target_transcript("안녕하세요", "여러분", "ko") == "안녕하세요 여러분"
    assert merge_target_transcript("안녕", "hello", "ko") == "안녕"
    assert merge_target_transcript("안녕", "   ", "ko") == "안녕"


def test_plausible_final_with_empty_source() -> None:
    assert is_plausible_final("네", "", ratio=0.3, cap=6)
    assert not is_plausible_final("", "", ratio=0.3, cap=6)


def test_plausible_final_rejects_too_short_target() -> None:
    source = "x" * 100
    assert not is_plausible_final("ab", source, ratio=0.3, cap=6)
    assert is_plausible_final("abcdef", source, ratio=0.3, cap=6)
    assert is_plausible_final("ab", "hello", ratio=0.3, cap=6)


def test_plausible_final_min_chars() -> None:
    assert not is_plausible_final("a", "", ratio=0.3, cap=6, min_chars=2)


def test_whitespace_helpers() -> None:
    assert collapse_ws(" a \n b\t c ") == "a b c"
    assert preview("x" * 100, 10) == "x" * 10
