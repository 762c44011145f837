from __future__ import annotations

import re

_WS = re.compile(r"\s+")
_SENTENCE_BREAKS = (". ", "? ", "! ", "\n")

_TARGET_SCRIPT = {
    "ko": re.compile(r"[가-힣]"),
    "ja": re.compile(r"[぀-ヿ一-鿿]"),
    "zh": re.compile(r"[一-鿿]"),
    "ru": re.compile(r"[Ѐ-ӿ]"),
    "uk": re.compile(r"[Ѐ-ӿ]"),
    "ar": re.compile(r"[؀-ۿ]"),
    "he": re.compile(r"[֐-׿]"),
    "th": re.compile(r"[฀-๿]"),
    "hi": re.compile(r"[ऀ-ॿ]"),
    "el": re.compile(r"[Ͱ-Ͽ]"),
}
_ANY_LETTER = re.compile(r"[^\W\d_]")


def collapse_ws(text: str) -> str:
    return _WS.sub(" ", text or "").strip()


def preview(text: str, limit: int = 80) -> str:
    return collapse_ws(text)[:limit]


def tail_for_translation(text: str, max_chars: int) -> str:
    """
    Last part of `text` that fits the translation budget.
    Prefers to start right after a sentence break so the request is a clean clause.
    """
    normalized = (text or "").strip()
    if not normalized:
        return ""
    if len(normalized) <= max_chars:
        return normalized

    tail = normalized[-max_chars * 2:]
    split_at = max(tail.rfind(sep) for sep in _SENTENCE_BREAKS)
    if split_at >= 0 and len(tail) - split_at <= max_chars + 32:
        return tail[split_at + 1:].strip()
    return normalized[-max_chars:].strip()


def has_target_script(text: str, target_lang: str) -> bool:
    pattern = _TARGET_SCRIPT.get((target_lang or "").lower().split("-")[0], _ANY_LETTER)
    return bool(pattern.search(text or ""))


def merge_target_transcript(current: str, fragment: str, target_lang: str) -> str:
    chunk = collapse_ws(fragment)
    if not chunk:
        return current
    # Synthesized-voice transcripts sometimes echo the source language.
    if not has_target_script(chunk, target_lang):
        return current
    if not current:
        return chunk
    if chunk.startswith(current):
        return chunk
    if current.endswith(chunk):
        return current
    return collapse_ws(f"{current} {chunk}")


def is_plausible_final(
    target_text: str,
    source_text: str,
    *,
    ratio: float,
    cap: int,
    min_chars: int = 1,
) -> bool:
    target = (target_text or "").strip()
    if len(target) < max(1, int(min_chars)):
        return False
    source_len = len((source_text or "").strip())
    if source_len == 0:
        return True
    return len(target) >= min(source_len * float(ratio), float(cap))
