from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CaptionSettings:
    target_lang: str = "ko"
    output_transcript_delay_sec: float = 0.7
    # Turn completion only finalizes a target of at least min(ratio * len(source), cap) chars.
    turn_final_ratio: float = 0.3
    turn_final_cap: int = 6
    turn_final_min_chars: int = 1


@dataclass(frozen=True)
class TranslationSettings:
    partial_debounce_sec: float = 0.12
    final_debounce_sec: float = 0.09
    partial_min_chars: int = 5
    max_translation_chars: int = 180


@dataclass(frozen=True)
class DebugSampling:
    audio_every: int = 5
    server_every: int = 5
    caption_every: int = 3


@dataclass(frozen=True)
class SessionSettings:
    primary_model: str
    fallback_model: str
    auth_mode: str = "API Key"
    source_lang: str = "en"
    target_lang: str = "ko"
    max_queued_audio: int = 400
    captions: CaptionSettings = CaptionSettings()
    translation: TranslationSettings = TranslationSettings()
    sampling: DebugSampling = DebugSampling()
