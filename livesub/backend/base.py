from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator

from livesub.contracts import AudioChunk, StreamEvent

LANGUAGE_NAMES = {
    "en": "English",
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "uk": "Ukrainian",
    "ar": "Arabic",
    "he": "Hebrew",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
    "el": "Greek",
}


def language_name(code: str) -> str:
    key = (code or "").lower().split("-")[0]
    return LANGUAGE_NAMES.get(key, code)


def is_native_audio_model(model: str) -> bool:
    return "native-audio" in (model or "").lower()


def build_system_prompt(source_lang: str, target_lang: str) -> str:
    target = language_name(target_lang)
    return " ".join(
        [
            "You are a live subtitle translator.",
            f"The speaker language is {language_name(source_lang)}.",
            f"Translate speech to natural {target} subtitles.",
            f"Return only {target} translation text.",
            "Do not add labels, explanations, markdown, or extra commentary.",
        ]
    )


def build_translation_prompt(text: str, source_lang: str, target_lang: str) -> str:
    target = language_name(target_lang)
    return (
        f"Translate this {language_name(source_lang)} speech transcript into natural {target} "
        f"subtitle text. Return {target} text only, no labels.\n\n{text}"
    )


@dataclass(frozen=True)
class StreamConfig:
    system_instruction: str
    native_audio: bool = False


def build_stream_config(model: str, source_lang: str, target_lang: str) -> StreamConfig:
    return StreamConfig(
        system_instruction=build_system_prompt(source_lang, target_lang),
        native_audio=is_native_audio_model(model),
    )


class StreamingHandle(ABC):
    """
    One open streaming connection.
    `send` and `end_audio` only enqueue; delivery order is the call order.
    `events` yields StreamOpened first and StreamClosed last.
    """

    @abstractmethod
    def send(self, chunk: AudioChunk) -> None: ...

    @abstractmethod
    def end_audio(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    def events(self) -> AsyncIterator[StreamEvent]: ...


class BackendClient(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def translate(self, text: str) -> str:
        """Translated text, or "" when the backend returned nothing usable."""

    @abstractmethod
    async def connect_stream(self, model: str, config: StreamConfig) -> StreamingHandle: ...
