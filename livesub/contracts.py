from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

DEFAULT_AUDIO_MIME = "audio/pcm;rate=16000"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_mime(mime_type: object) -> str:
    if isinstance(mime_type, str) and mime_type.startswith("audio/"):
        return mime_type
    return DEFAULT_AUDIO_MIME


@dataclass(frozen=True)
class AudioChunk:
    """
    Opaque audio bytes handed over by a capture source.
    data: encoded audio (PCM16 for the microphone source, anything the backend accepts otherwise).
    """
    data: bytes
    mime_type: str = DEFAULT_AUDIO_MIME


@dataclass
class CaptionState:
    source_text: str = ""
    target_text: str = ""
    source_final: bool = False
    target_final: bool = False

    @property
    def both_final(self) -> bool:
        return self.source_final and self.target_final


@dataclass(frozen=True)
class TranslationJob:
    sequence: int
    source_text_tail: str
    is_final: bool
    generation: int = 0


@dataclass(frozen=True)
class ServerUpdate:
    """One inbound message from the streaming backend, reduced to what captions need."""
    source_text: Optional[str] = None
    source_finished: bool = False
    target_fragments: tuple[str, ...] = ()
    target_transcript: Optional[str] = None
    turn_complete: bool = False
    generation_complete: bool = False
    interrupted: bool = False


# ----- streaming handle channel -----

@dataclass(frozen=True)
class StreamOpened:
    model: str = ""


@dataclass(frozen=True)
class StreamMessage:
    update: ServerUpdate


@dataclass(frozen=True)
class StreamError:
    message: str


@dataclass(frozen=True)
class StreamClosed:
    code: Optional[int] = None
    reason: str = ""


StreamEvent = Union[StreamOpened, StreamMessage, StreamError, StreamClosed]


# ----- events emitted to the UI -----

@dataclass(frozen=True)
class StatusEvent:
    status: str
    message: str = ""
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class CaptionEvent:
    source_text: str
    target_text: str
    is_final: bool
    source: str  # "input" | "model"
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class DebugEvent:
    stage: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)


LiveEvent = Union[StatusEvent, CaptionEvent, ErrorEvent, DebugEvent]
