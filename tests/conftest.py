from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

import pytest

from livesub.backend.base import BackendClient, StreamConfig, StreamingHandle
from livesub.contracts import AudioChunk, StreamClosed, StreamEvent, StreamOpened
from livesub.errors import TranslationError


class FakeStreamHandle(StreamingHandle):
    def __init__(self, model: str, *, auto_open: bool = True) -> None:
        self.model = model
        self.sent: list[AudioChunk] = []
        self.audio_ended = False
        self.closed = False
        self._queue: "asyncio.Queue[StreamEvent]" = asyncio.Queue()
        if auto_open:
            self.push(StreamOpened(model=model))

    def push(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event)

    def send(self, chunk: AudioChunk) -> None:
        self.sent.append(chunk)

    def end_audio(self) -> None:
        self.audio_ended = True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.push(StreamClosed(code=1000, reason="client closed"))

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, StreamClosed):
                return


class FakeBackendClient(BackendClient):
    """
    connect_outcomes: consumed per connect; an exception is raised, anything else opens a handle.
    translations: source text -> translated text (missing keys echo "T:<text>").
    gates: source text -> asyncio.Event the translation waits for.
    """

    def __init__(self) -> None:
        self.auto_open = True
        self.connect_outcomes: list[Optional[Exception]] = []
        self.connect_gate: Optional[asyncio.Event] = None
        self.connect_calls: list[tuple[str, StreamConfig]] = []
        self.handles: list[FakeStreamHandle] = []
        self.translations: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.translate_calls: list[str] = []
        self.translate_error: Optional[str] = None

    @property
    def name(self) -> str:
        return "fake"

    async def translate(self, text: str) -> str:
        self.translate_calls.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.translate_error is not None:
            raise TranslationError(self.translate_error)
        return self.translations.get(text, f"T:{text}")

    async def connect_stream(self, model: str, config: StreamConfig) -> FakeStreamHandle:
        self.connect_calls.append((model, config))
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        outcome = self.connect_outcomes.pop(0) if self.connect_outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        handle = FakeStreamHandle(model, auto_open=self.auto_open)
        self.handles.append(handle)
        return handle

    @property
    def models(self) -> list[str]:
        return [model for model, _ in self.connect_calls]


@pytest.fixture
def fake_client() -> FakeBackendClient:
    return FakeBackendClient()
