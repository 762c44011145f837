from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Optional, Union

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosed

from livesub.app.config import BackendAuth
from livesub.app.diagnostics import describe_error
from livesub.backend.base import BackendClient, StreamConfig, StreamingHandle, build_translation_prompt
from livesub.contracts import (
    AudioChunk,
    ServerUpdate,
    StreamClosed,
    StreamError,
    StreamEvent,
    StreamMessage,
    StreamOpened,
)
from livesub.errors import ConnectError, StreamRuntimeError, TranslationError

_CLOSE_WAIT_SEC = 2.0


class _EndOfAudio:
    pass


_END_OF_AUDIO = _EndOfAudio()
_Outbound = Union[AudioChunk, _EndOfAudio, None]


def build_genai_client(auth: BackendAuth) -> genai.Client:
    auth.validate()
    http_options = types.HttpOptions(api_version=auth.api_version)
    if auth.use_vertex:
        return genai.Client(
            vertexai=True,
            project=auth.project,
            location=auth.location,
            http_options=http_options,
        )
    return genai.Client(api_key=auth.api_key, http_options=http_options)


def build_live_config(config: StreamConfig) -> types.LiveConnectConfig:
    instruction = types.Content(parts=[types.Part(text=config.system_instruction)])
    if config.native_audio:
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=instruction,
        )
    return types.LiveConnectConfig(
        response_modalities=[types.Modality.TEXT],
        input_audio_transcription=types.AudioTranscriptionConfig(),
        system_instruction=instruction,
    )


def close_details(exc: ConnectionClosed) -> tuple[Optional[int], str]:
    frame = getattr(exc, "rcvd", None) or getattr(exc, "sent", None)
    if frame is None:
        return None, str(exc)
    return getattr(frame, "code", None), str(getattr(frame, "reason", "") or "")


def extract_response_text(response: Any) -> str:
    """Joined text parts of the first candidate that has any."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        text = "".join(p.text for p in parts if isinstance(getattr(p, "text", None), str)).strip()
        if text:
            return text
    return ""


def parse_server_message(message: Any) -> Optional[ServerUpdate]:
    content = getattr(message, "server_content", None)
    if content is None:
        return None

    source_text = None
    source_finished = False
    transcription = getattr(content, "input_transcription", None)
    if transcription is not None and isinstance(getattr(transcription, "text", None), str):
        source_text = transcription.text
        source_finished = bool(getattr(transcription, "finished", False))

    fragments: tuple[str, ...] = ()
    model_turn = getattr(content, "model_turn", None)
    if model_turn is not None:
        parts = getattr(model_turn, "parts", None) or []
        fragments = tuple(p.text for p in parts if isinstance(getattr(p, "text", None), str) and p.text)

    target_transcript = None
    output = getattr(content, "output_transcription", None)
    if output is not None and isinstance(getattr(output, "text", None), str):
        target_transcript = output.text

    return ServerUpdate(
        source_text=source_text,
        source_finished=source_finished,
        target_fragments=fragments,
        target_transcript=target_transcript,
        turn_complete=bool(getattr(content, "turn_complete", False)),
        generation_complete=bool(getattr(content, "generation_complete", False)),
        interrupted=bool(getattr(content, "interrupted", False)),
    )


class GenAIStreamHandle(StreamingHandle):
    """
    Gemini Live session behind a message channel.
    A reader task turns server messages into StreamEvents; a writer task sends
    queued audio (base64-encoded by the SDK) in call order.
    """

    def __init__(
        self,
        client: genai.Client,
        model: str,
        config: types.LiveConnectConfig,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.model = model
        self._config = config
        self._logger = logger
        self._stack = contextlib.AsyncExitStack()
        self._session: Any = None
        self._events: "asyncio.Queue[StreamEvent]" = asyncio.Queue()
        self._outbound: "asyncio.Queue[_Outbound]" = asyncio.Queue()
        self._reader: Optional[asyncio.Task[None]] = None
        self._writer: Optional[asyncio.Task[None]] = None
        self._closing = False
        self._finished = False

    async def open(self) -> None:
        try:
            self._session = await self._stack.enter_async_context(
                self._client.aio.live.connect(model=self.model, config=self._config)
            )
        except ConnectionClosed as e:
            code, reason = close_details(e)
            raise ConnectError(
                f"Live connect closed (code: {code}, reason: {reason})",
                code=code,
                reason=reason,
            ) from e
        except Exception as e:
            raise ConnectError(describe_error(e)) from e

        self._events.put_nowait(StreamOpened(model=self.model))
        self._reader = asyncio.create_task(self._read_loop(), name="livesub-stream-reader")
        self._writer = asyncio.create_task(self._write_loop(), name="livesub-stream-writer")

    def _finish(self, closed: StreamClosed) -> None:
        if self._finished:
            return
        self._finished = True
        self._events.put_nowait(closed)

    async def _read_loop(self) -> None:
        closed = StreamClosed(code=1000, reason="")
        try:
            while not self._closing:
                received = 0
                async for message in self._session.receive():
                    received += 1
                    update = parse_server_message(message)
                    if update is not None:
                        self._events.put_nowait(StreamMessage(update))
                if received == 0:
                    break
        except ConnectionClosed as e:
            code, reason = close_details(e)
            closed = StreamClosed(code=code, reason=reason)
        except Exception as e:
            if self._logger is not None:
                self._logger.exception("stream_reader_failed", extra={"model": self.model})
            self._events.put_nowait(StreamError(describe_error(e)))
            closed = StreamClosed(code=None, reason=describe_error(e))
        self._finish(closed)

    async def _write_loop(self) -> None:
        while True:
            item = await self._outbound.get()
            if item is None:
                return
            try:
                if isinstance(item, _EndOfAudio):
                    await self._session.send_realtime_input(audio_stream_end=True)
                else:
                    await self._session.send_realtime_input(
                        audio=types.Blob(data=item.data, mime_type=item.mime_type)
                    )
            except ConnectionClosed:
                # The reader reports the close with its code and reason.
                return
            except Exception as e:
                self._events.put_nowait(StreamError(f"Audio send failed: {describe_error(e)}"))

    def send(self, chunk: AudioChunk) -> None:
        if self._closing:
            raise StreamRuntimeError(f"Live stream to {self.model} is closed.")
        self._outbound.put_nowait(chunk)

    def end_audio(self) -> None:
        if self._closing:
            return
        self._outbound.put_nowait(_END_OF_AUDIO)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._outbound.put_nowait(None)
        if self._writer is not None:
            await asyncio.wait({self._writer}, timeout=_CLOSE_WAIT_SEC)
        try:
            await self._stack.aclose()
        except Exception:
            if self._logger is not None:
                self._logger.warning("stream_close_failed", exc_info=True, extra={"model": self.model})
        for task in (self._reader, self._writer):
            if task is None or task.done():
                continue
            await asyncio.wait({task}, timeout=_CLOSE_WAIT_SEC)
            task.cancel()
        self._finish(StreamClosed(code=1000, reason="client closed"))

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, StreamClosed):
                return


class GenAIBackendClient(BackendClient):
    def __init__(
        self,
        auth: BackendAuth,
        *,
        translation_model: str,
        source_lang: str = "en",
        target_lang: str = "ko",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.auth = auth
        self.translation_model = translation_model
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.logger = logger
        self._client: Optional[genai.Client] = None

    @property
    def name(self) -> str:
        return "genai"

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = build_genai_client(self.auth)
        return self._client

    async def translate(self, text: str) -> str:
        source = (text or "").strip()
        if not source:
            return ""
        client = self._get_client()
        prompt = build_translation_prompt(source, self.source_lang, self.target_lang)
        try:
            response = await client.aio.models.generate_content(
                model=self.translation_model,
                contents=[types.Content(role="user", parts=[types.Part(text=prompt)])],
            )
        except Exception as e:
            raise TranslationError(describe_error(e)) from e
        return extract_response_text(response)

    async def connect_stream(self, model: str, config: StreamConfig) -> GenAIStreamHandle:
        handle = GenAIStreamHandle(self._get_client(), model, build_live_config(config), logger=self.logger)
        await handle.open()
        return handle
