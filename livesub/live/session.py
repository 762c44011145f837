from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from livesub.app.diagnostics import describe_error
from livesub.app.state import SessionState, SessionStateTracker
from livesub.backend.base import BackendClient, StreamingHandle, build_stream_config
from livesub.contracts import (
    AudioChunk,
    ServerUpdate,
    StreamClosed,
    StreamError,
    StreamMessage,
    StreamOpened,
    normalize_mime,
)
from livesub.errors import ConfigurationError, ConnectError
from livesub.live.audio_queue import AudioIngressQueue
from livesub.live.captions import CaptionAggregator
from livesub.live.emitter import EventEmitter
from livesub.live.fallback import FallbackTranslationScheduler
from livesub.live.settings import SessionSettings
from livesub.live.text import preview

_UNSUPPORTED_MODEL_MARKERS = (
    "not found",
    "not supported for bidigenera",
)


def is_model_support_close(reason: object) -> bool:
    text = reason.lower() if isinstance(reason, str) else ""
    return bool(text) and any(marker in text for marker in _UNSUPPORTED_MODEL_MARKERS)


@dataclass
class StreamingSession:
    active_model: str
    fallback_model: str
    fallback_attempted: bool = False
    intentional_close: bool = False


class LiveSession:
    """
    Owns one streaming connection and everything scoped to it: the caption state,
    the fallback translator watermarks, queued audio and debug counters.

    Must be driven from a single event loop. `start`/`stop` are coroutines; audio and
    backend events are handled synchronously on that loop.
    """

    def __init__(
        self,
        client: BackendClient,
        settings: SessionSettings,
        emitter: EventEmitter,
        *,
        captions: Optional[CaptionAggregator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.emitter = emitter
        self.logger = logger
        self.tracker = SessionStateTracker()
        self.stream = StreamingSession(
            active_model=settings.primary_model,
            fallback_model=settings.fallback_model,
        )
        self.captions = captions or CaptionAggregator(emitter, settings.captions)
        self.translator = FallbackTranslationScheduler(
            client,
            self.captions,
            emitter,
            settings.translation,
            logger=logger,
        )
        self.captions.fallback = self.translator
        self.audio = AudioIngressQueue(maxsize=settings.max_queued_audio)
        self._handle: Optional[StreamingHandle] = None
        self._connect_generation = 0
        self._tasks: Set[asyncio.Task] = set()

    # ----- control surface -----

    @property
    def state(self) -> SessionState:
        return self.tracker.state

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def start(self) -> bool:
        if self.tracker.is_active:
            return self.is_open
        self.stream.intentional_close = False
        return await self._connect()

    async def stop(self) -> None:
        self._connect_generation += 1
        handle = self._handle
        self._handle = None
        self.audio.detach()
        self.audio.clear()
        self.translator.reset()
        self.captions.reset()
        self.emitter.reset_counts()

        if handle is not None:
            self.stream.intentional_close = True
            self.tracker.set_closing()
            handle.end_audio()
            try:
                await handle.close()
            except Exception:
                if self.logger is not None:
                    self.logger.warning("session_close_failed", exc_info=True)
            self.emitter.debug("session-stopped")
        else:
            self.stream.intentional_close = False

        self.stream.active_model = self.settings.primary_model
        self.stream.fallback_attempted = False
        self.tracker.set_idle()
        self.emitter.status("idle", "Live session stopped.")

    def send_audio(self, data: bytes, mime_type: Optional[str] = None) -> None:
        if not data:
            return
        chunk = AudioChunk(data=bytes(data), mime_type=normalize_mime(mime_type))
        self.emitter.sampled_debug(
            "audio",
            "audio-received",
            mime_type=chunk.mime_type,
            bytes=len(chunk.data),
        )
        if not self.tracker.is_active:
            self.emitter.sampled_debug("audio_dropped", "audio-dropped-no-session", state=self.state.value)
            return
        self.audio.enqueue_or_send(chunk)

    async def wait_idle(self) -> None:
        """Let spawned reconnects, dispatch loops and fallback calls run to completion."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.translator.wait_idle()

    # ----- connection -----

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _reset_session_scope(self) -> None:
        self.captions.reset()
        self.translator.reset()
        self.emitter.reset_counts("audio", "audio_sent", "audio_dropped", "server")

    async def _connect(self) -> bool:
        self._connect_generation += 1
        generation = self._connect_generation
        model = self.stream.active_model
        auth_mode = self.settings.auth_mode

        self.tracker.set_connecting()
        self.emitter.status("connecting", f"Connecting ({auth_mode}, {model})...")
        self.emitter.debug(
            "session-starting",
            auth_mode=auth_mode,
            model=model,
            fallback_model=self.stream.fallback_model,
            fallback_attempted=self.stream.fallback_attempted,
        )
        self._reset_session_scope()

        config = build_stream_config(model, self.settings.source_lang, self.settings.target_lang)
        try:
            handle = await self.client.connect_stream(model, config)
        except ConfigurationError as e:
            return self._fail_start(e)
        except ConnectError as e:
            if generation != self._connect_generation:
                return False
            if self._should_fallback(e.reason):
                return await self._fall_back(e.reason, generation)
            return self._fail_start(e)
        except Exception as e:
            if self.logger is not None:
                self.logger.exception("session_connect_failed", extra={"model": model})
            if generation != self._connect_generation:
                return False
            return self._fail_start(e)

        if generation != self._connect_generation:
            # stop() ran while we were connecting.
            await handle.close()
            return False

        self._handle = handle
        self._spawn(self._dispatch(handle))
        return True

    def _fail_start(self, error: Exception) -> bool:
        detail = describe_error(error)
        self._handle = None
        self.audio.detach()
        self.audio.clear()
        self.tracker.set_error(detail)
        self.emitter.status("error", "Failed to start live session.")
        self.emitter.error(detail)
        self.emitter.debug("session-start-failed", error=detail, model=self.stream.active_model)
        return False

    def _should_fallback(self, reason: object) -> bool:
        return (
            not self.stream.intentional_close
            and not self.stream.fallback_attempted
            and self.stream.active_model != self.stream.fallback_model
            and is_model_support_close(reason)
        )

    async def _fall_back(self, reason: str, generation: int) -> bool:
        if generation != self._connect_generation:
            return False
        self.stream.fallback_attempted = True
        self.stream.active_model = self.stream.fallback_model
        self.emitter.status("connecting", f"Model unavailable. Retrying with {self.stream.active_model}...")
        self.emitter.debug("session-fallback", to_model=self.stream.active_model, reason=reason)
        return await self._connect()

    # ----- inbound events -----

    async def _dispatch(self, handle: StreamingHandle) -> None:
        async for event in handle.events():
            if isinstance(event, StreamOpened):
                self._on_open(handle)
            elif isinstance(event, StreamMessage):
                if handle is self._handle:
                    self._on_message(event.update)
            elif isinstance(event, StreamError):
                self._on_error(handle, event.message)
            elif isinstance(event, StreamClosed):
                self._on_close(handle, event)
                return

    def _on_open(self, handle: StreamingHandle) -> None:
        if handle is not self._handle:
            return
        self.stream.fallback_attempted = False
        self.tracker.set_ready()
        self.emitter.status("ready", "Live session connected.")
        self.emitter.debug("session-open", model=self.stream.active_model)
        self.audio.attach(self._send_chunk)
        self.audio.flush()

    def _send_chunk(self, chunk: AudioChunk) -> None:
        handle = self._handle
        if handle is None:
            return
        try:
            handle.send(chunk)
        except Exception as e:
            detail = describe_error(e)
            self.emitter.error(detail)
            self.emitter.debug("audio-send-failed", error=detail)
            return
        self.emitter.sampled_debug("audio_sent", "audio-sent", mime_type=chunk.mime_type, bytes=len(chunk.data))

    def _on_message(self, update: ServerUpdate) -> None:
        self.emitter.sampled_debug(
            "server",
            "server-message",
            has_input_transcription=bool(update.source_text),
            has_output_transcription=bool(update.target_transcript),
            has_model_turn=bool(update.target_fragments),
            input_preview=preview(update.source_text or ""),
            output_preview=preview(update.target_transcript or ""),
            model_turn_preview=preview("".join(update.target_fragments)),
            turn_complete=update.turn_complete,
            generation_complete=update.generation_complete,
        )
        try:
            self.captions.apply_update(update)
        except Exception as e:
            if self.logger is not None:
                self.logger.exception("server_message_failed")
            self.emitter.error(describe_error(e))

    def _on_error(self, handle: StreamingHandle, message: str) -> None:
        if handle is not self._handle:
            return
        # The backend follows up with a close; until then the session stays usable.
        self.tracker.last_error = message
        self.emitter.status("error", "Live session error.")
        self.emitter.error(message)
        self.emitter.debug("session-error", error=message)

    def _on_close(self, handle: StreamingHandle, event: StreamClosed) -> None:
        if handle is not self._handle:
            # Closed by stop() or replaced; stop() already reported idle.
            self.emitter.debug("session-closed", code=event.code, reason=event.reason, intentional=True)
            return

        was_intentional = self.stream.intentional_close
        self.stream.intentional_close = False
        self._handle = None
        self.audio.detach()
        self.audio.clear()

        if not was_intentional and self._should_fallback(event.reason):
            self._spawn(self._fall_back(event.reason, self._connect_generation))
            return

        if not was_intentional:
            detail = ""
            if event.code:
                detail = f" (code: {event.code}" + (f", reason: {event.reason}" if event.reason else "") + ")"
            self.emitter.error(f"Live session closed unexpectedly{detail}.")
        self.emitter.debug("session-closed", code=event.code, reason=event.reason, intentional=was_intentional)
        if was_intentional:
            self.tracker.set_idle()
            self.emitter.status("idle", "Live session stopped.")
        else:
            self.tracker.set_closed()
            self.emitter.status("closed", "Live session closed.")
