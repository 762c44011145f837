from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

from livesub.audio.mic import MicError, SoundDeviceMicSource, level_percent
from livesub.contracts import CaptionEvent, LiveEvent
from livesub.live.session import LiveSession
from livesub.ui.bridge import EventBus


def _log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


def _drain_event_bus(bus: EventBus, handle: Callable[[LiveEvent], None], max_items: int) -> int:
    drained = 0
    while drained < max_items:
        event = bus.pop()
        if event is None:
            break
        handle(event)
        drained += 1
    return drained


def _console_line(event: LiveEvent) -> str | None:
    if isinstance(event, CaptionEvent) and event.is_final:
        return f"[{event.timestamp}] {event.source_text}\n    -> {event.target_text}"
    return None


class LiveRuntime:
    """
    Hosts a LiveSession on a private asyncio loop thread and exposes the
    control surface (start_session / send_audio / end_session) to other threads.
    Emitted events are pushed onto `bus` for the UI thread to drain.
    """

    def __init__(
        self,
        session: LiveSession,
        bus: EventBus,
        *,
        mic: Optional[SoundDeviceMicSource] = None,
        logger: logging.Logger | None = None,
        call_timeout: float = 30.0,
        mic_join_timeout: float = 2.0,
    ) -> None:
        self.session = session
        self.bus = bus
        self.mic = mic
        self.logger = logger
        self.call_timeout = call_timeout
        self.mic_join_timeout = mic_join_timeout
        self.mic_level = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._mic_thread: threading.Thread | None = None
        self._mic_stop: threading.Event | None = None
        self._lock = threading.Lock()
        session.emitter.add_sink(bus)

    # ----- loop thread -----

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is not None and self._loop_thread is not None and self._loop_thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _run() -> None:
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                loop.run_forever()
                loop.close()

            self._loop = loop
            self._loop_thread = threading.Thread(target=_run, name="livesub-session-loop", daemon=True)
            self._loop_thread.start()
            ready.wait(timeout=self.call_timeout)
            _log_event(self.logger, logging.INFO, "session_loop_started")
            return loop

    def _submit(self, coro) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    # ----- control surface -----

    def request_start(self) -> Future:
        """Non-blocking start for the UI thread; the future resolves to {"ok": bool}."""
        self._start_mic()

        async def _start() -> dict[str, bool]:
            return {"ok": await self.session.start()}

        return self._submit(_start())

    def start_session(self) -> dict[str, bool]:
        result = self.request_start().result(timeout=self.call_timeout)
        _log_event(self.logger, logging.INFO, "session_start_result", ok=bool(result["ok"]))
        if not result["ok"]:
            self._stop_mic()
        return result

    def send_audio(self, data: bytes, mime_type: str | None = None) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.session.send_audio, data, mime_type)

    def end_session(self) -> None:
        self._stop_mic()
        if self._loop is None:
            return
        self._submit(self.session.stop()).result(timeout=self.call_timeout)
        _log_event(self.logger, logging.INFO, "session_ended")

    def shutdown(self) -> None:
        loop = self._loop
        if loop is None:
            return
        self.end_session()
        self._submit(self.session.wait_idle()).result(timeout=self.call_timeout)
        loop.call_soon_threadsafe(loop.stop)
        if self._loop_thread is not None:
            self._loop_thread.join(timeout=self.call_timeout)
        self._loop = None
        self._loop_thread = None
        _log_event(self.logger, logging.INFO, "session_loop_stopped")

    # ----- microphone -----

    def _start_mic(self) -> None:
        if self.mic is None:
            return
        old = self._mic_thread
        if old is not None and old.is_alive():
            if self._mic_stop is not None and not self._mic_stop.is_set():
                return
            # A stopped capture thread finishes its current read before exiting.
            old.join(timeout=self.mic_join_timeout)
            if old.is_alive():
                _log_event(self.logger, logging.WARNING, "mic_stop_slow", timeout=self.mic_join_timeout)
        self._mic_stop = threading.Event()
        stop_event = self._mic_stop
        self._mic_thread = threading.Thread(
            target=lambda: self._mic_loop(stop_event),
            name="livesub-mic-capture",
            daemon=True,
        )
        self._mic_thread.start()

    def _stop_mic(self) -> None:
        if self._mic_stop is not None:
            self._mic_stop.set()
        self.mic_level = 0

    def _mic_loop(self, stop_event: threading.Event) -> None:
        assert self.mic is not None
        _log_event(self.logger, logging.INFO, "mic_start", mime_type=self.mic.mime_type, device=self.mic.device)
        try:
            for chunk in self.mic.chunks(stop_event):
                self.mic_level = level_percent(chunk.data)
                self.send_audio(chunk.data, chunk.mime_type)
        except MicError as e:
            if self.logger is not None:
                self.logger.exception("mic_failed")
            loop = self._loop
            if loop is not None and not loop.is_closed():
                loop.call_soon_threadsafe(self.session.emitter.error, f"Microphone error: {e}")
        finally:
            self.mic_level = 0
            _log_event(self.logger, logging.INFO, "mic_stop")
