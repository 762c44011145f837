from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from livesub.app.diagnostics import describe_error
from livesub.backend.base import BackendClient
from livesub.contracts import TranslationJob
from livesub.live.captions import CaptionAggregator
from livesub.live.emitter import EventEmitter
from livesub.live.settings import TranslationSettings
from livesub.live.text import tail_for_translation


class FallbackTranslationScheduler:
    """
    Debounced batch re-translation of the running source text.

    Watermarks:
      latest_requested: sequence of the newest scheduled job
      latest_applied:   sequence of the newest job whose result reached the caption
    A completed job may only touch the caption if it is not behind either one,
    belongs to the current generation, and the native target is not final yet.
    """

    def __init__(
        self,
        client: BackendClient,
        captions: CaptionAggregator,
        emitter: EventEmitter,
        settings: TranslationSettings | None = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.captions = captions
        self.emitter = emitter
        self.settings = settings or TranslationSettings()
        self.logger = logger
        self.generation = 0
        self.sequence = 0
        self.latest_requested = 0
        self.latest_applied = 0
        self.last_input_text = ""
        self.last_input_final = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set["asyncio.Task[bool]"] = set()

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def reset(self) -> None:
        """Session boundary: forget every watermark and orphan in-flight jobs."""
        self.sequence = 0
        self.latest_requested = 0
        self.latest_applied = 0
        self.new_utterance()

    def new_utterance(self) -> None:
        """Utterance boundary: drop the pending debounce and orphan jobs for the old text."""
        self.cancel()
        self.generation += 1
        self.last_input_text = ""
        self.last_input_final = False

    def schedule(self, source_text: str, *, is_final: bool) -> Optional[TranslationJob]:
        cfg = self.settings
        normalized = (source_text or "").strip()
        if not normalized:
            return None

        tail = tail_for_translation(normalized, cfg.max_translation_chars)
        if not tail:
            return None

        if not is_final and len(normalized) < cfg.partial_min_chars:
            self.emitter.debug("fallback-skipped", reason="too-short-partial", source_length=len(normalized))
            return None

        if tail == self.last_input_text and (self.last_input_final or not is_final):
            self.emitter.debug(
                "fallback-skipped",
                reason="duplicate-input",
                source_length=len(tail),
                is_final=is_final,
            )
            return None

        if len(normalized) > len(tail):
            self.emitter.debug(
                "fallback-trimmed-input",
                original_length=len(normalized),
                used_length=len(tail),
            )

        self.last_input_text = tail
        self.last_input_final = is_final
        self.sequence += 1
        self.latest_requested = self.sequence
        job = TranslationJob(
            sequence=self.sequence,
            source_text_tail=tail,
            is_final=is_final,
            generation=self.generation,
        )

        delay = cfg.final_debounce_sec if is_final else cfg.partial_debounce_sec
        self.cancel()
        self.emitter.debug(
            "fallback-scheduled",
            seq=job.sequence,
            source_length=len(tail),
            is_final=is_final,
            debounce_ms=int(delay * 1000),
        )
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire, job)
        return job

    def _fire(self, job: TranslationJob) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.execute(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _skip(self, reason: str, job: TranslationJob, **details) -> bool:
        self.emitter.debug("fallback-skipped", reason=reason, seq=job.sequence, **details)
        return False

    async def execute(self, job: TranslationJob) -> bool:
        self.emitter.debug(
            "fallback-started",
            seq=job.sequence,
            source_length=len(job.source_text_tail),
            is_final=job.is_final,
        )
        try:
            translated = await self.client.translate(job.source_text_tail)
        except Exception as e:
            if self.logger is not None:
                self.logger.exception("fallback_translate_failed", extra={"seq": job.sequence})
            detail = describe_error(e)
            self.emitter.error(f"Fallback translation failed: {detail}")
            self.emitter.debug("fallback-failed", error=detail, seq=job.sequence, is_final=job.is_final)
            return False

        translated = (translated or "").strip()
        if not translated:
            return self._skip("empty-translation", job)
        if job.generation != self.generation:
            return self._skip("stale-generation", job, generation=self.generation)
        if job.sequence < self.latest_requested:
            return self._skip("outdated-seq", job, latest_requested_seq=self.latest_requested)
        if job.sequence < self.latest_applied:
            return self._skip("older-than-applied", job, latest_applied_seq=self.latest_applied)
        if self.captions.state.target_final:
            return self._skip("live-api-already-final", job)

        self.captions.apply_fallback_translation(translated, is_final=job.is_final)
        self.latest_applied = job.sequence
        self.emitter.debug(
            "fallback-success",
            seq=job.sequence,
            target_length=len(translated),
            source_length=len(job.source_text_tail),
            is_final=job.is_final,
        )
        return True

    async def wait_idle(self) -> None:
        """Wait for translation calls already started (not for a pending debounce)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
