from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from livesub.contracts import CaptionState, ServerUpdate
from livesub.live.emitter import EventEmitter
from livesub.live.settings import CaptionSettings
from livesub.live.text import is_plausible_final, merge_target_transcript


class FallbackTranslator(Protocol):
    def schedule(self, source_text: str, *, is_final: bool):
        ...

    def new_utterance(self) -> None:
        ...


class CaptionAggregator:
    """
    Single source of truth for the displayed caption pair.

    Reset points:
      - session start/stop: `reset()`
      - utterance boundary: a source update arriving after both sides were final
    """

    def __init__(
        self,
        emitter: EventEmitter,
        settings: CaptionSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.emitter = emitter
        self.settings = settings or CaptionSettings()
        self.clock = clock
        self.fallback: Optional[FallbackTranslator] = None
        self.state = CaptionState()
        self._streaming_target = ""
        self._last_source_at: Optional[float] = None

    def reset(self) -> None:
        self.state = CaptionState()
        self._streaming_target = ""
        self._last_source_at = None

    def _emit(self, source: str) -> None:
        self.emitter.caption(self.state, source)

    def apply_update(self, update: ServerUpdate) -> None:
        if update.source_text is not None:
            self.apply_source(update.source_text, finished=update.source_finished)
        for fragment in update.target_fragments:
            self.append_target_fragment(fragment)
        if update.target_transcript is not None:
            self.apply_target_transcript(update.target_transcript)
        if update.turn_complete or update.generation_complete:
            self.complete_turn()
        if update.interrupted:
            self.interrupt()

    def apply_source(self, text: str, *, finished: bool) -> None:
        if self.state.both_final:
            self.reset()
            if self.fallback is not None:
                self.fallback.new_utterance()

        self._last_source_at = self.clock()
        self._streaming_target = ""
        # The backend resends the whole utterance so far, never a delta.
        self.state.source_text = text
        self.state.source_final = bool(finished)
        self._emit("input")
        if self.fallback is not None:
            self.fallback.schedule(text, is_final=bool(finished))

    def append_target_fragment(self, fragment: str) -> None:
        if not fragment:
            return
        if self._streaming_target:
            self._streaming_target += fragment
        else:
            self._streaming_target = fragment.strip()
        self.state.target_text = self._streaming_target
        self.state.target_final = False
        self._emit("model")

    def apply_target_transcript(self, fragment: str) -> bool:
        if self.state.target_final:
            return False
        since = None if self._last_source_at is None else self.clock() - self._last_source_at
        if since is not None and since < self.settings.output_transcript_delay_sec:
            return False
        merged = merge_target_transcript(self._streaming_target, fragment, self.settings.target_lang)
        if not merged or merged == self._streaming_target:
            return False
        self._streaming_target = merged
        self.state.target_text = merged
        self.state.target_final = False
        self._emit("model")
        self.emitter.debug(
            "output-stream-applied",
            target_length=len(merged),
            since_input_ms=None if since is None else int(round(since * 1000)),
        )
        return True

    def complete_turn(self) -> bool:
        cfg = self.settings
        if is_plausible_final(
            self.state.target_text,
            self.state.source_text,
            ratio=cfg.turn_final_ratio,
            cap=cfg.turn_final_cap,
            min_chars=cfg.turn_final_min_chars,
        ):
            self.state.target_final = True
            self._emit("model")
            return True
        self.emitter.debug(
            "turn-complete-without-target",
            source_length=len(self.state.source_text.strip()),
            target_length=len(self.state.target_text.strip()),
        )
        return False

    def interrupt(self) -> None:
        if self.state.target_text.strip():
            self.state.target_final = True
            self._emit("model")

    def apply_fallback_translation(self, translated: str, *, is_final: bool) -> None:
        self.state.target_text = translated
        self.state.target_final = bool(is_final and self.state.source_final)
        self._emit("model")
