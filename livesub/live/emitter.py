from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from livesub.contracts import (
    CaptionEvent,
    CaptionState,
    DebugEvent,
    ErrorEvent,
    LiveEvent,
    StatusEvent,
)

Sink = Callable[[LiveEvent], None]


def should_sample(count: int, interval: int) -> bool:
    return count == 1 or count % max(1, int(interval)) == 0


class EventEmitter:
    """
    Fan-out of live events to UI sinks. Fire-and-forget: a failing sink is logged
    and skipped, it never reaches the session.

    Sampled debug stages are emitted for the 1st occurrence and every Nth after that,
    counted per category.
    """

    def __init__(
        self,
        sinks: Optional[List[Sink]] = None,
        *,
        logger: Optional[logging.Logger] = None,
        sample_every: Optional[Dict[str, int]] = None,
    ) -> None:
        self._sinks: List[Sink] = list(sinks or [])
        self._logger = logger
        self._sample_every: Dict[str, int] = dict(sample_every or {})
        self._counts: Dict[str, int] = {}

    def add_sink(self, sink: Sink) -> None:
        self._sinks.append(sink)

    def count(self, category: str) -> int:
        return self._counts.get(category, 0)

    def reset_counts(self, *categories: str) -> None:
        if not categories:
            self._counts.clear()
            return
        for category in categories:
            self._counts.pop(category, None)

    def tick(self, category: str) -> int:
        n = self._counts.get(category, 0) + 1
        self._counts[category] = n
        return n

    def _emit(self, event: LiveEvent) -> None:
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                if self._logger is not None:
                    self._logger.exception("sink_failed", extra={"event_type": type(event).__name__})

    def _log(self, level: int, event: str, **fields: Any) -> None:
        if self._logger is None:
            return
        self._logger.log(level, event, extra=fields)

    def status(self, status: str, message: str = "") -> None:
        self._log(logging.INFO, "live_status", status=status, status_message=message)
        self._emit(StatusEvent(status=status, message=message))

    def error(self, message: str) -> None:
        self._log(logging.WARNING, "live_error", error=message)
        self._emit(ErrorEvent(message=message))

    def debug(self, stage: str, **details: Any) -> None:
        self._log(logging.DEBUG, "live_debug", stage=stage, details=details)
        self._emit(DebugEvent(stage=stage, details=details))

    def sampled_debug(self, category: str, stage: str, **details: Any) -> bool:
        n = self.tick(category)
        if not should_sample(n, self._sample_every.get(category, 1)):
            return False
        self.debug(stage, **{f"{category}_count": n, **details})
        return True

    def caption(self, state: CaptionState, source: str) -> None:
        is_final = state.both_final
        self._emit(
            CaptionEvent(
                source_text=state.source_text,
                target_text=state.target_text,
                is_final=is_final,
                source=source,
            )
        )
        self.sampled_debug(
            "caption",
            "caption-updated",
            source=source,
            is_final=is_final,
            source_length=len(state.source_text),
            target_length=len(state.target_text),
            source_preview=state.source_text[:60],
            target_preview=state.target_text[:60],
        )
