from __future__ import annotations

import queue
from typing import Optional

from livesub.contracts import LiveEvent


class EventBus:
    """
    Thread-safe handoff from the session loop -> UI thread.
    The session pushes LiveEvents (the bus is itself an EventEmitter sink). UI polls (non-blocking).
    """
    def __init__(self, maxsize: int = 200):
        self.q: "queue.Queue[LiveEvent]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, event: LiveEvent) -> None:
        self.push(event)

    def push(self, event: LiveEvent) -> None:
        try:
            self.q.put_nowait(event)
        except queue.Full:
            # drop oldest; the newest caption always supersedes older ones anyway
            try:
                _ = self.q.get_nowait()
                self.dropped += 1
            except queue.Empty:
                return
            try:
                self.q.put_nowait(event)
            except queue.Full:
                return

    def pop(self) -> Optional[LiveEvent]:
        try:
            return self.q.get_nowait()
        except queue.Empty:
            return None
