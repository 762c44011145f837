from __future__ import annotations

from collections import deque
from typing import Callable, Deque, List, Optional

from livesub.contracts import AudioChunk

Sender = Callable[[AudioChunk], None]


class AudioIngressQueue:
    """
    Holds audio that arrives before the stream is ready.
    Once a sender is attached chunks go straight through; `flush` drains the backlog
    in arrival order. Oldest chunks are dropped when the backlog is full.
    """

    def __init__(self, maxsize: int = 400) -> None:
        self.maxsize = max(1, int(maxsize))
        self._pending: Deque[AudioChunk] = deque()
        self._sender: Optional[Sender] = None
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def is_attached(self) -> bool:
        return self._sender is not None

    def attach(self, sender: Sender) -> None:
        self._sender = sender

    def detach(self) -> None:
        self._sender = None

    def enqueue_or_send(self, chunk: AudioChunk) -> bool:
        """Return True if the chunk was sent, False if it was queued."""
        if self._sender is not None:
            self._sender(chunk)
            return True
        if len(self._pending) >= self.maxsize:
            self._pending.popleft()
            self.dropped += 1
        self._pending.append(chunk)
        return False

    def flush(self) -> int:
        if self._sender is None or not self._pending:
            return 0
        pending: List[AudioChunk] = list(self._pending)
        self._pending.clear()
        for chunk in pending:
            self._sender(chunk)
        return len(pending)

    def clear(self) -> int:
        n = len(self._pending)
        self._pending.clear()
        return n
