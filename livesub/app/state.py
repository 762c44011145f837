from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


@dataclass
class SessionStateTracker:
    state: SessionState = SessionState.IDLE
    last_error: str | None = None

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.READY)

    def set_connecting(self) -> None:
        self.state = SessionState.CONNECTING
        self.last_error = None

    def set_ready(self) -> None:
        if self.state == SessionState.CONNECTING:
            self.state = SessionState.READY

    def set_closing(self) -> None:
        if self.is_active:
            self.state = SessionState.CLOSING

    def set_idle(self) -> None:
        self.state = SessionState.IDLE

    def set_closed(self) -> None:
        self.state = SessionState.CLOSED

    def set_error(self, detail: str) -> None:
        self.state = SessionState.ERROR
        self.last_error = detail
