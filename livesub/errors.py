from __future__ import annotations

from typing import Optional


class LiveSubError(RuntimeError):
    pass


class ConfigurationError(LiveSubError):
    """Credentials or backend settings are missing or unusable."""


class ConnectError(LiveSubError):
    def __init__(self, message: str, *, code: Optional[int] = None, reason: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.reason = reason or message


class StreamRuntimeError(LiveSubError):
    pass


class TranslationError(LiveSubError):
    pass
