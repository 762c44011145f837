from __future__ import annotations

import contextlib
import math
import threading
from array import array
from typing import Iterator, Optional

from livesub.contracts import AudioChunk


class MicError(RuntimeError):
    pass


def pcm16_rms(pcm16: bytes) -> float:
    """Return RMS energy for little-endian int16 PCM bytes."""
    usable = len(pcm16) - (len(pcm16) % 2)
    if usable <= 0:
        return 0.0
    samples = array("h")
    samples.frombytes(pcm16[:usable])
    sum_sq = 0.0
    for value in samples:
        fv = float(value)
        sum_sq += fv * fv
    return math.sqrt(sum_sq / len(samples))


def level_percent(pcm16: bytes, full_scale: float = 8000.0) -> int:
    return max(0, min(100, int(round(pcm16_rms(pcm16) / full_scale * 100.0))))


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).
    Yields raw PCM16 chunks tagged with the MIME type the live backend expects.
    """

    def __init__(
        self,
        *,
        chunk_seconds: float = 0.1,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
    ) -> None:
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be > 0")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")

        self.chunk_seconds = float(chunk_seconds)
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.device = device

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"

    @staticmethod
    def list_devices() -> str:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicError(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e
        return str(sd.query_devices())

    @contextlib.contextmanager
    def _open_stream(self):
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicError(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e

        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                blocksize=0,  # let PortAudio choose
            )
        except Exception as e:
            raise MicError(
                "Failed to open microphone stream. "
                "Try --list-devices and select a device id with --device."
            ) from e

        with stream:
            yield stream

    def chunks(self, stop_event: Optional[threading.Event] = None) -> Iterator[AudioChunk]:
        frames_per_chunk = max(1, int(round(self.chunk_seconds * self.sample_rate)))
        with self._open_stream() as stream:
            while stop_event is None or not stop_event.is_set():
                data, _overflowed = stream.read(frames_per_chunk)
                # Overflow only means PortAudio dropped frames; keep streaming.
                yield AudioChunk(data=bytes(data), mime_type=self.mime_type)
