from __future__ import annotations

from array import array

import pytest

from livesub.audio.mic import SoundDeviceMicSource, level_percent, pcm16_rms


def _pcm(values: list[int]) -> bytes:
    return array("h", values).tobytes()


def test_pcm16_rms_and_level() -> None:
    assert pcm16_rms(b"") == 0.0
    assert pcm16_rms(_pcm([1000, -1000, 1000, -1000])) == pytest.approx(1000.0)
    assert level_percent(_pcm([4000] * 8)) == 50
    assert level_percent(_pcm([32000] * 8)) == 100


def test_pcm16_rms_ignores_trailing_odd_byte() -> None:
    assert pcm16_rms(_pcm([300, 300]) + b"\x7f") == pytest.approx(300.0)


def test_mic_source_validates_and_reports_mime() -> None:
    mic = SoundDeviceMicSource(sample_rate=24000)
    assert mic.mime_type == "audio/pcm;rate=24000"
    with pytest.raises(ValueError):
        SoundDeviceMicSource(channels=3)
    with pytest.raises(ValueError):
        SoundDeviceMicSource(chunk_seconds=0)
