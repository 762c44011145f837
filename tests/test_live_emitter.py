from __future__ import annotations

from livesub.contracts import CaptionEvent, CaptionState, DebugEvent, ErrorEvent, StatusEvent
from livesub.live.emitter import EventEmitter, should_sample


def test_should_sample_first_and_every_nth() -> None:
    picked = [n for n in range(1, 13) if should_sample(n, 5)]
    assert picked == [1, 5, 10]
    assert all(should_sample(n, 1) for n in range(1, 5))


def test_sampled_debug_counts_per_category() -> None:
    events = []
    emitter = EventEmitter([events.append], sample_every={"audio": 3})
    for _ in range(6):
        emitter.sampled_debug("audio", "audio-received", bytes=10)
    emitter.sampled_debug("server", "server-message")

    stages = [(e.stage, e.details.get("audio_count", e.details.get("server_count"))) for e in events]
    assert stages == [
        ("audio-received", 1),
        ("audio-received", 3),
        ("audio-received", 6),
        ("server-message", 1),
    ]

    emitter.reset_counts("audio")
    assert emitter.count("audio") == 0
    assert emitter.count("server") == 1


def test_failing_sink_does_not_block_others() -> None:
    received = []

    def broken(event) -> None:
        raise RuntimeError("ui gone")

    emitter = EventEmitter([broken, received.append])
    emitter.status("ready", "Live session connected.")
    emitter.error("boom")
    assert [type(e) for e in received] == [StatusEvent, ErrorEvent]
    assert received[0].message == "Live session connected."


def test_caption_event_is_final_only_when_both_sides_final() -> None:
    events = []
    emitter = EventEmitter([events.append], sample_every={"caption": 100})
    state = CaptionState(source_text="Hello", target_text="안녕", source_final=True, target_final=False)
    emitter.caption(state, "model")
    state.target_final = True
    emitter.caption(state, "model")

    captions = [e for e in events if isinstance(e, CaptionEvent)]
    assert [c.is_final for c in captions] == [False, True]
    assert captions[0].source == "model"
    debug = [e for e in events if isinstance(e, DebugEvent)]
    assert [d.stage for d in debug] == ["caption-updated"]
