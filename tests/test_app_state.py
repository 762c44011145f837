from __future__ import annotations

from livesub.app.state import SessionState, SessionStateTracker


def test_state_tracker_happy_path() -> None:
    tracker = SessionStateTracker()
    assert tracker.state == SessionState.IDLE
    assert not tracker.is_active

    tracker.set_connecting()
    assert tracker.state == SessionState.CONNECTING
    assert tracker.is_active

    tracker.set_ready()
    assert tracker.state == SessionState.READY

    tracker.set_closing()
    assert tracker.state == SessionState.CLOSING
    assert not tracker.is_active

    tracker.set_idle()
    assert tracker.state == SessionState.IDLE


def test_ready_only_follows_connecting() -> None:
    tracker = SessionStateTracker()
    tracker.set_ready()
    assert tracker.state == SessionState.IDLE

    tracker.set_closed()
    tracker.set_ready()
    assert tracker.state == SessionState.CLOSED


def test_state_tracker_error_clears_on_restart() -> None:
    tracker = SessionStateTracker()
    tracker.set_error("boom")
    assert tracker.state == SessionState.ERROR
    assert tracker.last_error == "boom"

    tracker.set_connecting()
    assert tracker.state == SessionState.CONNECTING
    assert tracker.last_error is None
