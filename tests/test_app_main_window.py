from livesub.app.main_window_qt import error_lines, info_line, status_line


def test_status_line_labels() -> None:
    assert status_line("idle") == "Idle"
    assert status_line("ready", "Live session connected.") == "Live: Live session connected."
    assert status_line("connecting", "Model unavailable. Retrying with x...") == (
        "Connecting: Model unavailable. Retrying with x..."
    )
    assert status_line("weird", "") == "Weird"


def test_error_lines_include_hint() -> None:
    summary, hint = error_lines("Live session closed unexpectedly (code: 1011, reason: internal error).")
    assert summary.startswith("Live session closed unexpectedly")
    assert "reconnect" in hint


def test_info_line_skips_empty_parts() -> None:
    assert info_line("en -> ko", "Model: live-x") == "en -> ko | Model: live-x"
    assert info_line("en -> ko", "") == "en -> ko"
    assert info_line("", "") == ""
