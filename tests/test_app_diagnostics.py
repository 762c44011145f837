from __future__ import annotations

from livesub.app.diagnostics import describe_error, hint_for_exception, summarize_exception


def test_summarize_exception_picks_last_meaningful_line() -> None:
    detail = (
        "Traceback (most recent call last):\n"
        '  File "x.py", line 1, in <module>\n'
        "    boom()\n"
        "RuntimeError: failed to open live session"
    )
    assert summarize_exception(detail) == "RuntimeError: failed to open live session"


def test_summarize_exception_truncates_long_line() -> None:
    detail = "ValueError: " + ("x" * 500)
    out = summarize_exception(detail, max_len=60)
    assert out.startswith("ValueError: ")
    assert out.endswith("...")
    assert len(out) <= 60


def test_hint_for_missing_api_key() -> None:
    hint = hint_for_exception("Missing API key. Set GEMINI_API_KEY (or GOOGLE_API_KEY)")
    assert "GEMINI_API_KEY" in hint


def test_hint_for_rejected_model() -> None:
    hint = hint_for_exception("Live session closed unexpectedly (code: 1008, reason: models/x is not found).")
    assert "--live-model" in hint


def test_hint_for_exception_default() -> None:
    assert hint_for_exception("RuntimeError: unknown") == "Check logs for full traceback."


def test_describe_error_variants() -> None:
    assert describe_error(None) == "Unknown Live API error."
    assert describe_error("") == "Unknown Live API error."
    assert describe_error("socket reset") == "socket reset"
    assert describe_error(ValueError("bad frame")) == "bad frame"
    assert describe_error(TimeoutError()) == "TimeoutError"
    assert describe_error({"code": 1011}) == '{"code": 1011}'
