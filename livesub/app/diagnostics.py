from __future__ import annotations

import json


def describe_error(error: object) -> str:
    """One-line message for any error value the backend or a callback may hand us."""
    if error is None:
        return "Unknown Live API error."
    if isinstance(error, str):
        return error or "Unknown Live API error."
    if isinstance(error, BaseException):
        text = str(error).strip()
        return text or type(error).__name__
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    try:
        return json.dumps(error, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(error)


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    for ln in reversed(lines):
        if ln.startswith(("File ", "^", "Traceback ")):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "gemini_api_key" in s or "missing api key" in s:
        return "Set GEMINI_API_KEY in the environment, or configure Vertex OAuth, then press Start again."
    if "vertex_api_key" in s:
        return "Vertex API keys cannot open Live sessions. Use a Gemini API key or ADC login."
    if "google_cloud_project" in s or "application-default" in s:
        return "Vertex mode needs GOOGLE_CLOUD_PROJECT and `gcloud auth application-default login`."
    if "not found" in s or "not supported for bidigenera" in s:
        return "The live model was rejected. Pick another model with --live-model."
    if "closed unexpectedly" in s:
        return "The live session dropped. Press Start to reconnect."
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "microphone" in s or "sounddevice" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    return "Check logs for full traceback."
