from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from platformdirs import user_config_dir

from livesub.errors import ConfigurationError

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "sr": 16000,
    "channels": 1,
    "chunk_sec": 0.1,
    "debug": False,
    "source_lang": "en",
    "target_lang": "ko",
    "live_model": None,
    "fallback_model": None,
    "translation_model": None,
    "partial_debounce_ms": 120,
    "final_debounce_ms": 90,
    "partial_min_chars": 5,
    "output_transcript_delay_ms": 700,
    "max_translation_chars": 180,
    "turn_final_ratio": 0.3,
    "turn_final_cap": 6,
    "turn_final_min_chars": 1,
    "max_queued_audio": 400,
    "debug_audio_every": 5,
    "debug_server_every": 5,
    "debug_caption_every": 3,
    "show_source": True,
    "max_lines": 3,
    "font_size_target": 28,
    "font_size_source": 16,
    "padding_px": 14,
    "overlay_text_selectable": False,
    "hotkey_toggle_source": "H",
    "hotkey_font_inc": "+",
    "hotkey_font_dec": "-",
    "hotkey_pause": "P",
    "hotkey_quit": "Esc",
    "overlay_opacity": 66,
    "overlay_position": "bottom_center",
    "poll_ms": 60,
    "queue_maxsize": 200,
    "max_updates_per_tick": 40,
    "print_console": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())

# Environment names kept compatible with existing .env files of the desktop app.
ENV_OVERRIDES: dict[str, str] = {
    "live_model": "GEMINI_LIVE_MODEL",
    "fallback_model": "GEMINI_FALLBACK_LIVE_MODEL",
    "translation_model": "GEMINI_TRANSLATION_MODEL",
    "partial_debounce_ms": "PARTIAL_TRANSLATION_DEBOUNCE_MS",
    "final_debounce_ms": "FINAL_TRANSLATION_DEBOUNCE_MS",
    "partial_min_chars": "PARTIAL_TRANSLATION_MIN_CHARS",
    "output_transcript_delay_ms": "OUTPUT_STREAM_FALLBACK_DELAY_MS",
    "max_translation_chars": "MAX_TRANSLATION_CHARS",
    "turn_final_ratio": "TURN_FINAL_RATIO",
    "turn_final_cap": "TURN_FINAL_CAP",
    "turn_final_min_chars": "TURN_FINAL_MIN_CHARS",
    "max_queued_audio": "MAX_QUEUED_AUDIO",
    "debug_audio_every": "DEBUG_AUDIO_LOG_EVERY",
    "debug_server_every": "DEBUG_SERVER_LOG_EVERY",
    "debug_caption_every": "DEBUG_CAPTION_LOG_EVERY",
    "source_lang": "LIVESUB_SOURCE_LANG",
    "target_lang": "LIVESUB_TARGET_LANG",
}

# key -> lower bound applied before the values reach the session
CLAMPS: dict[str, float] = {
    "partial_debounce_ms": 60,
    "final_debounce_ms": 60,
    "partial_min_chars": 1,
    "output_transcript_delay_ms": 100,
    "max_translation_chars": 80,
    "turn_final_ratio": 0.0,
    "turn_final_cap": 0,
    "turn_final_min_chars": 1,
    "max_queued_audio": 1,
    "debug_audio_every": 1,
    "debug_server_every": 1,
    "debug_caption_every": 1,
}

VERTEX_PRIMARY_MODEL = "gemini-2.0-flash-live-preview-04-09"
VERTEX_FALLBACK_MODEL = "gemini-live-2.5-flash-preview-native-audio-09-2025"
API_KEY_PRIMARY_MODEL = "gemini-2.0-flash-live-001"
API_KEY_FALLBACK_MODEL = "gemini-2.0-flash-live-001"
DEFAULT_TRANSLATION_MODEL = "gemini-2.0-flash"


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("LiveSub", "LiveSub"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def is_truthy(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class BackendAuth:
    use_vertex: bool
    api_key: str | None = None
    project: str | None = None
    location: str = "us-central1"
    api_version: str = "v1beta"
    has_vertex_api_key: bool = False

    @property
    def mode(self) -> str:
        return "Vertex OAuth" if self.use_vertex else "API Key"

    def validate(self) -> None:
        if self.use_vertex:
            if not self.project:
                raise ConfigurationError(
                    "Vertex mode requires GOOGLE_CLOUD_PROJECT (or GCLOUD_PROJECT). "
                    "Also run: gcloud auth application-default login"
                )
            return
        if self.api_key:
            return
        if self.has_vertex_api_key:
            raise ConfigurationError(
                "VERTEX_API_KEY is not valid for Live API auth. "
                "Use Gemini API key (GEMINI_API_KEY) or Vertex OAuth "
                "(GOOGLE_GENAI_USE_VERTEXAI=true, GOOGLE_CLOUD_PROJECT, ADC login)."
            )
        raise ConfigurationError(
            "Missing API key. Set GEMINI_API_KEY (or GOOGLE_API_KEY), "
            "or enable Vertex OAuth with GOOGLE_GENAI_USE_VERTEXAI=true and GOOGLE_CLOUD_PROJECT."
        )


def resolve_backend_auth(environ: Mapping[str, str] | None = None) -> BackendAuth:
    env = os.environ if environ is None else environ
    project = env.get("GOOGLE_CLOUD_PROJECT") or env.get("GCLOUD_PROJECT") or env.get("VERTEX_PROJECT_ID")
    use_vertex = (
        is_truthy(env.get("GOOGLE_GENAI_USE_VERTEXAI"))
        or is_truthy(env.get("USE_VERTEXAI"))
        or bool(project)
    )
    api_version = (
        env.get("GOOGLE_GENAI_API_VERSION")
        or env.get("GENAI_API_VERSION")
        or ("v1" if use_vertex else "v1beta")
    )
    return BackendAuth(
        use_vertex=use_vertex,
        api_key=env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY") or None,
        project=project or None,
        location=env.get("GOOGLE_CLOUD_LOCATION") or env.get("VERTEX_LOCATION") or "us-central1",
        api_version=api_version,
        has_vertex_api_key=bool(env.get("VERTEX_API_KEY") or env.get("vertex_api_key")),
    )


def resolve_models(args: Any, auth: BackendAuth) -> tuple[str, str, str]:
    """(primary live model, fallback live model, translation model)"""
    primary = str(getattr(args, "live_model", None) or "").strip()
    fallback = str(getattr(args, "fallback_model", None) or "").strip()
    translation = str(getattr(args, "translation_model", None) or "").strip()
    if auth.use_vertex:
        primary = primary or VERTEX_PRIMARY_MODEL
        fallback = fallback or VERTEX_FALLBACK_MODEL
    else:
        primary = primary or API_KEY_PRIMARY_MODEL
        fallback = fallback or API_KEY_FALLBACK_MODEL
    return primary, fallback, translation or DEFAULT_TRANSLATION_MODEL


def _coerce_like(default: Any, raw: str) -> Any:
    if isinstance(default, bool):
        return is_truthy(raw)
    if isinstance(default, int):
        return int(float(raw))
    if isinstance(default, float):
        return float(raw)
    return raw.strip()


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    out: dict[str, Any] = {}
    for key, name in ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or not raw.strip():
            continue
        try:
            value = _coerce_like(DEFAULTS[key], raw)
        except ValueError:
            # Unparseable numbers fall back to the configured value.
            continue
        if isinstance(value, str) and not value:
            continue
        # Zero means "unset" unless zero is a valid setting for the key.
        if not isinstance(value, bool) and value == 0 and CLAMPS.get(key) != 0:
            continue
        out[key] = value
    return out


def clamp_value(key: str, value: Any) -> Any:
    floor = CLAMPS.get(key)
    if floor is None:
        return value
    return max(type(DEFAULTS[key])(floor), value)


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: payload[key] for key in CONFIG_KEYS if key in payload}


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or copy.deepcopy(DEFAULTS))
    return paths.config_path


def load_user_config(
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[dict[str, Any], Path]:
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists()
    merged = copy.deepcopy(DEFAULTS)
    merged.update(_known_only(_load_json_dict(chosen)))
    merged.update(env_overrides(environ))
    return merged, chosen


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="livesub")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sr", type=int, default=defaults["sr"], help="capture sample rate (Hz)")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument("--chunk-sec", type=float, default=defaults["chunk_sec"], help="audio chunk size in seconds")
    p.add_argument("--debug", action="store_true", help="log sampled debug events")
    p.add_argument("--source-lang", default=defaults["source_lang"], help="speaker language code")
    p.add_argument("--target-lang", default=defaults["target_lang"], help="subtitle language code")
    p.add_argument("--live-model", default=defaults["live_model"], help="primary streaming model")
    p.add_argument(
        "--fallback-model",
        default=defaults["fallback_model"],
        help="model retried once when the primary one is rejected",
    )
    p.add_argument("--translation-model", default=defaults["translation_model"], help="batch translation model")
    p.add_argument(
        "--partial-debounce-ms",
        type=int,
        default=defaults["partial_debounce_ms"],
        help="fallback translation delay for partial text",
    )
    p.add_argument(
        "--final-debounce-ms",
        type=int,
        default=defaults["final_debounce_ms"],
        help="fallback translation delay for final text",
    )
    p.add_argument(
        "--partial-min-chars",
        type=int,
        default=defaults["partial_min_chars"],
        help="skip fallback translation of shorter partial text",
    )
    p.add_argument(
        "--output-transcript-delay-ms",
        type=int,
        default=defaults["output_transcript_delay_ms"],
        help="ignore synthesized-voice transcript this soon after new speech",
    )
    p.add_argument(
        "--max-translation-chars",
        type=int,
        default=defaults["max_translation_chars"],
        help="tail length sent to the fallback translator",
    )
    p.add_argument(
        "--turn-final-ratio",
        type=float,
        default=defaults["turn_final_ratio"],
        help="min target/source length ratio for accepting a finished turn",
    )
    p.add_argument(
        "--turn-final-cap",
        type=int,
        default=defaults["turn_final_cap"],
        help="upper bound on the length a finished turn must reach",
    )
    p.add_argument(
        "--turn-final-min-chars",
        type=int,
        default=defaults["turn_final_min_chars"],
        help="shortest target text that can finish a turn",
    )
    p.add_argument(
        "--max-queued-audio",
        type=int,
        default=defaults["max_queued_audio"],
        help="audio chunks held while the live session connects",
    )
    p.add_argument(
        "--show-source",
        action=argparse.BooleanOptionalAction,
        default=defaults["show_source"],
        help="show/hide the source language line in the overlay",
    )
    p.add_argument("--max-lines", type=int, default=defaults["max_lines"], help="visible caption lines")
    p.add_argument("--font-size-target", type=int, default=defaults["font_size_target"], help="target font size")
    p.add_argument("--font-size-source", type=int, default=defaults["font_size_source"], help="source font size")
    p.add_argument("--padding-px", type=int, default=defaults["padding_px"], help="overlay panel padding")
    p.add_argument(
        "--overlay-text-selectable",
        action=argparse.BooleanOptionalAction,
        default=defaults["overlay_text_selectable"],
        help="allow selecting/copying overlay text",
    )
    p.add_argument(
        "--overlay-opacity",
        type=int,
        default=defaults["overlay_opacity"],
        help="overlay background opacity (0-100)",
    )
    p.add_argument(
        "--overlay-position",
        default=defaults["overlay_position"],
        choices=["bottom_center", "bottom_left", "top_center", "custom"],
        help="overlay position preset",
    )
    p.add_argument("--poll-ms", type=int, default=defaults["poll_ms"], help="UI event poll interval (ms)")
    p.add_argument(
        "--queue-maxsize",
        type=int,
        default=defaults["queue_maxsize"],
        help="max events buffered between session and UI",
    )
    p.add_argument(
        "--max-updates-per-tick",
        type=int,
        default=defaults["max_updates_per_tick"],
        help="max events applied per UI timer tick",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print final captions to the console",
    )
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    # Keys without a CLI flag still come from the config file.
    for key in CONFIG_KEYS:
        if not hasattr(args, key):
            setattr(args, key, defaults[key])
    for key in CLAMPS:
        setattr(args, key, clamp_value(key, getattr(args, key)))
    return args
