from __future__ import annotations

import json
from pathlib import Path

import pytest

from livesub.app.config import ENV_OVERRIDES, resolve_args


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ENV_OVERRIDES.values():
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, payload: dict) -> Path:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(json.dumps(payload), encoding="utf-8")
    return cfg_path


def test_app_resolve_args_cli_overrides_config(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"target_lang": "ja", "sr": 16000, "poll_ms": 60})
    args = resolve_args(["--config", str(cfg_path), "--target-lang", "ko", "--poll-ms", "30"])
    assert args.target_lang == "ko"
    assert args.sr == 16000
    assert args.poll_ms == 30


def test_app_resolve_args_overlay_controls(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"overlay_opacity": 40, "overlay_position": "bottom_left"})
    args = resolve_args(
        ["--config", str(cfg_path), "--overlay-opacity", "75", "--overlay-position", "top_center", "--no-show-source"]
    )
    assert args.overlay_opacity == 75
    assert args.overlay_position == "top_center"
    assert args.show_source is False


def test_app_resolve_args_clamps_tuning(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"output_transcript_delay_ms": 20})
    args = resolve_args(
        [
            "--config",
            str(cfg_path),
            "--partial-debounce-ms",
            "10",
            "--max-translation-chars",
            "40",
        ]
    )
    assert args.partial_debounce_ms == 60
    assert args.max_translation_chars == 80
    assert args.output_transcript_delay_ms == 100


def test_app_resolve_args_config_only_keys(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"turn_final_min_chars": 2, "hotkey_pause": "Ctrl+P", "debug_server_every": 9})
    args = resolve_args(["--config", str(cfg_path)])
    assert args.turn_final_min_chars == 2
    assert args.hotkey_pause == "Ctrl+P"
    assert args.debug_server_every == 9


def test_app_resolve_args_environment_between_file_and_cli(tmp_path: Path, monkeypatch) -> None:
    cfg_path = _write(tmp_path, {"live_model": "file-live", "final_debounce_ms": 300})
    monkeypatch.setenv("GEMINI_LIVE_MODEL", "env-live")
    monkeypatch.setenv("FINAL_TRANSLATION_DEBOUNCE_MS", "150")
    args = resolve_args(["--config", str(cfg_path), "--final-debounce-ms", "110"])
    assert args.live_model == "env-live"
    assert args.final_debounce_ms == 110


def test_app_resolve_args_turn_and_queue_flags(tmp_path: Path, monkeypatch) -> None:
    cfg_path = _write(tmp_path, {"turn_final_min_chars": 3, "max_queued_audio": 100})
    monkeypatch.setenv("MAX_QUEUED_AUDIO", "200")
    args = resolve_args(["--config", str(cfg_path), "--turn-final-min-chars", "0"])
    assert args.turn_final_min_chars == 1
    assert args.max_queued_audio == 200
