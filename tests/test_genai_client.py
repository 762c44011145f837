from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from google.genai import types
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from livesub.app.config import BackendAuth
from livesub.backend.base import build_stream_config, build_system_prompt, is_native_audio_model
from livesub.backend.genai_client import (
    GenAIBackendClient,
    GenAIStreamHandle,
    build_live_config,
    close_details,
    extract_response_text,
    parse_server_message,
)
from livesub.contracts import AudioChunk
from livesub.errors import StreamRuntimeError, TranslationError


def _part(text):
    return SimpleNamespace(text=text)


def test_parse_server_message_without_content() -> None:
    assert parse_server_message(SimpleNamespace(server_content=None)) is None
    assert parse_server_message(SimpleNamespace(setup_complete=True)) is None


def test_parse_server_message_full_content() -> None:
    message = SimpleNamespace(
        server_content=SimpleNamespace(
            input_transcription=SimpleNamespace(text="Hello there", finished=True),
            model_turn=SimpleNamespace(parts=[_part("안녕"), _part(None), _part(""), _part("하세요")]),
            output_transcription=SimpleNamespace(text="안녕하세요"),
            turn_complete=True,
            generation_complete=False,
            interrupted=None,
        )
    )
    update = parse_server_message(message)
    assert update.source_text == "Hello there"
    assert update.source_finished is True
    assert update.target_fragments == ("안녕", "하세요")
    assert update.target_transcript == "안녕하세요"
    assert update.turn_complete is True
    assert update.generation_complete is False
    assert update.interrupted is False


def test_parse_server_message_partial_content() -> None:
    message = SimpleNamespace(
        server_content=SimpleNamespace(
            input_transcription=SimpleNamespace(text="Hel", finished=None),
            model_turn=None,
            output_transcription=None,
        )
    )
    update = parse_server_message(message)
    assert update.source_text == "Hel"
    assert update.source_finished is False
    assert update.target_fragments == ()
    assert update.target_transcript is None


def test_extract_response_text_joins_first_non_empty_candidate() -> None:
    response = SimpleNamespace(
        candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=[_part("  ")])),
            SimpleNamespace(content=SimpleNamespace(parts=[_part("안녕"), _part("하세요 ")])),
        ]
    )
    assert extract_response_text(response) == "안녕하세요"
    assert extract_response_text(SimpleNamespace(candidates=None)) == ""


def test_build_live_config_text_model() -> None:
    cfg = build_live_config(build_stream_config("gemini-2.0-flash-live-001", "en", "ko"))
    assert cfg.response_modalities == [types.Modality.TEXT]
    assert cfg.input_audio_transcription is not None
    assert cfg.output_audio_transcription is None
    assert "Korean" in cfg.system_instruction.parts[0].text


def test_build_live_config_native_audio_model() -> None:
    model = "gemini-live-2.5-flash-preview-native-audio-09-2025"
    assert is_native_audio_model(model)
    cfg = build_live_config(build_stream_config(model, "en", "ja"))
    assert cfg.response_modalities == [types.Modality.AUDIO]
    assert cfg.output_audio_transcription is not None


def test_system_prompt_names_languages() -> None:
    prompt = build_system_prompt("en", "ko")
    assert "English" in prompt
    assert "Return only Korean translation text." in prompt


def test_close_details_reads_received_frame() -> None:
    exc = ConnectionClosed(Close(1008, "model not found"), None)
    assert close_details(exc) == (1008, "model not found")


class _FakeModels:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, *, model, contents):
        self.calls.append((model, contents))
        if self.error is not None:
            raise self.error
        return self.response


def _client_with(models: _FakeModels) -> GenAIBackendClient:
    client = GenAIBackendClient(BackendAuth(use_vertex=False, api_key="k"), translation_model="flash-x")
    client._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return client


def test_translate_uses_translation_model() -> None:
    response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[_part("안녕")]))])
    models = _FakeModels(response=response)
    client = _client_with(models)

    assert asyncio.run(client.translate(" Hello ")) == "안녕"
    model, contents = models.calls[0]
    assert model == "flash-x"
    assert contents[0].parts[0].text.endswith("\n\nHello")


def test_translate_empty_input_skips_backend() -> None:
    models = _FakeModels()
    assert asyncio.run(_client_with(models).translate("   ")) == ""
    assert models.calls == []


def test_translate_wraps_backend_errors() -> None:
    client = _client_with(_FakeModels(error=RuntimeError("429 quota")))
    with pytest.raises(TranslationError, match="429 quota"):
        asyncio.run(client.translate("Hello"))


def test_closed_stream_handle_rejects_audio() -> None:
    async def scenario():
        handle = GenAIStreamHandle(None, "live-x", build_live_config(build_stream_config("live-x", "en", "ko")))
        await handle.close()
        events = [event async for event in handle.events()]
        with pytest.raises(StreamRuntimeError, match="closed"):
            handle.send(AudioChunk(b"\x00\x00"))
        handle.end_audio()
        return events

    events = asyncio.run(scenario())
    assert events[-1].reason == "client closed"
