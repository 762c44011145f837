from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from livesub.app.config import resolve_backend_auth, resolve_models
from livesub.audio.mic import SoundDeviceMicSource
from livesub.backend.genai_client import GenAIBackendClient
from livesub.live.emitter import EventEmitter
from livesub.live.session import LiveSession
from livesub.live.settings import CaptionSettings, DebugSampling, SessionSettings, TranslationSettings


@dataclass(frozen=True)
class LiveCaptionServices:
    mic: SoundDeviceMicSource
    client: GenAIBackendClient
    emitter: EventEmitter
    session: LiveSession


def session_settings_from_args(args: Any, *, auth_mode: str, primary: str, fallback: str) -> SessionSettings:
    target_lang = str(args.target_lang)
    return SessionSettings(
        primary_model=primary,
        fallback_model=fallback,
        auth_mode=auth_mode,
        source_lang=str(args.source_lang),
        target_lang=target_lang,
        max_queued_audio=int(args.max_queued_audio),
        captions=CaptionSettings(
            target_lang=target_lang,
            output_transcript_delay_sec=int(args.output_transcript_delay_ms) / 1000.0,
            turn_final_ratio=float(args.turn_final_ratio),
            turn_final_cap=int(args.turn_final_cap),
            turn_final_min_chars=int(args.turn_final_min_chars),
        ),
        translation=TranslationSettings(
            partial_debounce_sec=int(args.partial_debounce_ms) / 1000.0,
            final_debounce_sec=int(args.final_debounce_ms) / 1000.0,
            partial_min_chars=int(args.partial_min_chars),
            max_translation_chars=int(args.max_translation_chars),
        ),
        sampling=DebugSampling(
            audio_every=int(args.debug_audio_every),
            server_every=int(args.debug_server_every),
            caption_every=int(args.debug_caption_every),
        ),
    )


def build_emitter(settings: SessionSettings, logger: Optional[logging.Logger] = None) -> EventEmitter:
    sampling = settings.sampling
    return EventEmitter(
        logger=logger,
        sample_every={
            "audio": sampling.audio_every,
            "audio_sent": sampling.audio_every,
            "audio_dropped": sampling.audio_every,
            "server": sampling.server_every,
            "caption": sampling.caption_every,
        },
    )


def build_live_caption_services(
    args: Any,
    *,
    environ: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> LiveCaptionServices:
    auth = resolve_backend_auth(environ)
    primary, fallback, translation_model = resolve_models(args, auth)
    settings = session_settings_from_args(args, auth_mode=auth.mode, primary=primary, fallback=fallback)
    session_logger = logger.getChild("session") if logger is not None else None

    client = GenAIBackendClient(
        auth,
        translation_model=translation_model,
        source_lang=settings.source_lang,
        target_lang=settings.target_lang,
        logger=session_logger,
    )
    emitter = build_emitter(settings, logger=session_logger)
    session = LiveSession(client, settings, emitter, logger=session_logger)
    mic = SoundDeviceMicSource(
        chunk_seconds=float(args.chunk_sec),
        sample_rate=int(args.sr),
        channels=int(args.channels),
        device=args.device,
    )
    return LiveCaptionServices(mic=mic, client=client, emitter=emitter, session=session)
