from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}
TRANSCRIPTION_BACKENDS = {"openai", "local"}


def _parse_int(
    raw: str | None,
    *,
    default: int,
    minimum: int | None = None,
    name: str = "value",
) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        _logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        _logger.warning("%s=%s below minimum %s; clamping", name, value, minimum)
        return minimum
    return value


def _parse_float(
    raw: str | None,
    *,
    default: float,
    minimum: float | None = None,
    name: str = "value",
) -> float:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        _logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if value != value:
        _logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        _logger.warning("%s=%s below minimum %s; clamping", name, value, minimum)
        return minimum
    return value


def _parse_optional_id(raw: str | None, *, name: str) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        _logger.warning("Invalid %s=%s; ignoring", name, raw)
        return None


def _parse_bool(raw: str | None, *, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.lower() in TRUE_VALUES


@dataclass(frozen=True, slots=True)
class ModerationConfig:
    api_key: str
    model: str
    audit_channel_id: int | None
    video_max_frames: int
    video_download_timeout: float
    url_resolve_timeout: float


@dataclass(frozen=True, slots=True)
class VoiceConfig:
    channel_id: int | None
    channel_name: str | None
    debounce_ms: int
    silence_ms: int
    max_capture_seconds: float
    transcription_backend: str
    transcription_model: str
    local_whisper_model: str

    @property
    def has_target(self) -> bool:
        return self.channel_id is not None or bool(self.channel_name)


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    token: str
    log_level: str
    log_cog_loads: bool
    moderation: ModerationConfig
    voice: VoiceConfig


def _load_moderation_config() -> ModerationConfig:
    api_key = (os.getenv("OPENAI_API_KEY") or os.getenv("PRIMARY_OPENAI_KEY") or "").strip()
    return ModerationConfig(
        api_key=api_key,
        model=(os.getenv("MODERATION_MODEL") or "gpt-4o").strip(),
        audit_channel_id=_parse_optional_id(os.getenv("MOD_CHANNEL_ID"), name="MOD_CHANNEL_ID"),
        video_max_frames=_parse_int(
            os.getenv("VIDEO_MAX_FRAMES"),
            default=4,
            minimum=1,
            name="VIDEO_MAX_FRAMES",
        ),
        video_download_timeout=_parse_float(
            os.getenv("VIDEO_DOWNLOAD_TIMEOUT"),
            default=20.0,
            minimum=1.0,
            name="VIDEO_DOWNLOAD_TIMEOUT",
        ),
        url_resolve_timeout=_parse_float(
            os.getenv("URL_RESOLVE_TIMEOUT"),
            default=5.0,
            minimum=0.5,
            name="URL_RESOLVE_TIMEOUT",
        ),
    )


def _load_voice_config() -> VoiceConfig:
    backend = (os.getenv("TRANSCRIPTION_BACKEND") or "openai").strip().lower()
    if backend not in TRANSCRIPTION_BACKENDS:
        _logger.warning("Unknown TRANSCRIPTION_BACKEND=%s; using openai", backend)
        backend = "openai"

    channel_name = (os.getenv("VOICE_CHANNEL_NAME") or "").strip() or None
    return VoiceConfig(
        channel_id=_parse_optional_id(os.getenv("VOICE_CHANNEL_ID"), name="VOICE_CHANNEL_ID"),
        channel_name=channel_name,
        debounce_ms=_parse_int(
            os.getenv("VOICE_DEBOUNCE_MS"),
            default=1500,
            minimum=0,
            name="VOICE_DEBOUNCE_MS",
        ),
        silence_ms=_parse_int(
            os.getenv("VOICE_SILENCE_MS"),
            default=900,
            minimum=100,
            name="VOICE_SILENCE_MS",
        ),
        max_capture_seconds=_parse_float(
            os.getenv("VOICE_MAX_CAPTURE_SECONDS"),
            default=20.0,
            minimum=1.0,
            name="VOICE_MAX_CAPTURE_SECONDS",
        ),
        transcription_backend=backend,
        transcription_model=(os.getenv("TRANSCRIPTION_MODEL") or "whisper-1").strip(),
        local_whisper_model=(os.getenv("LOCAL_WHISPER_MODEL") or "small").strip(),
    )


def load_runtime_config() -> RuntimeConfig:
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN", "")
    log_level = os.getenv("LOG_LEVEL", "WARNING").upper()
    log_cog_loads = _parse_bool(os.getenv("LOG_COG_LOADS"), default=False)

    return RuntimeConfig(
        token=token,
        log_level=log_level,
        log_cog_loads=log_cog_loads,
        moderation=_load_moderation_config(),
        voice=_load_voice_config(),
    )
