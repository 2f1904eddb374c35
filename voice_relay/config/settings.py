"""
Process-wide relay configuration.

Settings are read from the environment (and an optional ``.env`` file) exactly
once at startup, validated into an immutable ``RelaySettings`` instance and then
handed to the listener. Nothing mutates them afterwards; per-session state such
as the current transcription language lives on the relay session.
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voice_relay.config.constants import (
    AUDIO_FORMAT_PCM16,
    DEFAULT_HOST,
    DEFAULT_LANGUAGE,
    DEFAULT_PORT,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VOICE,
    LOGGER_NAME,
    OPENAI_API_BASE,
    OPENAI_REALTIME_URL,
)
from voice_relay.config.prompts import DEFAULT_INSTRUCTIONS
from voice_relay.exceptions import ConfigurationError

logger = logging.getLogger(LOGGER_NAME)


class VadSettings(BaseModel):
    """Server-side voice activity detection parameters.

    ``silence_duration_ms`` decides when the upstream service considers the
    user's turn finished. Telephony callers pause to think, so the default is
    several seconds; short values cut people off mid-sentence.
    """

    model_config = ConfigDict(frozen=True)

    threshold: float = Field(0.5, ge=0.0, le=1.0)
    prefix_padding_ms: int = Field(300, ge=0)
    silence_duration_ms: int = Field(2500, ge=0)


class RelaySettings(BaseModel):
    """Immutable configuration shared by every relay session."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1)
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    default_language: str = DEFAULT_LANGUAGE
    instructions: str = DEFAULT_INSTRUCTIONS
    input_audio_format: str = AUDIO_FORMAT_PCM16
    output_audio_format: str = AUDIO_FORMAT_PCM16
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    temperature: float = Field(0.7, ge=0.6, le=1.2)
    vad: VadSettings = VadSettings()

    api_base: str = OPENAI_API_BASE
    realtime_url: str = OPENAI_REALTIME_URL
    search_endpoint: Optional[str] = None

    # Timings, in seconds
    credential_timeout: float = 10.0
    connect_timeout: float = 30.0
    search_timeout: float = 30.0
    settle_delay: float = 0.2
    greeting_delay: float = 0.5
    tool_result_delay: float = 0.1
    close_timeout: float = 5.0

    @property
    def web_search_enabled(self) -> bool:
        return bool(self.search_endpoint)


def _coerce_int(value: Any, default: int, *, minimum: Optional[int] = None) -> int:
    """Convert arbitrary values to bounded integers with a fallback."""
    try:
        coerced = int(value)
    except (TypeError, ValueError):
        coerced = default
    if minimum is not None:
        coerced = max(minimum, coerced)
    return coerced


def _coerce_float(value: Any, default: float, *, minimum: Optional[float] = None,
                  maximum: Optional[float] = None) -> float:
    """Convert arbitrary values to bounded floats with a fallback."""
    try:
        coerced = float(value)
    except (TypeError, ValueError):
        coerced = default
    if minimum is not None:
        coerced = max(minimum, coerced)
    if maximum is not None:
        coerced = min(maximum, coerced)
    return coerced


def load_env_file(env_file: Optional[Path] = None) -> bool:
    """Load a ``.env`` file into ``os.environ``; existing variables win."""
    env_path = env_file or Path(".") / ".env"
    if not env_path.exists():
        return False
    return dotenv.load_dotenv(env_path)


def load_settings(environ: Optional[Mapping[str, str]] = None,
                  env_file: Optional[Path] = None) -> RelaySettings:
    """
    Build the relay settings from environment variables.

    Args:
        environ: Mapping to read from instead of ``os.environ``
        env_file: ``.env`` file loaded into ``os.environ`` when reading the real environment

    Returns:
        RelaySettings: The validated, immutable settings

    Raises:
        ConfigurationError: If OPENAI_API_KEY is missing
    """
    if environ is None:
        load_env_file(env_file)
        environ = os.environ

    api_key = (environ.get("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable not set")

    vad = VadSettings(
        threshold=_coerce_float(environ.get("VAD_THRESHOLD"), 0.5, minimum=0.0, maximum=1.0),
        prefix_padding_ms=_coerce_int(environ.get("VAD_PREFIX_PADDING_MS"), 300, minimum=0),
        silence_duration_ms=_coerce_int(environ.get("VAD_SILENCE_DURATION_MS"), 2500, minimum=0),
    )

    try:
        settings = RelaySettings(
            api_key=api_key,
            host=environ.get("HOST", DEFAULT_HOST),
            port=_coerce_int(environ.get("PORT"), DEFAULT_PORT, minimum=1),
            model=environ.get("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            voice=environ.get("VOICE", DEFAULT_VOICE),
            default_language=environ.get("DEFAULT_LANGUAGE", DEFAULT_LANGUAGE),
            instructions=environ.get("INSTRUCTIONS") or DEFAULT_INSTRUCTIONS,
            temperature=_coerce_float(environ.get("TEMPERATURE"), 0.7, minimum=0.6, maximum=1.2),
            vad=vad,
            search_endpoint=environ.get("SEARCH_ENDPOINT") or None,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid relay configuration: {e}") from e
    logger.debug(
        f"Settings loaded: model={settings.model}, voice={settings.voice}, "
        f"vad_silence={settings.vad.silence_duration_ms}ms, web_search={settings.web_search_enabled}"
    )
    return settings
