"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas.speech import SpeechOptions

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Voice selection
    language: str = Field(
        default="en",
        validation_alias=AliasChoices("READALOUD_LANGUAGE", "language"),
    )
    engine: Literal["http", "silent"] = Field(
        default="http",
        validation_alias=AliasChoices("READALOUD_ENGINE", "engine"),
    )
    voice: str = Field(
        default="alloy",
        validation_alias=AliasChoices("READALOUD_VOICE", "voice"),
    )

    # Pacing
    base_interval: float = Field(
        default=0.1,
        ge=0,
        validation_alias=AliasChoices("READALOUD_BASE_INTERVAL", "base_interval"),
    )
    long_interval_factor: float = Field(
        default=5.0,
        ge=1,
        validation_alias=AliasChoices(
            "READALOUD_LONG_INTERVAL_FACTOR",
            "long_interval_factor",
        ),
    )
    prefetch_count: int = Field(
        default=2,
        ge=0,
        le=16,
        validation_alias=AliasChoices("READALOUD_PREFETCH_COUNT", "prefetch_count"),
    )
    min_segment_length: int = Field(
        default=20,
        ge=1,
        validation_alias=AliasChoices(
            "READALOUD_MIN_SEGMENT_LENGTH",
            "min_segment_length",
        ),
    )

    # View behaviour
    highlight_style: str = Field(
        default="highlight",
        validation_alias=AliasChoices("READALOUD_HIGHLIGHT_STYLE", "highlight_style"),
    )
    idle_threshold: float = Field(
        default=2.0,
        ge=0,
        validation_alias=AliasChoices("READALOUD_IDLE_THRESHOLD", "idle_threshold"),
    )
    cache_ttl: float = Field(
        default=60.0,
        gt=0,
        validation_alias=AliasChoices("READALOUD_CACHE_TTL", "cache_ttl"),
    )
    markdown: bool = Field(
        default=False,
        validation_alias=AliasChoices("READALOUD_MARKDOWN", "markdown"),
    )

    # HTTP speech backend (OpenAI-compatible /audio/speech)
    tts_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("TTS_BASE_URL", "tts_base_url"),
    )
    tts_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("TTS_API_KEY", "OPENAI_API_KEY", "tts_api_key"),
    )
    tts_model: str = Field(
        default="tts-1",
        validation_alias=AliasChoices("TTS_MODEL", "tts_model"),
    )
    tts_response_format: str = Field(
        default="mp3",
        validation_alias=AliasChoices("TTS_RESPONSE_FORMAT", "tts_response_format"),
    )
    tts_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("TTS_TIMEOUT", "tts_timeout"),
    )
    player_command: str = Field(
        default="ffplay -nodisp -autoexit -loglevel quiet",
        validation_alias=AliasChoices("READALOUD_PLAYER", "player_command"),
    )

    def speech_options(self) -> SpeechOptions:
        """Project the session-level settings into the options the core consumes."""

        return SpeechOptions(
            language=self.language,
            engine=self.engine,
            voice=self.voice,
            base_interval=self.base_interval,
            long_interval_factor=self.long_interval_factor,
            prefetch_count=self.prefetch_count,
            min_segment_length=self.min_segment_length,
            highlight_style=self.highlight_style,
            idle_threshold=self.idle_threshold,
            cache_ttl=self.cache_ttl,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
