"""Speech session schemas for playback configuration and status reporting."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SpeechOptions(BaseModel):
    """Per-session playback options."""

    model_config = ConfigDict(frozen=True)

    language: str = Field(
        default="en",
        description="Language passed to the speech engine with every render.",
    )

    engine: Literal["http", "silent"] = Field(
        default="http",
        description="Speech backend. 'http' calls an /audio/speech endpoint, 'silent' is a dry run.",
    )

    voice: str = Field(
        default="alloy",
        description="Voice profile used by the engine.",
    )

    base_interval: float = Field(
        default=0.1,
        ge=0,
        description="Pause in seconds between ordinary segments.",
    )

    long_interval_factor: float = Field(
        default=5.0,
        ge=1,
        description="Multiplier applied to the pause after a paragraph break.",
    )

    prefetch_count: int = Field(
        default=2,
        ge=0,
        le=16,
        description="Number of segments rendered ahead of the one playing.",
    )

    min_segment_length: int = Field(
        default=20,
        ge=1,
        description="Segments shorter than this are merged with the next one.",
    )

    highlight_style: str = Field(
        default="highlight",
        description="Style name applied to the active-segment marker.",
    )

    idle_threshold: float = Field(
        default=2.0,
        ge=0,
        description="Seconds the view must be idle before playback may scroll it.",
    )

    cache_ttl: float = Field(
        default=60.0,
        gt=0,
        description="Seconds a rendered segment stays reusable.",
    )


class SegmentRange(BaseModel):
    """A [start, end) span of document text."""

    start: int
    end: int


class SessionStatus(BaseModel):
    """Snapshot of the current (or most recent) speech session."""

    session_id: str | None = None
    state: str = "idle"
    position: int | None = None
    segment: SegmentRange | None = None
    highlight: SegmentRange | None = None
    message: str | None = None


def get_default_speech_options() -> SpeechOptions:
    """Return default speech options."""
    return SpeechOptions()
