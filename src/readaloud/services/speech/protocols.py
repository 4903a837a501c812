"""Interfaces the playback core expects from its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class VoiceConfig:
    """The voice/engine configuration a render is keyed by."""

    engine: str
    voice: str
    language: str


@dataclass
class AudioClip:
    """Rendered audio for one segment."""

    text: str
    data: bytes = b""
    media_type: str = "audio/mpeg"
    duration: float | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Marker:
    """A styled region of a document view."""

    marker_id: int
    start: int
    end: int
    style: str


@runtime_checkable
class SpeechEngine(Protocol):
    """Renders text to audio and plays it back.

    Both calls must stop promptly when the awaiting task is cancelled.
    """

    async def render(
        self, text: str, language: str, voice: VoiceConfig
    ) -> AudioClip: ...

    async def play(self, clip: AudioClip) -> None: ...


@runtime_checkable
class DocumentView(Protocol):
    """The document being read and the window showing it."""

    def __len__(self) -> int: ...

    @property
    def text(self) -> str: ...

    @property
    def is_live(self) -> bool: ...

    def read_range(self, start: int, end: int) -> str: ...

    def get_cursor(self) -> int: ...

    def set_cursor(self, position: int) -> None: ...

    def create_or_move_marker(
        self, marker: Marker | None, start: int, end: int, style: str
    ) -> Marker: ...

    def remove_marker(self, marker: Marker) -> None: ...

    def is_visible(self, position: int) -> bool: ...

    def scroll_into_view(self, position: int, center: bool) -> None: ...

    def is_focused(self) -> bool: ...

    def idle_seconds(self) -> float: ...


__all__ = ["AudioClip", "DocumentView", "Marker", "SpeechEngine", "VoiceConfig"]
