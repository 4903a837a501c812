"""Failure taxonomy for speech sessions."""

from __future__ import annotations

import asyncio
from enum import Enum


class FailureKind(str, Enum):
    """Why a stage of a speech session stopped."""

    CANCELLED = "cancelled"
    RENDER = "render"
    PLAYBACK = "playback"


class SpeechError(Exception):
    """Base error raised by engines and the render pipeline."""

    kind: FailureKind = FailureKind.RENDER

    def __init__(self, message: str = "", *, kind: FailureKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    @property
    def is_cancel(self) -> bool:
        return self.kind is FailureKind.CANCELLED


class SpeechCancelled(SpeechError):
    """An engine call was stopped on request; never reported as an error."""

    kind = FailureKind.CANCELLED


class RenderFailure(SpeechError):
    """The engine could not produce audio for a segment."""

    kind = FailureKind.RENDER


class PlaybackFailure(SpeechError):
    """The engine could not play rendered audio."""

    kind = FailureKind.PLAYBACK


def is_cancellation(exc: BaseException) -> bool:
    """Return True for user-initiated stops, whatever form they arrive in."""
    if isinstance(exc, asyncio.CancelledError):
        return True
    return isinstance(exc, SpeechError) and exc.is_cancel


__all__ = [
    "FailureKind",
    "PlaybackFailure",
    "RenderFailure",
    "SpeechCancelled",
    "SpeechError",
    "is_cancellation",
]
