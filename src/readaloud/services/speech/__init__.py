"""
Read-Aloud Services Package.

This package contains the asynchronous playback core:

- segmenter: Computes sentence/paragraph bounds from a document position
- cache: Time-limited store of rendered audio keyed by (text, voice)
- pipeline: Renders the next segment and prefetches the ones after it
- controller: State machine driving render → play → advance → delay
- sync: Keeps the highlight marker and view on the segment being read
- session: The single active session and its start/interrupt lifecycle

Architecture Overview:

    ┌──────────────┐     ┌───────────┐     ┌────────────────┐     ┌────────────┐
    │ DocumentView │────▶│ Segmenter │────▶│ RenderPipeline │────▶│ RenderCache│
    └──────────────┘     └───────────┘     └────────────────┘     └────────────┘
                                                   │                     │
                                                   ▼                     ▼
                                          ┌────────────────────┐  ┌────────────┐
                                          │ PlaybackController │─▶│SpeechEngine│
                                          └────────────────────┘  └────────────┘
                                                   │
                                                   ▼
                                           ┌───────────────┐
                                           │ HighlightSync │
                                           └───────────────┘

The controller keeps exactly one main stage (render, play or delay) pending
through the session's CancelToken; prefetch renders run beside it and their
failures are discarded.
"""

from .controller import PlaybackController, PlaybackState
from .errors import PlaybackFailure, RenderFailure, SpeechCancelled, SpeechError
from .filters import collapse_whitespace, strip_markdown
from .protocols import AudioClip, DocumentView, Marker, SpeechEngine, VoiceConfig
from .segmenter import MarkdownStepPolicy, SegmentBounds, Segmenter, SentenceStepPolicy
from .session import Session, SessionManager

__all__ = [
    "AudioClip",
    "DocumentView",
    "MarkdownStepPolicy",
    "Marker",
    "PlaybackController",
    "PlaybackFailure",
    "PlaybackState",
    "RenderFailure",
    "SegmentBounds",
    "Segmenter",
    "SentenceStepPolicy",
    "Session",
    "SessionManager",
    "SpeechCancelled",
    "SpeechEngine",
    "SpeechError",
    "VoiceConfig",
    "collapse_whitespace",
    "strip_markdown",
]
