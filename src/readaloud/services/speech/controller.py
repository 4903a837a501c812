"""
Playback Controller for Document Read-Aloud.

The controller drives one session through an explicit state machine:

    IDLE → FETCHING → PLAYING → DELAYING → FETCHING ... → FINISHED
                                      (any) → CANCELLED | ERROR

Each non-terminal state has a handler that performs the work of leaving it
and returns the next state. At most one main stage (render, play or delay) is
outstanding at a time, always through the session's cancel token; background
prefetches are the only concurrent work.

Ordering per segment i:
    render(i) → highlight(i) → play(i) → marker at end(i) → delay → render(i+1)

Cancellation is checked at every stage boundary, so nothing is committed
(highlight, playback, position) once a cancel has been observed.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from .errors import PlaybackFailure, SpeechError, is_cancellation
from .filters import TextFilter, collapse_whitespace
from .pipeline import RenderPipeline
from .protocols import AudioClip
from .segmenter import Segmenter

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    """States of a speech session."""

    IDLE = "idle"
    FETCHING = "fetching"
    PLAYING = "playing"
    DELAYING = "delaying"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_STATES = frozenset(
    {PlaybackState.FINISHED, PlaybackState.CANCELLED, PlaybackState.ERROR}
)


class PlaybackController:
    """
    Runs segmentation → render → play → advance → delay for one session.

    Attributes:
        session: The session being driven (position, state, highlight, token)
        segmenter: Computes upcoming segment bounds
        pipeline: Renders the next segment and prefetches the ones after it
    """

    def __init__(
        self,
        session: "Session",
        segmenter: Segmenter,
        pipeline: RenderPipeline,
        *,
        text_filter: TextFilter = collapse_whitespace,
        base_interval: float = 0.1,
        long_interval_factor: float = 5.0,
        prefetch_count: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_finished: Optional[Callable[["Session"], None]] = None,
        notify: Optional[Callable[["Session", str], None]] = None,
    ):
        self.session = session
        self.segmenter = segmenter
        self.pipeline = pipeline
        self.text_filter = text_filter
        self.base_interval = base_interval
        self.long_interval_factor = long_interval_factor
        self.prefetch_count = prefetch_count
        self._sleep = sleep
        self._on_finished = on_finished
        self._notify = notify

        self._upcoming: list[str] = []
        self._clip: AudioClip | None = None
        self._handlers: dict[
            PlaybackState, Callable[[], Awaitable[PlaybackState]]
        ] = {
            PlaybackState.IDLE: self._begin,
            PlaybackState.FETCHING: self._fetch,
            PlaybackState.PLAYING: self._play,
            PlaybackState.DELAYING: self._delay,
        }

    def delay_for(self, hard_break: bool) -> float:
        """Pause after a segment; longer when it ended at a paragraph break."""
        if hard_break:
            return self.long_interval_factor * self.base_interval
        return self.base_interval

    async def run(self) -> PlaybackState:
        """Drive the session until it finishes, is cancelled or fails."""
        session = self.session
        try:
            while session.state not in TERMINAL_STATES:
                session.token.check()
                handler = self._handlers[session.state]
                self._transition(await handler())
        except asyncio.CancelledError:
            self._cancelled()
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
        except SpeechError as exc:
            if is_cancellation(exc) or session.token.cancelled:
                self._cancelled()
            else:
                self._failed(exc)
        except Exception as exc:
            logger.error(f"Speech session {session.session_id} crashed: {exc}", exc_info=True)
            self._failed(exc)

        if session.state is PlaybackState.FINISHED:
            self._finished()
        return session.state

    def _transition(self, state: PlaybackState) -> None:
        logger.debug(
            f"Session {self.session.session_id}: {self.session.state.value} → {state.value}"
        )
        self.session.state = state

    # State handlers

    async def _begin(self) -> PlaybackState:
        logger.info(
            f"Speech session {self.session.session_id} starting at {self.session.position}"
        )
        return PlaybackState.FETCHING

    async def _fetch(self) -> PlaybackState:
        session = self.session
        batch = self.segmenter.next_bounds(session.position, self.prefetch_count + 1)
        if not batch:
            return PlaybackState.FINISHED

        texts = [
            self.text_filter(session.view.read_range(bounds.start, bounds.end))
            for bounds in batch
        ]
        current = batch[0]
        session.current = current

        if not texts[0]:
            logger.debug(f"Skipping empty segment {current.start}-{current.end}")
            session.position = current.end
            return PlaybackState.FETCHING

        render = session.token.start(
            self.pipeline.render_first(texts[0]), name="speech-render"
        )
        self._upcoming = [text for text in texts[1:] if text]
        self.pipeline.prefetch_rest(self._upcoming)
        self._clip = await session.token.wait(render)

        session.highlight.show(current)
        return PlaybackState.PLAYING

    async def _play(self) -> PlaybackState:
        session = self.session
        clip, self._clip = self._clip, None
        await session.token.run(self._play_clip(clip), name="speech-play")

        self.pipeline.cache.clear(keep=[self.pipeline.key(t) for t in self._upcoming])
        session.highlight.mark_finished(session.current.end)
        return PlaybackState.DELAYING

    async def _play_clip(self, clip: AudioClip) -> None:
        try:
            await self.pipeline.engine.play(clip)
        except (SpeechError, asyncio.CancelledError):
            raise
        except Exception as exc:
            raise PlaybackFailure(f"Playback failed: {exc}") from exc

    async def _delay(self) -> PlaybackState:
        session = self.session
        current = session.current
        await session.token.run(
            self._sleep(self.delay_for(current.hard_break)), name="speech-delay"
        )
        session.position = current.end
        return PlaybackState.FETCHING

    # Terminal transitions

    def _teardown(self) -> None:
        self.pipeline.cancel()
        self.session.highlight.clear()
        self.session.token.release()

    def _cancelled(self) -> None:
        if self.session.state is not PlaybackState.CANCELLED:
            self._transition(PlaybackState.CANCELLED)
        self._teardown()
        logger.info(f"Speech session {self.session.session_id} interrupted")

    def _failed(self, exc: BaseException) -> None:
        self._transition(PlaybackState.ERROR)
        self._teardown()
        message = str(exc) or exc.__class__.__name__
        logger.error(f"Speech session {self.session.session_id} failed: {message}")
        self.session.message = message
        if self._notify:
            self._run_callback(self._notify, self.session, message)

    def _finished(self) -> None:
        self._teardown()
        logger.info(f"Speech session {self.session.session_id} finished")
        if self._on_finished is not None:
            self._run_callback(self._on_finished, self.session)
        elif self._notify:
            self._run_callback(self._notify, self.session, "Finished reading")

    def _run_callback(self, callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception as exc:
            logger.error(
                f"Speech session {self.session.session_id} callback raised: {exc}",
                exc_info=exc,
            )


__all__ = ["PlaybackController", "PlaybackState", "TERMINAL_STATES"]
