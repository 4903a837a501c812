"""Speech sessions and the manager that owns the single active one."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from readaloud.schemas.speech import SegmentRange, SessionStatus, SpeechOptions

from .cache import RenderCache
from .cancellation import CancelToken
from .controller import TERMINAL_STATES, PlaybackController, PlaybackState
from .filters import TextFilter, collapse_whitespace
from .pipeline import RenderPipeline
from .protocols import DocumentView, SpeechEngine, VoiceConfig
from .segmenter import SegmentationPolicy, SegmentBounds, Segmenter, SentenceStepPolicy
from .sync import HighlightSync

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Tracks the state of one read-aloud operation."""

    view: DocumentView
    position: int
    highlight: HighlightSync
    pipeline: RenderPipeline
    token: CancelToken = field(default_factory=CancelToken)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: PlaybackState = PlaybackState.IDLE
    current: SegmentBounds | None = None
    message: str | None = None
    runner: asyncio.Task[PlaybackState] | None = None

    @property
    def active(self) -> bool:
        return self.state not in TERMINAL_STATES

    async def wait(self) -> PlaybackState:
        """Wait for the session's controller to stop and return the final state."""
        if self.runner is not None:
            try:
                await asyncio.shield(self.runner)
            except asyncio.CancelledError:
                if self.runner.cancelled():
                    return self.state
                raise
        return self.state

    def snapshot(self) -> SessionStatus:
        marker = self.highlight.marker
        return SessionStatus(
            session_id=self.session_id,
            state=self.state.value,
            position=self.position,
            segment=(
                SegmentRange(start=self.current.start, end=self.current.end)
                if self.current
                else None
            ),
            highlight=(
                SegmentRange(start=marker.start, end=marker.end) if marker else None
            ),
            message=self.message,
        )


CompletionHandler = Callable[["SessionManager", Session], None]


class SessionManager:
    """
    Owns the one speech session that may exist at a time.

    ``speak()`` always tears the previous session down (stage cancelled,
    prefetches stopped, highlight removed) before anything of the new session
    happens. Both ``speak()`` and ``interrupt()`` are synchronous and must be
    called from within a running event loop.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        options: SpeechOptions | None = None,
        *,
        policy: SegmentationPolicy | None = None,
        text_filter: TextFilter = collapse_whitespace,
        final_action: CompletionHandler | None = None,
        notifier: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.options = options or SpeechOptions()
        self.policy = policy or SentenceStepPolicy()
        self.text_filter = text_filter
        self.final_action = final_action
        self._notifier = notifier
        self._sleep = sleep
        self._clock = clock
        self._session: Session | None = None

    @property
    def current(self) -> Session | None:
        """The active session, if one is running."""
        if self._session is not None and self._session.active:
            return self._session
        return None

    @property
    def last(self) -> Session | None:
        """The most recent session, active or not."""
        return self._session

    def status(self) -> SessionStatus:
        if self._session is None:
            return SessionStatus()
        return self._session.snapshot()

    def speak(
        self,
        view: DocumentView | None,
        position: int | None = None,
        *,
        policy: SegmentationPolicy | None = None,
        text_filter: TextFilter | None = None,
        final_action: CompletionHandler | None = None,
    ) -> Session | None:
        """Start reading ``view`` from ``position`` (default: its cursor)."""
        self.interrupt()

        if view is None or not view.is_live:
            logger.debug("No live document to read, ignoring speak")
            return None

        options = self.options
        start = view.get_cursor() if position is None else position
        voice = VoiceConfig(
            engine=options.engine, voice=options.voice, language=options.language
        )
        pipeline = RenderPipeline(
            self.engine,
            RenderCache(ttl=options.cache_ttl, clock=self._clock),
            voice,
            max_prefetch=options.prefetch_count,
        )
        session = Session(
            view=view,
            position=start,
            highlight=HighlightSync(
                view, options.highlight_style, options.idle_threshold
            ),
            pipeline=pipeline,
        )

        handler = final_action or self.final_action
        controller = PlaybackController(
            session,
            Segmenter(view.text, options.min_segment_length, policy or self.policy),
            pipeline,
            text_filter=text_filter or self.text_filter,
            base_interval=options.base_interval,
            long_interval_factor=options.long_interval_factor,
            prefetch_count=options.prefetch_count,
            sleep=self._sleep,
            on_finished=(lambda s: handler(self, s)) if handler else None,
            notify=self._notify,
        )

        self._session = session
        session.runner = asyncio.get_running_loop().create_task(
            controller.run(), name=f"speech-{session.session_id}"
        )
        session.runner.add_done_callback(self._runner_done)
        return session

    def interrupt(self) -> bool:
        """Stop the active session; return False if there was nothing to stop."""
        session = self._session
        if session is None or not session.active:
            return False

        session.token.cancel()
        session.pipeline.cancel()
        session.highlight.clear()
        session.token.release()
        session.state = PlaybackState.CANCELLED
        logger.debug(f"Interrupted speech session {session.session_id}")
        return True

    async def shutdown(self) -> None:
        """Interrupt any session and wait for its controller to stop."""
        session = self._session
        self.interrupt()
        if session is not None:
            await session.wait()

    def _notify(self, session: Session, message: str) -> None:
        session.message = message
        logger.info(f"Speech session {session.session_id}: {message}")
        if self._notifier is not None:
            self._notifier(message)

    @staticmethod
    def _runner_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Speech task {task.get_name()} raised: {exc}", exc_info=exc)


__all__ = ["CompletionHandler", "Session", "SessionManager"]
