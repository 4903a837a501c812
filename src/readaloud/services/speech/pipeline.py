"""
Render pipeline for segment audio.

The segment about to play is rendered on the main chain and awaited; the
segments after it are prefetched in the background to warm the cache.

Prefetch policy:
- Prefetch renders run in a bounded task set and are never awaited.
- Their failures are logged at DEBUG and discarded. A failed prefetch only
  means the segment is rendered again, on the main chain, when its turn comes.
- ``cancel()`` stops all outstanding prefetches and unfinished renders.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from .cache import RenderCache
from .errors import RenderFailure, SpeechError
from .protocols import AudioClip, SpeechEngine, VoiceConfig

logger = logging.getLogger(__name__)


class RenderPipeline:
    """Requests renders from the engine through the render cache."""

    def __init__(
        self,
        engine: SpeechEngine,
        cache: RenderCache,
        voice: VoiceConfig,
        max_prefetch: int = 2,
    ):
        self.engine = engine
        self.cache = cache
        self.voice = voice
        self.max_prefetch = max_prefetch
        self._prefetch_tasks: set[asyncio.Task[None]] = set()

    @property
    def prefetching(self) -> int:
        return len(self._prefetch_tasks)

    def key(self, text: str) -> tuple[str, VoiceConfig]:
        return (text, self.voice)

    async def _render(self, text: str) -> AudioClip:
        try:
            return await self.engine.render(text, self.voice.language, self.voice)
        except (SpeechError, asyncio.CancelledError):
            raise
        except Exception as exc:
            raise RenderFailure(f"Render failed: {exc}") from exc

    async def render_first(self, text: str) -> AudioClip:
        """Render (or fetch from cache) the segment that plays next."""
        return await self.cache.get_or_render(
            text, self.voice, lambda: self._render(text)
        )

    def prefetch_rest(self, texts: Iterable[str]) -> None:
        """Start background renders for upcoming segments without waiting."""
        for text in texts:
            if self.key(text) in self.cache:
                continue
            if len(self._prefetch_tasks) >= self.max_prefetch:
                logger.debug("Prefetch set full, skipping remaining segments")
                break
            task = asyncio.create_task(self._prefetch(text))
            self._prefetch_tasks.add(task)
            task.add_done_callback(self._prefetch_tasks.discard)

    async def _prefetch(self, text: str) -> None:
        try:
            await self.render_first(text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug(f"Discarding failed prefetch ({len(text)} chars): {exc}")

    def cancel(self) -> None:
        """Cancel outstanding prefetches and unfinished renders."""
        for task in list(self._prefetch_tasks):
            if not task.done():
                task.cancel()
        self._prefetch_tasks.clear()
        self.cache.cancel_pending()


__all__ = ["RenderPipeline"]
