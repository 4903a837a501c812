"""Time-limited cache of rendered segment audio."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from .protocols import AudioClip, VoiceConfig

logger = logging.getLogger(__name__)

CacheKey = tuple[str, VoiceConfig]

# Seconds a rendered segment stays reusable
DEFAULT_TTL_SECONDS = 60.0


@dataclass
class CacheEntry:
    """A render (finished or still running) and when it was requested or completed."""

    task: asyncio.Task[AudioClip]
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        # A running render never expires; its TTL starts when it settles.
        if not self.task.done():
            return False
        return now - self.created_at >= self.ttl


class RenderCache:
    """
    Maps (text, voice) to rendered audio for a limited time.

    Entries hold the render task itself, so a segment that is already being
    prefetched is awaited rather than rendered a second time. Failed or
    cancelled renders are dropped as soon as they settle.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.expired(self._clock())

    @property
    def pending(self) -> int:
        """Number of renders still running."""
        return sum(1 for entry in self._entries.values() if not entry.task.done())

    async def get_or_render(
        self,
        text: str,
        voice: VoiceConfig,
        renderer: Callable[[], Awaitable[AudioClip]],
    ) -> AudioClip:
        """Return cached audio for ``text``, invoking ``renderer`` on a miss."""
        key = (text, voice)
        now = self._clock()
        self.purge_expired(now)

        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            entry = CacheEntry(
                task=asyncio.ensure_future(renderer()),
                created_at=now,
                ttl=self.ttl,
            )
            self._entries[key] = entry
            entry.task.add_done_callback(
                lambda task, key=key, entry=entry: self._settle(key, entry, task)
            )
        else:
            self.hits += 1

        # Shielded so a cancelled waiter leaves a shared render running.
        return await asyncio.shield(entry.task)

    def _settle(self, key: CacheKey, entry: CacheEntry, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._entries.get(key) is entry:
                del self._entries[key]
            return
        entry.created_at = self._clock()

    def purge_expired(self, now: float | None = None) -> int:
        """Evict entries older than the TTL; return how many were removed."""
        now = self._clock() if now is None else now
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired render(s)")
        return len(expired)

    def clear(self, keep: Iterable[CacheKey] = ()) -> None:
        """Evict every entry except the keys in ``keep``, cancelling unfinished renders."""
        retained = set(keep)
        for key, entry in list(self._entries.items()):
            if key in retained:
                continue
            del self._entries[key]
            if not entry.task.done():
                entry.task.cancel()

    def cancel_pending(self) -> None:
        """Cancel and evict renders that have not finished yet."""
        for key, entry in list(self._entries.items()):
            if not entry.task.done():
                entry.task.cancel()
                del self._entries[key]


__all__ = ["CacheEntry", "DEFAULT_TTL_SECONDS", "RenderCache"]
