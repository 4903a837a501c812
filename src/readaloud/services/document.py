"""In-memory document view used by the HTTP command surface."""

from __future__ import annotations

import itertools
import time
from typing import Callable

from readaloud.services.speech.protocols import Marker


class TextBuffer:
    """
    A text document with a cursor, styled markers and a scrolling window.

    Visibility is line based: the window shows ``window_lines`` lines starting
    at ``top_line``. The buffer counts as idle from the last ``touch()`` (any
    user interaction) and is focused until told otherwise.
    """

    def __init__(
        self,
        text: str = "",
        *,
        cursor: int = 0,
        window_lines: int = 20,
        focused: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._text = text
        self._cursor = self._clamp(cursor)
        self.window_lines = max(1, window_lines)
        self.top_line = 0
        self.focused = focused
        self._clock = clock
        self._last_touch = clock()
        self._markers: dict[int, Marker] = {}
        self._ids = itertools.count(1)
        self._live = True

    def __len__(self) -> int:
        return len(self._text)

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def markers(self) -> list[Marker]:
        return list(self._markers.values())

    def close(self) -> None:
        """Mark the buffer as gone; markers are dropped with it."""
        self._live = False
        self._markers.clear()

    def touch(self) -> None:
        """Record user interaction, resetting the idle clock."""
        self._last_touch = self._clock()

    def _clamp(self, position: int) -> int:
        return max(0, min(position, len(self._text)))

    def line_of(self, position: int) -> int:
        return self._text.count("\n", 0, self._clamp(position))

    # ─── DocumentView ───────────────────────────────────────────────

    def read_range(self, start: int, end: int) -> str:
        return self._text[self._clamp(start):self._clamp(end)]

    def get_cursor(self) -> int:
        return self._cursor

    def set_cursor(self, position: int) -> None:
        self._cursor = self._clamp(position)

    def create_or_move_marker(
        self, marker: Marker | None, start: int, end: int, style: str
    ) -> Marker:
        start, end = self._clamp(start), self._clamp(end)
        if marker is not None and marker.marker_id in self._markers:
            marker.start, marker.end, marker.style = start, end, style
            return marker
        created = Marker(marker_id=next(self._ids), start=start, end=end, style=style)
        self._markers[created.marker_id] = created
        return created

    def remove_marker(self, marker: Marker) -> None:
        self._markers.pop(marker.marker_id, None)

    def is_visible(self, position: int) -> bool:
        line = self.line_of(position)
        return self.top_line <= line < self.top_line + self.window_lines

    def scroll_into_view(self, position: int, center: bool) -> None:
        line = self.line_of(position)
        if center:
            self.top_line = max(0, line - self.window_lines // 2)
        elif line < self.top_line:
            self.top_line = line
        elif line >= self.top_line + self.window_lines:
            self.top_line = line - self.window_lines + 1

    def is_focused(self) -> bool:
        return self.focused

    def idle_seconds(self) -> float:
        return self._clock() - self._last_touch


__all__ = ["TextBuffer"]
