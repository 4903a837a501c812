"""Best-effort highlight and scroll side effects for the segment being read."""

from __future__ import annotations

import logging

from .protocols import DocumentView, Marker
from .segmenter import SegmentBounds

logger = logging.getLogger(__name__)


class HighlightSync:
    """Keeps a single marker on the segment being read and the view following it.

    Every method swallows view errors: a broken view must never stop playback.
    """

    def __init__(
        self,
        view: DocumentView,
        style: str = "highlight",
        idle_threshold: float = 2.0,
    ):
        self.view = view
        self.style = style
        self.idle_threshold = idle_threshold
        self.marker: Marker | None = None

    def _should_follow(self) -> bool:
        return (
            not self.view.is_focused()
            or self.view.idle_seconds() >= self.idle_threshold
        )

    def show(self, bounds: SegmentBounds) -> None:
        """Scroll to the upcoming segment if allowed, then highlight it."""
        try:
            if self._should_follow():
                if self.view.is_visible(bounds.end):
                    self.view.scroll_into_view(bounds.end, center=False)
                else:
                    self.view.set_cursor(bounds.start)
                    self.view.scroll_into_view(bounds.end, center=True)
            self.marker = self.view.create_or_move_marker(
                self.marker, bounds.start, bounds.end, self.style
            )
        except Exception as exc:
            logger.warning(f"Highlight sync failed: {exc}", exc_info=True)

    def mark_finished(self, position: int) -> None:
        """Collapse the marker to a zero-width point after a finished segment."""
        try:
            self.marker = self.view.create_or_move_marker(
                self.marker, position, position, self.style
            )
        except Exception as exc:
            logger.warning(f"Highlight sync failed: {exc}", exc_info=True)

    def clear(self) -> None:
        """Remove the marker if the view is still around."""
        marker, self.marker = self.marker, None
        if marker is None:
            return
        try:
            if self.view.is_live:
                self.view.remove_marker(marker)
        except Exception as exc:
            logger.warning(f"Failed to remove highlight: {exc}", exc_info=True)


__all__ = ["HighlightSync"]
