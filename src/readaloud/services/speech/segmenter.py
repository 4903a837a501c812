"""
Segmenter for Document Read-Aloud.

This module computes the spans of a document that are spoken as one unit.
Unlike a streaming splitter it never consumes text: it looks at a read-only
document from a given position and reports (start, end) bounds, so it can be
restarted from any position at any time.

Architecture:
    DocumentView.text → Segmenter.iter_bounds(position) → SegmentBounds...

Boundaries come from a pluggable step policy. The default policy stops at
sentence-ending punctuation and at paragraph breaks; a Markdown policy also
isolates heading lines. Short sentences are merged with their successors until
a minimum length is reached, but never across a paragraph break.

Usage:
    segmenter = Segmenter(document.text, min_length=20)

    for bounds in segmenter.next_bounds(cursor, count=3):
        text = document.read_range(bounds.start, bounds.end)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import islice
from typing import Iterator, List, Protocol

_WHITESPACE = re.compile(r"\s*")
_SENTENCE_END = re.compile(r"(?:[.!?…]+)[\"'”’)\]]*(?=\s|$)")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t\r]*\n")
_PARAGRAPH_AT = re.compile(r"[ \t\r]*\n[ \t\r]*\n")
_HEADING = re.compile(r"^#{1,6}[ \t]+\S.*$", re.MULTILINE)


@dataclass(frozen=True)
class SegmentBounds:
    """A [start, end) span of the document spoken as one unit.

    Attributes:
        start: Offset of the first character (never whitespace)
        end: Offset just past the last character
        hard_break: True when the span ends at a paragraph-level break
    """

    start: int
    end: int
    hard_break: bool = False

    def __len__(self) -> int:
        return self.end - self.start


class SegmentationPolicy(Protocol):
    """Step policy deciding where segments may end."""

    def accept(self, start: int, end: int) -> bool:
        """Return True if a tentative segment should be produced."""
        ...

    def next_boundary(self, text: str, position: int) -> int:
        """Return the next candidate end at or after ``position``."""
        ...

    def is_hard_break(self, text: str, position: int) -> bool:
        """Return True if ``position`` sits at a structural break."""
        ...


class SentenceStepPolicy:
    """
    Default step policy: sentence punctuation and paragraph breaks.

    A boundary is placed after sentence-ending punctuation (., ?, !, ...)
    followed by whitespace, or at the start of a blank line, whichever comes
    first. Blank lines are hard breaks.
    """

    def accept(self, start: int, end: int) -> bool:
        return start < end

    def next_boundary(self, text: str, position: int) -> int:
        paragraph = _PARAGRAPH_BREAK.search(text, position)
        limit = paragraph.start() if paragraph else len(text)
        match = _SENTENCE_END.search(text, position, limit)
        if match:
            return match.end()
        return limit

    def is_hard_break(self, text: str, position: int) -> bool:
        return _PARAGRAPH_AT.match(text, position) is not None


class MarkdownStepPolicy(SentenceStepPolicy):
    """
    Step policy for Markdown-like documents.

    Each heading line becomes its own segment, and the text before a heading
    is cut where the heading starts. Both edges of a heading count as hard
    breaks, so the reader pauses around section titles.
    """

    @staticmethod
    def _heading_at(text: str, position: int) -> re.Match | None:
        if position > 0 and text[position - 1] != "\n":
            return None
        return _HEADING.match(text, position)

    def next_boundary(self, text: str, position: int) -> int:
        heading = self._heading_at(text, position)
        if heading:
            return heading.end()

        boundary = super().next_boundary(text, position)
        following = _HEADING.search(text, position + 1, boundary)
        if following:
            return following.start()
        return boundary

    def is_hard_break(self, text: str, position: int) -> bool:
        if super().is_hard_break(text, position):
            return True

        # End of a heading line
        line_start = text.rfind("\n", 0, position) + 1
        heading = self._heading_at(text, line_start)
        if heading and heading.end() == position:
            return True

        # Start of a heading after optional whitespace
        after = _WHITESPACE.match(text, position).end()
        return after < len(text) and self._heading_at(text, after) is not None


class Segmenter:
    """
    Computes ordered, non-overlapping segment bounds over a document.

    Attributes:
        text: The document text (read-only)
        min_length: Segments shorter than this are extended (default: 20)
        policy: Step policy deciding candidate boundaries
    """

    def __init__(
        self,
        text: str,
        min_length: int = 20,
        policy: SegmentationPolicy | None = None,
    ):
        self.text = text
        self.min_length = min_length
        self.policy = policy or SentenceStepPolicy()

    def skip_whitespace(self, position: int) -> int:
        """Return the first non-whitespace offset at or after ``position``."""
        position = max(0, min(position, len(self.text)))
        return _WHITESPACE.match(self.text, position).end()

    def _extend(self, start: int, end: int) -> int:
        """Grow ``end`` until the segment is long enough or a hard break is hit."""
        size = len(self.text)
        while (
            end - start < self.min_length
            and end < size
            and not self.policy.is_hard_break(self.text, end)
        ):
            candidate = self.policy.next_boundary(self.text, end)
            if candidate <= end:
                break
            end = candidate
        return end

    def iter_bounds(self, position: int) -> Iterator[SegmentBounds]:
        """
        Lazily yield segment bounds starting from ``position``.

        Leading whitespace is skipped, so the first segment may start after
        ``position``. The sequence ends when the policy rejects a segment,
        which for the default policies means the end of the document.
        """
        cursor = position
        while True:
            start = self.skip_whitespace(cursor)
            end = self._extend(start, self.policy.next_boundary(self.text, start))
            if not self.policy.accept(start, end):
                return
            yield SegmentBounds(
                start=start,
                end=end,
                hard_break=self.policy.is_hard_break(self.text, end),
            )
            cursor = end

    def next_bounds(self, position: int, count: int) -> List[SegmentBounds]:
        """Return up to ``count`` bounds from ``position``; empty at document end."""
        if count <= 0:
            return []
        return list(islice(self.iter_bounds(position), count))


__all__ = [
    "MarkdownStepPolicy",
    "SegmentBounds",
    "SegmentationPolicy",
    "Segmenter",
    "SentenceStepPolicy",
]
