"""Text cleanup applied to segment text before it is sent to an engine."""

from __future__ import annotations

import re
from typing import Callable

TextFilter = Callable[[str], str]

_HEADING_MARK = re.compile(r"^#{1,6}[ \t]+", re.MULTILINE)
_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_EMPHASIS = re.compile(r"(\*{1,3}|_{1,3}|~~)(?=\S)(.+?)(?<=\S)\1")
_INLINE_CODE = re.compile(r"`([^`]*)`")
_LIST_BULLET = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+", re.MULTILINE)


def collapse_whitespace(text: str) -> str:
    """Strip surrounding whitespace and fold newlines and runs of spaces."""
    return " ".join(text.split())


def strip_markdown(text: str) -> str:
    """Remove Markdown markup that should not be read aloud."""
    text = _HEADING_MARK.sub("", text)
    text = _LIST_BULLET.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = _EMPHASIS.sub(r"\2", text)
    return collapse_whitespace(text)


__all__ = ["TextFilter", "collapse_whitespace", "strip_markdown"]
