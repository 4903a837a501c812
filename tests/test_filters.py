"""Tests for segment text cleanup."""

from readaloud.services.speech.filters import collapse_whitespace, strip_markdown


def test_collapse_whitespace_strips_and_folds_newlines():
    assert collapse_whitespace("  Hello\n  world.\t Again \n") == "Hello world. Again"
    assert collapse_whitespace(" \n\t ") == ""


def test_strip_markdown_removes_heading_marks_and_emphasis():
    assert strip_markdown("## Heading *with* **strong** words") == "Heading with strong words"


def test_strip_markdown_keeps_link_text_and_code():
    text = "See [the docs](https://example.com/docs) and `run()` now."
    assert strip_markdown(text) == "See the docs and run() now."


def test_strip_markdown_removes_list_bullets():
    assert strip_markdown("- item one\n- item two\n1. third") == "item one item two third"
