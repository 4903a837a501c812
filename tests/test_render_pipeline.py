"""Tests for the render/prefetch pipeline."""

import asyncio
import logging

import pytest

from fakes import wait_until
from readaloud.services.speech.cache import RenderCache
from readaloud.services.speech.errors import RenderFailure
from readaloud.services.speech.pipeline import RenderPipeline
from readaloud.services.speech.protocols import VoiceConfig

VOICE = VoiceConfig(engine="fake", voice="alloy", language="de")


def _pipeline(engine, clock, max_prefetch=2) -> RenderPipeline:
    return RenderPipeline(engine, RenderCache(clock=clock), VOICE, max_prefetch=max_prefetch)


@pytest.mark.asyncio
async def test_render_first_passes_language_and_voice(engine, clock):
    pipeline = _pipeline(engine, clock)

    clip = await pipeline.render_first("Guten Tag.")

    assert clip.text == "Guten Tag."
    assert engine.voices == [VOICE]


@pytest.mark.asyncio
async def test_render_first_wraps_unexpected_errors(engine, clock):
    engine.fail_render["bad"] = ValueError("engine exploded")
    pipeline = _pipeline(engine, clock)

    with pytest.raises(RenderFailure, match="engine exploded"):
        await pipeline.render_first("bad")


@pytest.mark.asyncio
async def test_prefetch_warms_cache(engine, clock):
    pipeline = _pipeline(engine, clock)

    pipeline.prefetch_rest(["one", "two"])
    await wait_until(lambda: pipeline.prefetching == 0)
    await pipeline.render_first("one")

    assert engine.rendered == ["one", "two"]
    assert pipeline.cache.hits == 1


@pytest.mark.asyncio
async def test_prefetch_failures_are_discarded(engine, clock, caplog):
    engine.fail_render_once.add("flaky")
    pipeline = _pipeline(engine, clock)

    with caplog.at_level(logging.DEBUG, logger="readaloud.services.speech.pipeline"):
        pipeline.prefetch_rest(["flaky"])
        await wait_until(lambda: pipeline.prefetching == 0)

    assert "Discarding failed prefetch" in caplog.text
    clip = await pipeline.render_first("flaky")
    assert clip.text == "flaky"
    assert engine.rendered == ["flaky", "flaky"]


@pytest.mark.asyncio
async def test_prefetch_set_is_bounded(engine, clock):
    engine.render_gate = asyncio.Event()
    pipeline = _pipeline(engine, clock, max_prefetch=2)

    pipeline.prefetch_rest(["a", "b", "c", "d"])

    assert pipeline.prefetching == 2
    engine.render_gate.set()
    await wait_until(lambda: pipeline.prefetching == 0)
    assert engine.rendered == ["a", "b"]


@pytest.mark.asyncio
async def test_prefetch_skips_cached_segments(engine, clock):
    pipeline = _pipeline(engine, clock)
    await pipeline.render_first("a")

    pipeline.prefetch_rest(["a", "b"])
    await wait_until(lambda: pipeline.prefetching == 0)

    assert engine.rendered == ["a", "b"]


@pytest.mark.asyncio
async def test_cancel_stops_prefetches(engine, clock):
    engine.render_gate = asyncio.Event()
    pipeline = _pipeline(engine, clock)
    pipeline.prefetch_rest(["a", "b"])
    await wait_until(lambda: engine.renders_in_flight == 2)

    pipeline.cancel()

    await wait_until(lambda: engine.renders_in_flight == 0)
    assert engine.renders_cancelled == 2
    assert pipeline.prefetching == 0
    assert len(pipeline.cache) == 0
