"""Tests for the time-limited render cache."""

import asyncio

import pytest

from readaloud.services.speech.cache import RenderCache
from readaloud.services.speech.errors import RenderFailure
from readaloud.services.speech.protocols import AudioClip, VoiceConfig

VOICE = VoiceConfig(engine="fake", voice="alloy", language="en")


class CountingRenderer:
    def __init__(self):
        self.calls = 0
        self.gate: asyncio.Event | None = None
        self.fail = False

    def __call__(self, text: str):
        async def _render() -> AudioClip:
            self.calls += 1
            if self.gate is not None:
                await self.gate.wait()
            if self.fail:
                raise RenderFailure("boom")
            return AudioClip(text=text, data=b"x")

        return _render


@pytest.mark.asyncio
async def test_hit_within_ttl_skips_renderer(clock):
    cache = RenderCache(ttl=60, clock=clock)
    renderer = CountingRenderer()

    first = await cache.get_or_render("hello", VOICE, renderer("hello"))
    clock.advance(59)
    second = await cache.get_or_render("hello", VOICE, renderer("hello"))

    assert first is second
    assert renderer.calls == 1
    assert cache.hits == 1
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_expired_entry_triggers_fresh_render(clock):
    cache = RenderCache(ttl=60, clock=clock)
    renderer = CountingRenderer()

    first = await cache.get_or_render("hello", VOICE, renderer("hello"))
    clock.advance(60)
    second = await cache.get_or_render("hello", VOICE, renderer("hello"))

    assert renderer.calls == 2
    assert first is not second


@pytest.mark.asyncio
async def test_voice_is_part_of_the_key(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    other = VoiceConfig(engine="fake", voice="nova", language="en")

    await cache.get_or_render("hello", VOICE, renderer("hello"))
    await cache.get_or_render("hello", other, renderer("hello"))

    assert renderer.calls == 2
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_render(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    renderer.gate = asyncio.Event()

    first = asyncio.create_task(cache.get_or_render("hi", VOICE, renderer("hi")))
    second = asyncio.create_task(cache.get_or_render("hi", VOICE, renderer("hi")))
    await asyncio.sleep(0)
    assert cache.pending == 1

    renderer.gate.set()
    results = await asyncio.gather(first, second)

    assert renderer.calls == 1
    assert results[0] is results[1]


@pytest.mark.asyncio
async def test_failed_render_is_not_cached(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    renderer.fail = True

    with pytest.raises(RenderFailure):
        await cache.get_or_render("bad", VOICE, renderer("bad"))
    assert len(cache) == 0

    renderer.fail = False
    clip = await cache.get_or_render("bad", VOICE, renderer("bad"))

    assert clip.text == "bad"
    assert renderer.calls == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_shared_render_running(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    renderer.gate = asyncio.Event()

    waiter = asyncio.create_task(cache.get_or_render("hi", VOICE, renderer("hi")))
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    renderer.gate.set()
    clip = await cache.get_or_render("hi", VOICE, renderer("hi"))

    assert clip.text == "hi"
    assert renderer.calls == 1


@pytest.mark.asyncio
async def test_clear_evicts_all_but_kept_keys(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    for text in ("a", "b", "c"):
        await cache.get_or_render(text, VOICE, renderer(text))

    cache.clear(keep=[("b", VOICE)])

    assert ("b", VOICE) in cache
    assert ("a", VOICE) not in cache
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cancel_pending_stops_unfinished_renders(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    await cache.get_or_render("done", VOICE, renderer("done"))
    renderer.gate = asyncio.Event()
    waiter = asyncio.create_task(cache.get_or_render("slow", VOICE, renderer("slow")))
    await asyncio.sleep(0)

    cache.cancel_pending()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert ("done", VOICE) in cache
    assert ("slow", VOICE) not in cache
    assert cache.pending == 0


@pytest.mark.asyncio
async def test_purge_expired_reports_evictions(clock):
    cache = RenderCache(ttl=10, clock=clock)
    renderer = CountingRenderer()
    await cache.get_or_render("old", VOICE, renderer("old"))
    clock.advance(5)
    await cache.get_or_render("new", VOICE, renderer("new"))

    clock.advance(6)

    assert cache.purge_expired() == 1
    assert ("new", VOICE) in cache


@pytest.mark.asyncio
async def test_running_render_outlives_ttl_and_stays_cancellable(clock):
    cache = RenderCache(ttl=5, clock=clock)
    slow = CountingRenderer()
    slow.gate = asyncio.Event()
    waiter = asyncio.create_task(cache.get_or_render("slow", VOICE, slow("slow")))
    await asyncio.sleep(0)

    clock.advance(10)
    await cache.get_or_render("other", VOICE, CountingRenderer()("other"))

    assert ("slow", VOICE) in cache
    assert cache.pending == 1
    second = asyncio.create_task(cache.get_or_render("slow", VOICE, slow("slow")))
    await asyncio.sleep(0)
    assert slow.calls == 1

    cache.cancel_pending()

    for task in (waiter, second):
        with pytest.raises(asyncio.CancelledError):
            await task
    assert cache.pending == 0


@pytest.mark.asyncio
async def test_ttl_counts_from_render_completion(clock):
    cache = RenderCache(ttl=5, clock=clock)
    renderer = CountingRenderer()
    renderer.gate = asyncio.Event()
    waiter = asyncio.create_task(cache.get_or_render("hi", VOICE, renderer("hi")))
    await asyncio.sleep(0)

    clock.advance(8)
    renderer.gate.set()
    await waiter

    clock.advance(4)
    assert ("hi", VOICE) in cache
    clock.advance(1)
    assert ("hi", VOICE) not in cache


@pytest.mark.asyncio
async def test_clear_cancels_evicted_running_renders(clock):
    cache = RenderCache(clock=clock)
    renderer = CountingRenderer()
    renderer.gate = asyncio.Event()
    dropped = asyncio.create_task(cache.get_or_render("a", VOICE, renderer("a")))
    kept = asyncio.create_task(cache.get_or_render("b", VOICE, renderer("b")))
    await asyncio.sleep(0)

    cache.clear(keep=[("b", VOICE)])

    with pytest.raises(asyncio.CancelledError):
        await dropped
    assert cache.pending == 1

    renderer.gate.set()
    assert (await kept).text == "b"
