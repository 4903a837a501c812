"""Tests for the session cancel token."""

import asyncio

import pytest

from readaloud.services.speech.cancellation import CancelToken


async def _value(value, gate: asyncio.Event | None = None):
    if gate is not None:
        await gate.wait()
    return value


@pytest.mark.asyncio
async def test_run_returns_stage_result_and_clears_handle():
    token = CancelToken()

    assert await token.run(_value(42)) == 42
    assert token.pending is None


@pytest.mark.asyncio
async def test_cancel_stops_pending_stage():
    token = CancelToken()
    gate = asyncio.Event()
    stage = token.start(_value(1, gate), name="stage")
    await asyncio.sleep(0)

    assert token.pending is stage
    assert token.cancel() is True

    with pytest.raises(asyncio.CancelledError):
        await token.wait(stage)
    assert stage.cancelled()
    assert token.pending is None


@pytest.mark.asyncio
async def test_late_result_is_discarded():
    token = CancelToken()
    stage = token.start(_value("late"))
    await asyncio.sleep(0)
    assert stage.done()

    token.cancel()

    with pytest.raises(asyncio.CancelledError):
        await token.wait(stage)


@pytest.mark.asyncio
async def test_no_stage_starts_after_cancel():
    token = CancelToken()
    token.cancel()
    coro = _value(1)

    with pytest.raises(asyncio.CancelledError):
        token.start(coro)
    assert coro.cr_frame is None


def test_cancel_is_idempotent():
    token = CancelToken()

    assert token.cancel() is True
    assert token.cancel() is False
    assert token.cancelled
