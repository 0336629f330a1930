"""Unit tests for cooperative cancellation."""

import asyncio
import time

import pytest

from schemaless.cancellation import CancelToken, checkpoint, pause, race
from schemaless.exceptions import TranslationCancelledError


@pytest.mark.unit
@pytest.mark.asyncio
async def test_token_starts_uncancelled():
    token = CancelToken()
    assert not token.cancelled
    token.raise_if_cancelled()
    await checkpoint(token)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_raises():
    token = CancelToken()
    token.cancel()
    assert token.cancelled
    with pytest.raises(TranslationCancelledError):
        token.raise_if_cancelled()
    with pytest.raises(TranslationCancelledError):
        await checkpoint(token)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sleep_wakes_early_on_cancel():
    token = CancelToken()
    asyncio.get_running_loop().call_later(0.05, token.cancel)
    start = time.perf_counter()
    with pytest.raises(TranslationCancelledError):
        await token.sleep(30)
    assert time.perf_counter() - start < 5


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sleep_completes_without_cancel():
    token = CancelToken()
    await token.sleep(0.01)
    assert not token.cancelled


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pause_without_token():
    await pause(0, None)
    await checkpoint(None)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_wait_returns_once_cancelled():
    token = CancelToken()
    asyncio.get_running_loop().call_later(0.01, token.cancel)
    await asyncio.wait_for(token.wait(), timeout=5)
    assert token.cancelled


class TestRace:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_result_when_work_finishes_first(self):
        async def work():
            await asyncio.sleep(0.01)
            return "done"

        assert await race(work(), CancelToken()) == "done"
        assert await race(work(), None) == "done"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_work_errors_propagate(self):
        async def work():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await race(work(), CancelToken())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_token_abandons_slow_work(self):
        abandoned = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                abandoned.set()
                raise

        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        start = time.perf_counter()

        with pytest.raises(TranslationCancelledError):
            await race(slow(), token)

        assert time.perf_counter() - start < 1
        assert abandoned.is_set()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_token_never_starts_work(self):
        started = False

        async def work():
            nonlocal started
            started = True

        token = CancelToken()
        token.cancel()
        with pytest.raises(TranslationCancelledError):
            await race(work(), token)
        assert not started

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shielded_work_keeps_running(self):
        shared = asyncio.ensure_future(asyncio.sleep(0.1, result="shared"))
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(TranslationCancelledError):
            await race(asyncio.shield(shared), token)

        assert await shared == "shared"
