"""Unit tests for single-flight template generation."""

import asyncio
import logging
import time

import pytest

from schemaless.cache import ChunkedCache
from schemaless.cancellation import CancelToken, race
from schemaless.exceptions import TranslationCancelledError
from schemaless.generation import SingleFlight, lock_key
from tests.helpers import RecordingCache


def make_flight(cache: ChunkedCache, **overrides) -> SingleFlight:
    settings = {"poll_interval": 0.0, "poll_attempts": 3, "jitter": 0.0}
    settings.update(overrides)
    return SingleFlight(cache, **settings)


class CountingProducer:
    def __init__(self, value: bytes = b"template", delay: float = 0.02) -> None:
        self.value = value
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> bytes:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return self.value


@pytest.fixture
def backend() -> RecordingCache:
    return RecordingCache()


@pytest.fixture
def cache(backend) -> ChunkedCache:
    return ChunkedCache(backend)


@pytest.mark.unit
def test_lock_key():
    assert lock_key("ticket-abc") == "ticket-abc-started"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_callers_share_one_generation(cache, backend):
    flight = make_flight(cache)
    produce = CountingProducer()

    results = await asyncio.gather(*(flight.do("k", produce) for _ in range(8)))

    assert results == [b"template"] * 8
    assert produce.calls == 1
    assert backend.data["k"] == b"template"
    assert backend.data[lock_key("k")] == b"started"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cached_result_skips_production(cache):
    await cache.set("k", b"cached", ttl=60)
    produce = CountingProducer()
    assert await make_flight(cache).do("k", produce) == b"cached"
    assert produce.calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_process_polls_for_the_result(cache):
    # Two coordinators over one cache behave like two processes
    leader, follower = make_flight(cache), make_flight(cache, poll_interval=0.01, poll_attempts=100)
    started = asyncio.Event()
    leader_calls = 0

    async def lead() -> bytes:
        nonlocal leader_calls
        leader_calls += 1
        started.set()
        await asyncio.sleep(0.05)
        return b"from leader"

    follow = CountingProducer(b"from follower")

    leading = asyncio.create_task(leader.do("k", lead))
    await started.wait()
    assert await follower.do("k", follow) == b"from leader"
    assert await leading == b"from leader"
    assert leader_calls == 1
    assert follow.calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_poll_timeout_generates_anyway(cache, caplog):
    caplog.set_level(logging.WARNING, logger="schemaless")
    await cache.set(lock_key("k"), b"started", ttl=60)
    produce = CountingProducer()

    assert await make_flight(cache, poll_attempts=2).do("k", produce) == b"template"
    assert produce.calls == 1
    assert "generating anyway" in caplog.text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failure_releases_lock_and_reaches_waiters(cache, backend):
    flight = make_flight(cache)
    calls = 0

    async def broken() -> bytes:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.02)
        raise RuntimeError("generator down")

    results = await asyncio.gather(
        flight.do("k", broken), flight.do("k", broken), return_exceptions=True
    )

    assert calls == 1
    assert all(isinstance(r, RuntimeError) for r in results)
    assert lock_key("k") not in backend.data
    assert "k" not in backend.data


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_token_stops_polling(cache):
    await cache.set(lock_key("k"), b"started", ttl=60)
    flight = make_flight(cache, poll_interval=30.0, poll_attempts=5)
    token = CancelToken()
    asyncio.get_running_loop().call_later(0.05, token.cancel)

    with pytest.raises(TranslationCancelledError):
        await asyncio.wait_for(flight.do("k", CountingProducer(), cancel=token), timeout=5)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_waiter_takes_over_when_leader_is_cancelled(cache):
    flight = make_flight(cache)
    started = asyncio.Event()
    calls = 0

    async def produce() -> bytes:
        nonlocal calls
        calls += 1
        if calls == 1:
            started.set()
            await asyncio.sleep(30)
        return b"second try"

    leader = asyncio.create_task(flight.do("k", produce))
    await started.wait()
    waiter = asyncio.create_task(flight.do("k", produce))
    await asyncio.sleep(0.01)

    leader.cancel()
    with pytest.raises(asyncio.CancelledError):
        await leader
    assert await asyncio.wait_for(waiter, timeout=5) == b"second try"
    assert calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_without_stopping_the_leader(cache, backend):
    flight = make_flight(cache)
    produce = CountingProducer(delay=0.3)
    leader = asyncio.create_task(flight.do("k", produce))
    await asyncio.sleep(0.01)

    token = CancelToken()
    asyncio.get_running_loop().call_later(0.02, token.cancel)
    start = time.perf_counter()
    with pytest.raises(TranslationCancelledError):
        await flight.do("k", produce, cancel=token)

    assert time.perf_counter() - start < 0.25
    assert await asyncio.wait_for(leader, timeout=5) == b"template"
    assert produce.calls == 1
    assert backend.data["k"] == b"template"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_token_interrupts_producer(cache, backend):
    flight = make_flight(cache)
    token = CancelToken()

    async def produce() -> bytes:
        return await race(asyncio.sleep(30, result=b"late"), token)

    asyncio.get_running_loop().call_later(0.05, token.cancel)
    with pytest.raises(TranslationCancelledError):
        await asyncio.wait_for(flight.do("k", produce, cancel=token), timeout=5)

    assert lock_key("k") not in backend.data
    # The key is free again for the next caller
    assert await flight.do("k", CountingProducer()) == b"template"
