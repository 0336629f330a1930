"""Single-flight coordination of template generation.

Two layers keep concurrent callers from generating the same template twice:

- inside one process, callers for a key already being produced await the
  first caller's result;
- across processes, a ``<key>-started`` lock entry in the shared cache tells
  late arrivals to poll ``<key>`` for the result instead of generating.

The cross-process layer is best effort. A caller that polls without seeing a
result generates anyway, and lock entries expire on their own.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
import random

from schemaless.cache import ChunkedCache
from schemaless.cancellation import CancelToken, checkpoint, pause, race
from schemaless.constants import (
    LOCK_SUFFIX,
    LOCK_TTL,
    POLL_ATTEMPTS,
    POLL_INTERVAL,
    SINGLEFLIGHT_JITTER,
    TEMPLATE_TTL,
)
from schemaless.exceptions import TranslationCancelledError
from schemaless.telemetry import TelemetryContext, TelemetryContextProtocol

log = logging.getLogger(__name__)


def lock_key(key: str) -> str:
    """Cache key of the in-flight marker for ``key``."""
    return f"{key}{LOCK_SUFFIX}"


class SingleFlight:
    """Runs at most one producer per key at a time."""

    def __init__(
        self,
        cache: ChunkedCache,
        *,
        lock_ttl: float = LOCK_TTL,
        poll_interval: float = POLL_INTERVAL,
        poll_attempts: int = POLL_ATTEMPTS,
        result_ttl: float = TEMPLATE_TTL,
        jitter: float = SINGLEFLIGHT_JITTER,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.cache = cache
        self.lock_ttl = lock_ttl
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.result_ttl = result_ttl
        self.jitter = jitter
        self._tele = telemetry or TelemetryContext()
        self._inflight: dict[str, asyncio.Future[bytes]] = {}

    async def do(
        self,
        key: str,
        produce: Callable[[], Awaitable[bytes]],
        *,
        cancel: CancelToken | None = None,
    ) -> bytes:
        """Return the value for ``key``, producing it only if nobody else is.

        The produced value is stored under ``key`` in the cache.
        """
        while (existing := self._inflight.get(key)) is not None:
            log.debug("Joining in-flight generation for %s", key)
            self._tele.count("singleflight.joined")
            try:
                return await race(asyncio.shield(existing), cancel)
            except asyncio.CancelledError:
                if not existing.cancelled():
                    raise
            # The producing caller was cancelled; take over.
            await checkpoint(cancel)

        future: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._run(key, produce, cancel)
        except (asyncio.CancelledError, TranslationCancelledError):
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Waiters re-raise it; mark retrieved for callers without waiters.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    async def _run(
        self,
        key: str,
        produce: Callable[[], Awaitable[bytes]],
        cancel: CancelToken | None,
    ) -> bytes:
        if self.jitter > 0:
            # Spread simultaneous starts so one of them claims the lock first
            await pause(random.uniform(0, self.jitter), cancel)  # noqa: S311

        marker = lock_key(key)
        if await self.cache.get(marker) is not None:
            cached = await self._poll(key, cancel)
            if cached is not None:
                return cached
            log.warning(
                "No result for %s after %d polls; generating anyway",
                key,
                self.poll_attempts,
            )
        else:
            await self.cache.set(marker, b"started", self.lock_ttl)

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        self._tele.count("singleflight.produced")
        try:
            result = await produce()
        except BaseException:
            await self.cache.delete(marker)
            raise
        await self.cache.set(key, result, self.result_ttl)
        return result

    async def _poll(self, key: str, cancel: CancelToken | None) -> bytes | None:
        log.info("Generation for %s in progress elsewhere; waiting", key)
        for attempt in range(self.poll_attempts + 1):
            cached = await self.cache.get(key)
            if cached is not None:
                self._tele.count("singleflight.poll_hits")
                return cached
            if attempt < self.poll_attempts:
                await pause(self.poll_interval, cancel)
        return None
