"""Cooperative cancellation for translation calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
import contextlib

from schemaless.exceptions import TranslationCancelledError


class CancelToken:
    """Signals that a translation should stop as soon as possible.

    Callers share one token between a translation and whatever decides to
    abort it. Long waits inside the pipeline (retry delays, lock polling) use
    ``sleep``, and slow awaits such as model calls go through ``race``, so
    they end immediately when the token is cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once ``cancel`` has been called."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ``TranslationCancelledError`` if cancellation was requested."""
        if self._event.is_set():
            raise TranslationCancelledError("Translation cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early on cancellation.

        Raises:
            TranslationCancelledError: If the token is or becomes cancelled.
        """
        self.raise_if_cancelled()
        if delay > 0:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._event.wait(), timeout=delay)
        self.raise_if_cancelled()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()


async def checkpoint(cancel: CancelToken | None) -> None:
    """Yield to the loop and honor ``cancel`` if given."""
    if cancel is not None:
        cancel.raise_if_cancelled()
    await asyncio.sleep(0)


async def pause(delay: float, cancel: CancelToken | None) -> None:
    """``asyncio.sleep`` that also observes an optional token."""
    if cancel is None:
        await asyncio.sleep(delay)
    else:
        await cancel.sleep(delay)


async def race[T](awaitable: Awaitable[T], cancel: CancelToken | None) -> T:
    """Await ``awaitable`` unless ``cancel`` fires first.

    The awaitable runs as its own task and is cancelled when the token wins.
    Wrap it in ``asyncio.shield`` to keep it running for other awaiters.

    Raises:
        TranslationCancelledError: If the token is or becomes cancelled
            before ``awaitable`` finishes.
    """
    if cancel is None:
        return await awaitable

    work = asyncio.ensure_future(awaitable)
    if not cancel.cancelled:
        watcher = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            watcher.cancel()
            raise
        watcher.cancel()
        if work.done():
            return work.result()

    work.cancel()
    # Drain the cancelled work so its outcome is retrieved
    await asyncio.gather(work, return_exceptions=True)
    raise TranslationCancelledError("Translation cancelled")
