"""Cache backends for learned templates and generation locks.

The core never talks to a backend directly. ``ChunkedCache`` wraps any
``Cache`` and adds what the translation pipeline needs on top of the raw
byte contract: an async surface, splitting of values larger than the
backend's per-entry limit, and degradation to "miss" when the backend is
unreachable.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import threading
import time
from typing import Protocol

from schemaless.constants import MAX_CACHE_CHUNKS, MAX_CACHE_ITEM_SIZE
from schemaless.exceptions import CacheUnavailableError

log = logging.getLogger(__name__)


class Cache(Protocol):
    """Byte-oriented key/value cache with per-entry expiry.

    Implementations must be safe for concurrent use and raise
    ``CacheUnavailableError`` when the backend cannot be reached.
    """

    def get(self, key: str) -> bytes | None:
        """Return the value stored under `key`, or None on a miss."""
        ...

    def set(self, key: str, value: bytes, ttl: float) -> None:
        """Store `value` under `key` for `ttl` seconds."""
        ...

    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        ...


class MemoryCache:
    """Process-local TTL cache.

    Expired entries are dropped lazily on access. When ``max_item_size`` is
    set, values above it are rejected the way a memcached server would.
    """

    def __init__(
        self,
        *,
        max_item_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_item_size = max_item_size
        self._clock = clock
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: bytes, ttl: float) -> None:
        if self.max_item_size is not None and len(value) > self.max_item_size:
            raise ValueError(
                f"Value for {key!r} too large: {len(value)} > {self.max_item_size}"
            )
        with self._lock:
            self._entries[key] = (bytes(value), self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)


def normalize_key(key: str) -> str:
    """Backends such as memcached reject spaces in keys."""
    return key.replace(" ", "_")


def chunk_key(key: str, index: int) -> str:
    """Key of the ``index``-th chunk; the first chunk lives under ``key``."""
    return key if index == 0 else f"{key}_{index}"


class ChunkedCache:
    """Async facade over a ``Cache`` that splits large values across keys.

    A value of exactly ``max_item_size`` bytes or more is written as
    ``key``, ``key_1``, ``key_2``, ... Reads follow the chain for as long as
    chunks come back full; the first short chunk ends the value and a missing
    one makes the whole read a miss.
    Backend outages are logged and reported as misses so callers fall back
    to regenerating.
    """

    def __init__(
        self,
        backend: Cache,
        *,
        max_item_size: int = MAX_CACHE_ITEM_SIZE,
        max_chunks: int = MAX_CACHE_CHUNKS,
    ) -> None:
        if max_item_size <= 0:
            raise ValueError("max_item_size must be positive")
        self.backend = backend
        self.max_item_size = max_item_size
        self.max_chunks = max_chunks

    # --- Blocking implementations, run off the event loop ---

    def _get_blocking(self, key: str) -> bytes | None:
        first = self.backend.get(key)
        if first is None or len(first) < self.max_item_size:
            return first

        parts = [first]
        for index in range(1, self.max_chunks + 1):
            chunk = self.backend.get(chunk_key(key, index))
            if chunk is None:
                log.debug("Chunk %d of %r is missing; treating as a miss", index, key)
                return None
            parts.append(chunk)
            if len(chunk) < self.max_item_size:
                break
        return b"".join(parts)

    def _set_blocking(self, key: str, value: bytes, ttl: float) -> None:
        limit = self.max_item_size * self.max_chunks
        if len(value) > limit:
            raise ValueError(f"Value for {key!r} too large: {len(value)} > {limit}")

        if len(value) < self.max_item_size:
            self.backend.set(key, value, ttl)
            return

        # Values of exactly N chunks get an empty terminator chunk. The head is
        # written last so a partial write never reads back as a value.
        count = len(value) // self.max_item_size + 1
        for index in reversed(range(count)):
            start = index * self.max_item_size
            self.backend.set(
                chunk_key(key, index), value[start : start + self.max_item_size], ttl
            )

    # --- Public async surface ---

    async def get(self, key: str) -> bytes | None:
        """Return the reassembled value for `key`, or None on a miss or outage."""
        key = normalize_key(key)
        if not key:
            return None
        try:
            return await asyncio.to_thread(self._get_blocking, key)
        except CacheUnavailableError as e:
            log.warning("Cache unavailable reading %r: %s", key, e)
            return None

    async def set(self, key: str, value: bytes, ttl: float) -> bool:
        """Store `value`; returns False when the write was skipped."""
        key = normalize_key(key)
        if not key:
            log.warning("Skipping cache write with empty key (%d bytes)", len(value))
            return False
        try:
            await asyncio.to_thread(self._set_blocking, key, value, ttl)
        except CacheUnavailableError as e:
            log.warning("Cache unavailable writing %r: %s", key, e)
            return False
        except ValueError as e:
            log.warning("Couldn't cache %r: %s", key, e)
            return False
        return True

    async def delete(self, key: str) -> None:
        """Remove `key`; outages are logged and ignored."""
        key = normalize_key(key)
        try:
            await asyncio.to_thread(self.backend.delete, key)
        except CacheUnavailableError as e:
            log.warning("Cache unavailable deleting %r: %s", key, e)
