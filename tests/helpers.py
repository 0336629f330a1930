"""Test doubles shared across the suite."""

import asyncio
import json
from typing import Any

from schemaless.exceptions import CacheUnavailableError


class FakeGenerator:
    """Template generator returning a fixed reply.

    ``failures`` leading calls raise ``RuntimeError``; ``delay`` makes each
    call sleep so concurrent callers overlap.
    """

    def __init__(
        self,
        template: Any = None,
        *,
        failures: int = 0,
        delay: float = 0.0,
    ) -> None:
        self.template = template if template is not None else {}
        self.failures = failures
        self.delay = delay
        self.calls: list[tuple[bytes, bytes]] = []

    @property
    def reply(self) -> bytes:
        if isinstance(self.template, bytes):
            return self.template
        if isinstance(self.template, str):
            return self.template.encode("utf-8")
        return json.dumps(self.template).encode("utf-8")

    async def generate(self, standard: bytes, shape: bytes) -> bytes:
        self.calls.append((standard, shape))
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.calls) <= self.failures:
            raise RuntimeError(f"model overloaded (call {len(self.calls)})")
        return self.reply


class DownCache:
    """Cache backend that is always unreachable."""

    def get(self, key: str) -> bytes | None:
        raise CacheUnavailableError(f"connection refused ({key})")

    def set(self, key: str, value: bytes, ttl: float) -> None:
        raise CacheUnavailableError(f"connection refused ({key})")

    def delete(self, key: str) -> None:
        raise CacheUnavailableError(f"connection refused ({key})")


class RecordingCache:
    """Dict-backed cache backend that records every operation."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.ops: list[tuple[str, str]] = []

    def get(self, key: str) -> bytes | None:
        self.ops.append(("get", key))
        return self.data.get(key)

    def set(self, key: str, value: bytes, ttl: float) -> None:
        self.ops.append(("set", key))
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.ops.append(("delete", key))
        self.data.pop(key, None)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
