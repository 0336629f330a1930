"""Telemetry context and reporter interfaces.

Telemetry is off unless ``SCHEMALESS_TELEMETRY=1`` (or ``DEBUG=1``) is set and
at least one reporter is supplied. When off, every call site receives the same
stateless no-op context so instrumented code pays close to nothing.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os
import time
from types import TracebackType
from typing import Any, Protocol, Self, runtime_checkable

log = logging.getLogger(__name__)

# Context-aware scope nesting; fan-out tasks each inherit a copy
_scope_stack_var: ContextVar[tuple[str, ...]] = ContextVar(
    "schemaless_scope_stack",
    default=(),
)


def telemetry_enabled() -> bool:
    """Return True when the environment switches telemetry on."""
    return os.getenv("SCHEMALESS_TELEMETRY") == "1" or os.getenv("DEBUG") == "1"


@runtime_checkable
class TelemetryReporter(Protocol):
    """Duck-typed protocol for telemetry reporters."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


@dataclass(frozen=True, slots=True)
class _NoOpTelemetryContext:
    """An immutable and stateless no-op context."""

    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        return None

    @property
    def enabled(self) -> bool:
        return False

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        pass


class _EnabledTelemetryContext:
    """Telemetry context forwarding scopes and metrics to reporters."""

    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    @property
    def enabled(self) -> bool:
        return True

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager[_EnabledTelemetryContext]:
        return self._scope(name, **metadata)

    @contextmanager
    def _scope(self, name: str, **metadata: Any) -> Iterator[_EnabledTelemetryContext]:
        if not name or not isinstance(name, str):
            raise ValueError("Scope name must be a non-empty string")

        parent = _scope_stack_var.get()
        scope_path = ".".join((*parent, name))
        token = _scope_stack_var.set((*parent, name))
        start = time.perf_counter()
        try:
            yield self
        finally:
            duration = time.perf_counter() - start
            _scope_stack_var.reset(token)
            self._emit(
                "record_timing",
                scope_path,
                duration,
                depth=len(parent),
                parent_scope=".".join(parent) if parent else None,
                **metadata,
            )

    def _emit(self, method: str, scope: str, value: Any, **metadata: Any) -> None:
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(scope, value, **metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )

    def _metric(self, name: str, value: Any, **metadata: Any) -> None:
        parent = _scope_stack_var.get()
        self._emit(
            "record_metric",
            ".".join((*parent, name)),
            value,
            depth=len(parent),
            parent_scope=".".join(parent) if parent else None,
            **metadata,
        )

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        """Record a counter metric."""
        self._metric(name, increment, metric_type="counter", **metadata)

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        """Record a gauge metric."""
        self._metric(name, value, metric_type="gauge", **metadata)


_NO_OP_SINGLETON = _NoOpTelemetryContext()

type TelemetryContextProtocol = _EnabledTelemetryContext | _NoOpTelemetryContext


def TelemetryContext(  # noqa: N802
    *reporters: TelemetryReporter, enabled: bool | None = None
) -> TelemetryContextProtocol:
    """Return a telemetry context.

    ``enabled`` overrides the environment switch. Without reporters the shared
    no-op instance is returned regardless.
    """
    on = telemetry_enabled() if enabled is None else enabled
    if on and reporters:
        return _EnabledTelemetryContext(*reporters)
    return _NO_OP_SINGLETON


class InMemoryReporter:
    """Reporter that keeps the most recent timings and metrics per scope."""

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (duration, metadata)
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (value, metadata)
        )

    def total(self, scope: str) -> float:
        """Sum of the numeric values recorded for ``scope``."""
        values = self.metrics.get(scope, ())
        return sum(v for v, _ in values if isinstance(v, int | float))

    def get_report(self) -> str:
        """Render timings and metrics as a flat, sorted text report."""
        lines = ["=== Telemetry Report ===", "", "--- Timings ---"]
        for scope, entries in sorted(self.timings.items()):
            durations = [d for d, _ in entries]
            lines.append(
                f"{scope:<40} | Calls: {len(durations):<4} | "
                f"Avg: {sum(durations) / len(durations):.4f}s | "
                f"Total: {sum(durations):.4f}s"
            )
        if self.metrics:
            lines.extend(["", "--- Metrics ---"])
            for scope in sorted(self.metrics):
                lines.append(
                    f"{scope:<40} | Count: {len(self.metrics[scope]):<4} | "
                    f"Total: {self.total(scope):,.0f}"
                )
        return "\n".join(lines)
