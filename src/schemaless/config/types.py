"""Core configuration data types.

Configuration follows a resolve-once, freeze-then-flow pattern: all sources
are merged into a ``ResolvedConfig`` (which remembers where each value came
from), then frozen into a ``FrozenConfig`` that the translator receives.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Literal, NamedTuple

from schemaless.engine.forward import ListPolicy

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing."""

    api_key: str | None
    model: str
    file_location: str
    template_ttl_seconds: int
    lock_ttl_seconds: int
    poll_interval_seconds: float
    poll_attempts: int
    generation_attempts: int
    generation_retry_delay: float
    max_input_size: int
    max_cache_item_size: int
    max_concurrency: int
    max_substandard_items: int
    singleflight_jitter_seconds: float
    list_policy: ListPolicy

    # Audit metadata - where each field value came from
    origin: SourceMap

    def __repr__(self) -> str:
        """Repr with redacted API key for safe logging."""
        values = self._asdict()
        values["api_key"] = "[REDACTED]" if self.api_key else None
        values["origin"] = dict(self.origin)
        body = ", ".join(f"{k}={v!r}" for k, v in values.items())
        return f"ResolvedConfig({body})"

    __str__ = __repr__

    def to_frozen(self) -> "FrozenConfig":
        """Drop the audit metadata and return the immutable pipeline config."""
        values = self._asdict()
        values.pop("origin")
        return FrozenConfig(**values)

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Return a copy with programmatic overrides applied.

        Unknown fields are ignored. Overridden fields are marked
        ``programmatic`` in the origin map.
        """
        known = {k: v for k, v in overrides.items() if k in self._fields and k != "origin"}
        origin = dict(self.origin)
        origin.update(dict.fromkeys(known, "programmatic"))
        return self._replace(**known, origin=origin)

    def audit(self) -> str:
        """Redacted, human-readable report of each field's origin."""
        from .audit import generate_redacted_audit

        values = self._asdict()
        values.pop("origin")
        return generate_redacted_audit(values, self.origin)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration handed to the translator."""

    api_key: str | None
    model: str
    file_location: str
    template_ttl_seconds: int
    lock_ttl_seconds: int
    poll_interval_seconds: float
    poll_attempts: int
    generation_attempts: int
    generation_retry_delay: float
    max_input_size: int
    max_cache_item_size: int
    max_concurrency: int
    max_substandard_items: int
    singleflight_jitter_seconds: float
    list_policy: ListPolicy

    def __repr__(self) -> str:
        """Repr with redacted API key for safe debugging."""
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "api_key":
                value = "[REDACTED]" if value else None
            parts.append(f"{f.name}={value!r}")
        return f"FrozenConfig({', '.join(parts)})"

    __str__ = __repr__
