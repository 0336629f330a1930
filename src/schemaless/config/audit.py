"""Configuration audit and source tracking.

Tracks where each configuration value came from and renders that history
without leaking secrets.
"""

from typing import Any

from .schema import FIELD_NAMES, SENSITIVE_FIELDS, env_var_for
from .types import ConfigOrigin, SourceMap


class SourceTracker:
    """Builds a SourceMap while sources are merged."""

    def __init__(self) -> None:
        self._origins: dict[str, ConfigOrigin] = {}

    def set_origin(self, field: str, origin: ConfigOrigin) -> None:
        """Record the origin of a configuration field."""
        self._origins[field] = origin

    def set_multiple(self, fields: dict[str, Any], origin: ConfigOrigin) -> None:
        """Record the same origin for every field in ``fields``."""
        for field in fields:
            self._origins[field] = origin

    def get_source_map(self) -> SourceMap:
        """Return a copy of the current source map."""
        return dict(self._origins)


def generate_telemetry_summary(source_map: SourceMap) -> dict[str, int]:
    """Count fields per origin, e.g. ``{"env": 3, "default": 12}``."""
    counts: dict[str, int] = {}
    for origin in source_map.values():
        counts[origin] = counts.get(origin, 0) + 1
    return counts


def _display(field: str, origin: ConfigOrigin, value: Any) -> str:
    if field in SENSITIVE_FIELDS:
        if value is None:
            return f"{origin}:None"
        if origin == "env":
            return f"env:{env_var_for(field)}"
        return f"{origin}:<redacted>"
    if origin == "env":
        return f"env:{env_var_for(field)}={value}"
    return f"{origin}:{value}"


def generate_redacted_audit(config_dict: dict[str, Any], source_map: SourceMap) -> str:
    """Render one ``field: origin:value`` line per field, secrets redacted.

    Fields are listed in schema order.
    """
    lines = [
        f"{field}: {_display(field, source_map[field], config_dict.get(field, '<missing>'))}"
        for field in FIELD_NAMES
        if field in source_map
    ]
    return "\n".join(lines)
