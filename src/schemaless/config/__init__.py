"""Configuration management for schemaless.

Resolve-once, freeze-then-flow:
- ResolvedConfig: merged configuration with the origin of every value
- FrozenConfig: immutable configuration handed to the translator
- SourceMap: audit tracking of configuration value origins
"""

from .api import (
    check_environment,
    get_effective_profile,
    list_available_profiles,
    resolve_config,
)
from .audit import SourceTracker, generate_redacted_audit, generate_telemetry_summary
from .file_loader import ConfigFileError, FileConfigLoader
from .resolver import ConfigResolver
from .schema import SchemalessSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap

__all__ = [  # noqa: RUF022
    # Resolution
    "resolve_config",
    "ConfigResolver",
    "list_available_profiles",
    "get_effective_profile",
    "check_environment",
    # Types
    "ResolvedConfig",
    "FrozenConfig",
    "ConfigOrigin",
    "SourceMap",
    "SchemalessSettings",
    # Sources and audit
    "FileConfigLoader",
    "ConfigFileError",
    "SourceTracker",
    "generate_redacted_audit",
    "generate_telemetry_summary",
]
