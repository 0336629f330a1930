"""Configuration resolution with precedence handling.

Merges configuration from every source in this order, later steps winning:
Defaults < Home file < Project file < Environment < Programmatic
"""

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schemaless.exceptions import ConfigurationError

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .file_loader import ConfigFileError, FileConfigLoader
from .schema import SchemalessSettings
from .types import ConfigOrigin, ResolvedConfig

log = logging.getLogger(__name__)


class ConfigResolver:
    """Resolves configuration from multiple sources with proper precedence."""

    def __init__(self) -> None:
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        use_env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources.

        Raises:
            ConfigurationError: If validation fails, the environment holds
                invalid values, or the project file is malformed.
        """
        tracker = SourceTracker()
        merged: dict[str, Any] = SchemalessSettings.defaults()
        tracker.set_multiple(merged, "default")

        if profile is None:
            profile = self.get_effective_profile()

        def apply(values: dict[str, Any], origin: ConfigOrigin) -> None:
            for field, value in values.items():
                if field in merged:  # Only known fields
                    merged[field] = value
                    tracker.set_origin(field, origin)

        try:
            apply(self.file_loader.load_home_config(profile=profile), "file")
        except ConfigFileError as e:
            # A broken home file should not stop a project from running
            log.warning("Ignoring home configuration: %s", e)

        try:
            apply(
                self.file_loader.load_project_config(
                    project_root=project_root, profile=profile
                ),
                "file",
            )
        except ConfigFileError:
            if profile is None:
                raise
            log.warning("Profile '%s' not found in project configuration", profile)

        try:
            apply(self.env_loader.load_env_config(env_file=use_env_file), "env")
        except (ValueError, FileNotFoundError) as e:
            raise ConfigurationError(f"Environment configuration error: {e}") from e

        if programmatic:
            apply(programmatic, "programmatic")

        try:
            final = SchemalessSettings(**merged).to_dict()
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(**final, origin=tracker.get_source_map())

    def get_effective_profile(self) -> str | None:
        """Profile named by ``SCHEMALESS_PROFILE``, if any."""
        return os.getenv("SCHEMALESS_PROFILE") or None

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        """Profile names defined in the project and home files."""
        return self.file_loader.list_available_profiles(project_root)
