"""File-based configuration loading with profile support.

Configuration can live in the project's ``pyproject.toml`` under
``[tool.schemaless]`` and in a home file (``~/.config/schemaless.toml``, or
the path in ``SCHEMALESS_CONFIG_HOME``). Both may define named profiles under
a ``profiles`` table.
"""

import os
from pathlib import Path
import tomllib
from typing import Any

from schemaless.exceptions import ConfigurationError


class ConfigFileError(ConfigurationError):
    """Raised when configuration file loading fails."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open(mode="rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e


def _select_profile(
    section: dict[str, Any], profile: str | None, path: Path
) -> dict[str, Any]:
    profiles = section.get("profiles", {})
    if profile:
        if profile not in profiles:
            raise ConfigFileError(
                path,
                f"Profile '{profile}' not found. Available profiles: {list(profiles)}",
            )
        return dict(profiles[profile])
    config = dict(section)
    config.pop("profiles", None)
    return config


class FileConfigLoader:
    """Loads configuration from the project and home TOML files."""

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load ``[tool.schemaless]`` (or one of its profiles) from pyproject.toml.

        Returns:
            The configuration table; empty when there is no file or section.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is unknown.
        """
        path = self._find_pyproject_toml(project_root)
        if not path:
            return {}
        section = _read_toml(path).get("tool", {}).get("schemaless", {})
        if not section:
            return {}
        return _select_profile(section, profile, path)

    def load_home_config(self, profile: str | None = None) -> dict[str, Any]:
        """Load the home configuration file (or one of its profiles).

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is unknown.
        """
        path = self._get_home_config_path()
        if not path.exists():
            return {}
        return _select_profile(_read_toml(path), profile, path)

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        """Profile names defined in the project and home files."""
        profiles: dict[str, list[str]] = {"project": [], "home": []}

        try:
            path = self._find_pyproject_toml(project_root)
            if path:
                section = _read_toml(path).get("tool", {}).get("schemaless", {})
                profiles["project"] = list(section.get("profiles", {}))
        except ConfigFileError:
            pass

        try:
            path = self._get_home_config_path()
            if path.exists():
                profiles["home"] = list(_read_toml(path).get("profiles", {}))
        except ConfigFileError:
            pass

        return profiles

    def _find_pyproject_toml(self, start_dir: Path | None = None) -> Path | None:
        current = Path(start_dir or Path.cwd()).resolve()
        while current != current.parent:
            candidate = current / "pyproject.toml"
            if candidate.exists():
                return candidate
            current = current.parent
        return None

    def _get_home_config_path(self) -> Path:
        override = os.getenv("SCHEMALESS_CONFIG_HOME")
        if override:
            return Path(override)
        return Path.home() / ".config" / "schemaless.toml"
