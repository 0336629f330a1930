"""Public entry points of the configuration system."""

from pathlib import Path
from typing import Any

from .resolver import ConfigResolver
from .types import ResolvedConfig

# Global resolver instance for efficient reuse
_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Precedence: Programmatic > Environment > Project file > Home file > Defaults.

    Args:
        programmatic: Overrides with the highest precedence. Unknown fields
            are ignored.
        profile: Profile to load from configuration files. Defaults to
            ``SCHEMALESS_PROFILE``.
        use_env_file: Optional ``.env`` file loaded before reading the
            environment.
        project_root: Where to start looking for ``pyproject.toml``. Defaults
            to the current directory and its parents.

    Returns:
        ResolvedConfig with merged values and the origin of each.

    Raises:
        ConfigurationError: If validation fails or a source is malformed.

    Example:
        config = resolve_config({"max_concurrency": 4})
        translator = create_translator(config.to_frozen())
    """
    return _resolver.resolve(
        programmatic=programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    """Profile names available in the project (``project``) and home (``home``) files."""
    return _resolver.list_available_profiles(project_root)


def get_effective_profile() -> str | None:
    """Profile selected through ``SCHEMALESS_PROFILE``, or None."""
    return _resolver.get_effective_profile()


def check_environment() -> dict[str, str]:
    """Currently set ``SCHEMALESS_*`` variables with secrets redacted."""
    return _resolver.env_loader.get_env_summary()
