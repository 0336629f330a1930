"""Environment variable configuration loading.

Reads ``SCHEMALESS_*`` variables, optionally after loading a ``.env`` file
with python-dotenv. Variables already set in the process win over the file.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from .schema import FIELD_NAMES, SENSITIVE_FIELDS, SchemalessSettings, env_var_for


class EnvironmentConfigLoader:
    """Loads configuration from ``SCHEMALESS_*`` environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Return the fields set in the environment, validated and coerced.

        Raises:
            FileNotFoundError: If ``env_file`` is given but does not exist.
            ValueError: If an environment variable holds an invalid value.
        """
        if env_file:
            env_path = Path(env_file)
            if not env_path.exists():
                raise FileNotFoundError(f"Environment file not found: {env_path}")
            load_dotenv(env_path, override=False)

        raw = {
            field: os.environ[env_var_for(field)]
            for field in FIELD_NAMES
            if env_var_for(field) in os.environ
        }
        if not raw:
            return {}

        try:
            settings = SchemalessSettings(**raw)
        except ValidationError as e:
            names = ", ".join(env_var_for(field) for field in raw)
            raise ValueError(f"Invalid environment variable values ({names}): {e}") from e
        return {field: getattr(settings, field) for field in raw}

    def get_env_summary(self) -> dict[str, str]:
        """Currently set ``SCHEMALESS_*`` variables, secrets redacted."""
        summary = {}
        for field in FIELD_NAMES:
            name = env_var_for(field)
            if name in os.environ:
                summary[name] = (
                    "<redacted>" if field in SENSITIVE_FIELDS else os.environ[name]
                )
        return summary
