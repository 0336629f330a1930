"""Configuration schema and validation using Pydantic.

Validates and coerces configuration values from every source (environment,
files, programmatic) into their final types.
"""

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemaless import constants


class SchemalessSettings(BaseSettings):
    """Pydantic settings schema for schemaless translation.

    Environment variables use the ``SCHEMALESS_`` prefix, e.g.
    ``SCHEMALESS_API_KEY`` or ``SCHEMALESS_POLL_ATTEMPTS``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEMALESS_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Generation ---

    api_key: str | None = Field(
        default=None,
        description="Gemini API key used by the default template generator",
    )
    model: str = Field(
        default=constants.DEFAULT_MODEL,
        description="Gemini model identifier",
        min_length=1,
    )
    generation_attempts: int = Field(default=constants.GENERATION_ATTEMPTS, ge=1)
    generation_retry_delay: float = Field(
        default=constants.GENERATION_RETRY_DELAY, ge=0
    )
    max_input_size: int = Field(
        default=constants.MAX_INPUT_SIZE,
        ge=1,
        description="Largest input shape (bytes) sent to the generator",
    )

    # --- Storage and cache ---

    file_location: str = Field(
        default="files/schemaless",
        description="Root directory of standards and learned templates",
        min_length=1,
    )
    template_ttl_seconds: int = Field(default=constants.TEMPLATE_TTL, ge=1)
    max_cache_item_size: int = Field(default=constants.MAX_CACHE_ITEM_SIZE, ge=1)

    # --- Single-flight ---

    lock_ttl_seconds: int = Field(default=constants.LOCK_TTL, ge=1)
    poll_interval_seconds: float = Field(default=constants.POLL_INTERVAL, ge=0)
    poll_attempts: int = Field(default=constants.POLL_ATTEMPTS, ge=0)
    singleflight_jitter_seconds: float = Field(
        default=constants.SINGLEFLIGHT_JITTER, ge=0
    )

    # --- Translation ---

    max_concurrency: int = Field(default=constants.MAX_CONCURRENCY, ge=1)
    max_substandard_items: int = Field(default=constants.MAX_SUBSTANDARD_ITEMS, ge=1)
    list_policy: Literal["pad_first", "strict"] = Field(
        default="pad_first",
        description="Alignment of list fields with different lengths",
    )

    @field_validator("list_policy", mode="before")
    @classmethod
    def parse_list_policy(cls, v: Any) -> str:
        """Accept case and dash variants such as ``PAD-FIRST``."""
        if isinstance(v, str):
            normalized = v.strip().lower().replace("-", "_")
            if normalized in ("pad_first", "strict"):
                return normalized
        raise ValueError(f"Invalid list_policy: {v}. Must be one of: pad_first, strict")

    @classmethod
    def defaults(cls) -> dict[str, Any]:
        """Field defaults, without reading the environment."""
        return {
            name: field.get_default(call_default_factory=True)
            for name, field in cls.model_fields.items()
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for SourceMap annotation."""
        return self.model_dump()


FIELD_NAMES: tuple[str, ...] = tuple(SchemalessSettings.model_fields)
SENSITIVE_FIELDS: frozenset[str] = frozenset({"api_key"})


def env_var_for(field: str) -> str:
    """Environment variable that sets ``field``."""
    return f"SCHEMALESS_{field.upper()}"
