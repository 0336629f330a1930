"""Schemaless: translate arbitrary JSON documents onto named standards."""

import importlib.metadata
import logging

from schemaless.cache import Cache, ChunkedCache, MemoryCache
from schemaless.cancellation import CancelToken
from schemaless.config import FrozenConfig, ResolvedConfig, resolve_config
from schemaless.engine import (
    apply_template,
    infer_template,
    place_value,
    reverse_translate,
)
from schemaless.exceptions import (
    CacheUnavailableError,
    ConfigurationError,
    GenerationFailedError,
    InputTooLargeError,
    ListLengthMismatchError,
    MalformedInputError,
    MissingKeyError,
    PathError,
    PathNotFoundError,
    SchemalessError,
    StandardNotFoundError,
    TemplateError,
    TranslationCancelledError,
    TypeMismatchError,
)
from schemaless.generation import GeminiTemplateGenerator, TemplateGenerator
from schemaless.paths import resolve_path, try_resolve
from schemaless.shape import shape_skeleton, shape_token
from schemaless.stores import FileSampleStore, FileStandardStore
from schemaless.telemetry import InMemoryReporter, TelemetryContext, TelemetryReporter
from schemaless.translator import Translator, create_translator, parse_input
from schemaless.types import Failure, Multi, Result, Single, Success

# Version handling
try:
    __version__ = importlib.metadata.version("schemaless")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the consuming app has no logging configured.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Translation
    "Translator",
    "create_translator",
    "parse_input",
    "CancelToken",
    # Template engines
    "apply_template",
    "infer_template",
    "reverse_translate",
    "place_value",
    "resolve_path",
    "try_resolve",
    "shape_skeleton",
    "shape_token",
    # Extension points
    "Cache",
    "MemoryCache",
    "ChunkedCache",
    "TemplateGenerator",
    "GeminiTemplateGenerator",
    "FileStandardStore",
    "FileSampleStore",
    "TelemetryContext",
    "TelemetryReporter",
    "InMemoryReporter",
    # Configuration
    "resolve_config",
    "ResolvedConfig",
    "FrozenConfig",
    # Result types
    "Result",
    "Success",
    "Failure",
    "Single",
    "Multi",
    # Exceptions
    "SchemalessError",
    "PathError",
    "PathNotFoundError",
    "TypeMismatchError",
    "ListLengthMismatchError",
    "TemplateError",
    "MalformedInputError",
    "GenerationFailedError",
    "InputTooLargeError",
    "MissingKeyError",
    "CacheUnavailableError",
    "StandardNotFoundError",
    "TranslationCancelledError",
    "ConfigurationError",
]
