"""Exceptions for schemaless translation"""  # noqa: D415


class SchemalessError(Exception):
    """Base exception for schemaless translation errors"""  # noqa: D415


class PathError(SchemalessError):
    """Raised when a path expression cannot be resolved against a tree"""  # noqa: D415

    def __init__(self, message: str, *, path: str | None = None) -> None:  # noqa: D107
        self.path = path
        super().__init__(message)


class PathNotFoundError(PathError):
    """Raised when a key or list index named by a path is absent"""  # noqa: D415


class TypeMismatchError(PathError):
    """Raised when a selector does not fit the type of the node it meets"""  # noqa: D415


class ListLengthMismatchError(SchemalessError):
    """Raised when aligned list fields differ in length under the strict policy"""  # noqa: D415


class TemplateError(SchemalessError):
    """Raised when a translation template cannot be parsed"""  # noqa: D415


class MalformedInputError(SchemalessError):
    """Raised when the source is neither JSON nor YAML-convertible"""  # noqa: D415


class GenerationFailedError(SchemalessError):
    """Raised when the template generator exhausted its attempts"""  # noqa: D415


class InputTooLargeError(GenerationFailedError):
    """Raised when a shape is too large to send to the generator"""  # noqa: D415


class MissingKeyError(SchemalessError):
    """Raised when a required API key or configuration key is missing"""  # noqa: D415


class CacheUnavailableError(SchemalessError):
    """Raised when the backing cache cannot be reached"""  # noqa: D415


class StandardNotFoundError(SchemalessError):
    """Raised when a standard cannot be loaded from the standard store"""  # noqa: D415


class TranslationCancelledError(SchemalessError):
    """Raised when a translation is cancelled through its cancel token"""  # noqa: D415


class ConfigurationError(SchemalessError):
    """Raised when configuration values are invalid"""  # noqa: D415
