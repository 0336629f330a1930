"""Template generation and single-flight coordination."""

from .generator import GeminiTemplateGenerator, TemplateGenerator, generate_with_retry
from .prompts import SYSTEM_INSTRUCTION, build_query, clean_template_text
from .singleflight import SingleFlight, lock_key

__all__ = [
    "SYSTEM_INSTRUCTION",
    "GeminiTemplateGenerator",
    "SingleFlight",
    "TemplateGenerator",
    "build_query",
    "clean_template_text",
    "generate_with_retry",
    "lock_key",
]
