"""Template generators and the retry policy around them.

A generator turns a standard plus a value-free source shape into a template.
The default one asks Gemini; anything implementing ``TemplateGenerator`` can
be injected instead.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Protocol, runtime_checkable

from google import genai
from google.genai import types

from schemaless.cancellation import CancelToken, checkpoint, pause, race
from schemaless.constants import (
    DEFAULT_MODEL,
    GENERATION_ATTEMPTS,
    GENERATION_RETRY_DELAY,
    MAX_INPUT_SIZE,
)
from schemaless.exceptions import (
    GenerationFailedError,
    InputTooLargeError,
    MissingKeyError,
    TranslationCancelledError,
)
from schemaless.telemetry import TelemetryContext, TelemetryContextProtocol

from .prompts import SYSTEM_INSTRUCTION, build_query, clean_template_text

log = logging.getLogger(__name__)


@runtime_checkable
class TemplateGenerator(Protocol):
    """Produces a template for a standard and a source shape."""

    async def generate(self, standard: bytes, shape: bytes) -> bytes:
        """Return the template as JSON bytes."""
        ...


class GeminiTemplateGenerator:
    """Generates templates with a Gemini model through google-genai."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_input_size: int = MAX_INPUT_SIZE,
        client: genai.Client | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise MissingKeyError(
                    "A Gemini API key is required; set SCHEMALESS_API_KEY"
                )
            client = genai.Client(api_key=api_key)
        self.client = client
        self.model = model
        self.max_input_size = max_input_size

    async def generate(self, standard: bytes, shape: bytes) -> bytes:
        """Ask the model for a template.

        Raises:
            InputTooLargeError: If ``shape`` exceeds ``max_input_size``.
            GenerationFailedError: If the model returns no text.
        """
        if len(shape) > self.max_input_size:
            raise InputTooLargeError(
                f"Input shape too large: {len(shape)} > {self.max_input_size} bytes"
            )

        config = types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            temperature=0.0,
            response_mime_type="text/plain",
        )
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=build_query(standard, shape),
            config=config,
        )
        text = response.text or ""
        if not text.strip():
            raise GenerationFailedError(f"Model {self.model} returned an empty reply")
        return clean_template_text(text).encode("utf-8")


async def generate_with_retry(
    generator: TemplateGenerator,
    standard: bytes,
    shape: bytes,
    *,
    attempts: int = GENERATION_ATTEMPTS,
    delay: float = GENERATION_RETRY_DELAY,
    cancel: CancelToken | None = None,
    validate: Callable[[bytes], object] | None = None,
    telemetry: TelemetryContextProtocol | None = None,
) -> bytes:
    """Call ``generator`` with a bounded number of fixed-delay retries.

    ``validate`` is applied to every reply; a reply it rejects counts as a
    failed attempt. Oversized input and a missing key are not retried.

    Raises:
        GenerationFailedError: When every attempt failed.
        TranslationCancelledError: If ``cancel`` fires, including while a
            generator call is in flight; that call is abandoned.
    """
    tele = telemetry or TelemetryContext()
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        await checkpoint(cancel)
        try:
            with tele("generation.attempt", attempt=attempt):
                reply = await race(generator.generate(standard, shape), cancel)
                if validate is not None:
                    validate(reply)
                return reply
        except (InputTooLargeError, MissingKeyError, TranslationCancelledError):
            raise
        except Exception as e:
            last_error = e
            tele.count("generation.failures")
            log.warning(
                "Template generation failed (attempt %d/%d): %s", attempt, attempts, e
            )
        if attempt < attempts:
            await pause(delay, cancel)

    raise GenerationFailedError(
        f"Template generation failed after {attempts} attempts: {last_error}"
    ) from last_error
