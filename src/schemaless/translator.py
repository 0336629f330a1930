"""Translation orchestrator.

``Translator.translate`` runs the whole pipeline for one document:

1. parse the input (JSON, YAML, or already decoded),
2. fingerprint its shape and derive the template key,
3. look the template up in the cache, then in the sample store,
4. otherwise learn it: from a sample output by reverse inference, or from
   the template generator under single-flight coordination,
5. apply the template to the document.

A standard whose whole body is ``[other]`` names a sub-standard; documents
for it are split into their list items and each item is translated with the
sub-standard, concurrently and in source order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import datetime
import json
import logging
from pathlib import Path
import re
from typing import Any

import yaml

from schemaless.cache import Cache, ChunkedCache, MemoryCache
from schemaless.cancellation import CancelToken, checkpoint
from schemaless.config import FrozenConfig, ResolvedConfig, resolve_config
from schemaless.constants import (
    INPUT_NAMESPACE,
    QUERIES_NAMESPACE,
    TEMPLATES_NAMESPACE,
)
from schemaless.engine.forward import ObjectSpec, apply_template, parse_template
from schemaless.engine.reverse import infer_template
from schemaless.exceptions import (
    MalformedInputError,
    MissingKeyError,
    SchemalessError,
    TemplateError,
    TranslationCancelledError,
)
from schemaless.generation import (
    GeminiTemplateGenerator,
    SingleFlight,
    TemplateGenerator,
    build_query,
    clean_template_text,
    generate_with_retry,
)
from schemaless.shape import shape_fingerprint, template_key
from schemaless.stores import (
    FileSampleStore,
    FileStandardStore,
    SampleStore,
    StandardStore,
)
from schemaless.telemetry import TelemetryContext, TelemetryContextProtocol


log = logging.getLogger(__name__)

_SUBSTANDARD_RE = re.compile(r'^\[\s*"?([A-Za-z0-9_.@-]+)"?\s*\]$')

# --- Input and template parsing ---


def _jsonable(value: Any) -> Any:
    """Coerce YAML-only values (non-string keys, dates) into JSON types."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime.date):
        return value.isoformat()
    return value


def parse_input(source: Any) -> dict[str, Any] | list[Any]:
    """Decode a source document.

    Accepts an already decoded object or list, or JSON / YAML text.

    Raises:
        MalformedInputError: If the input does not decode to an object or list.
    """
    if isinstance(source, Mapping):
        return dict(source)
    if isinstance(source, list):
        return source
    if isinstance(source, bytes | bytearray):
        try:
            source = bytes(source).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Input is not UTF-8: {e}") from e
    if not isinstance(source, str):
        raise MalformedInputError(f"Unsupported input type {type(source).__name__}")

    text = source.strip()
    if not text:
        raise MalformedInputError("Input is empty")
    try:
        document = json.loads(text)
    except ValueError:
        try:
            document = _jsonable(yaml.safe_load(text))
        except yaml.YAMLError as e:
            raise MalformedInputError(f"Input is neither JSON nor YAML: {e}") from e

    if not isinstance(document, dict | list):
        raise MalformedInputError(
            f"Input must be an object or a list, got {type(document).__name__}"
        )
    return document


def decode_template(raw: bytes | str) -> ObjectSpec:
    """Parse stored or generated template text.

    Raises:
        TemplateError: If the text is not a JSON object.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        template = json.loads(clean_template_text(text))
    except ValueError as e:
        raise TemplateError(f"Template is not valid JSON: {e}") from e
    return parse_template(template)


def substandard_name(standard_body: bytes) -> str | None:
    """Return ``name`` when the standard body is exactly ``[name]``."""
    match = _SUBSTANDARD_RE.match(standard_body.decode("utf-8", errors="replace").strip())
    return match.group(1).removesuffix(".json") if match else None


def find_items(document: Any) -> list[Any]:
    """List whose items a sub-standard is applied to.

    The document itself when it is a list, else the first list-valued key in
    sorted key order.
    """
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for key in sorted(document):
            if isinstance(document[key], list):
                return document[key]
    return []


def fingerprint(standard: str, document: Any, prefix: str = "") -> tuple[bytes, str]:
    """Return the canonical skeleton of ``document`` and its template key."""
    shape, token = shape_fingerprint(document)
    return shape, template_key(standard, token, prefix)


class Translator:
    """Translates documents onto standards, learning templates per shape."""

    def __init__(
        self,
        config: FrozenConfig,
        *,
        cache: Cache | ChunkedCache,
        standards: StandardStore,
        generator: TemplateGenerator | None = None,
        samples: SampleStore | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.config = config
        self.cache = (
            cache
            if isinstance(cache, ChunkedCache)
            else ChunkedCache(cache, max_item_size=config.max_cache_item_size)
        )
        self.standards = standards
        self.generator = generator
        self.samples = samples
        self._tele: TelemetryContextProtocol = telemetry or TelemetryContext()
        self.singleflight = SingleFlight(
            self.cache,
            lock_ttl=config.lock_ttl_seconds,
            poll_interval=config.poll_interval_seconds,
            poll_attempts=config.poll_attempts,
            result_ttl=config.template_ttl_seconds,
            jitter=config.singleflight_jitter_seconds,
            telemetry=self._tele,
        )

    async def translate(
        self,
        standard: str,
        source: Any,
        *,
        sample: Any | None = None,
        keep_original: bool = False,
        skip_substandard: bool = False,
        filename_prefix: str = "",
        cancel: CancelToken | None = None,
    ) -> dict[str, Any] | list[Any]:
        """Translate ``source`` onto ``standard``.

        Args:
            standard: Standard name, with or without a ``.json`` suffix.
            source: Decoded document, or JSON / YAML text or bytes.
            sample: Known-good output for ``source``. When no template is
                stored yet, the template is inferred from it instead of
                generated.
            keep_original: Attach the parsed source under ``unmapped``.
            skip_substandard: Treat a ``[name]`` standard as a plain standard.
            filename_prefix: Prefix for the template key, to keep separately
                learned templates for the same standard and shape.
            cancel: Token that aborts the translation.

        Returns:
            The translated object, or a list of objects for a sub-standard.

        Raises:
            MalformedInputError: The input could not be decoded.
            StandardNotFoundError: The standard does not exist.
            GenerationFailedError: No template could be generated.
            MissingKeyError: A template is needed but no generator is configured.
            TranslationCancelledError: ``cancel`` fired.
        """
        await checkpoint(cancel)
        standard = standard.removesuffix(".json")
        document = parse_input(source)

        with self._tele("translate", standard=standard):
            with self._tele("fingerprint"):
                shape, key = fingerprint(standard, document, filename_prefix)
            await self._persist(INPUT_NAMESPACE, key, shape)

            spec = await self._lookup(key)
            if spec is None:
                standard_body = await self.standards.load(standard)
                sub = None if skip_substandard else substandard_name(standard_body)
                if sub is not None:
                    return await self._fan_out(
                        sub,
                        document,
                        keep_original=keep_original,
                        filename_prefix=filename_prefix,
                        cancel=cancel,
                    )
                spec = await self._learn_template(
                    key, standard_body, shape, document, sample, cancel
                )

            await checkpoint(cancel)
            with self._tele("apply"):
                return apply_template(
                    document,
                    spec,
                    keep_original=keep_original,
                    list_policy=self.config.list_policy,
                )

    async def learn(
        self,
        standard: str,
        source: Any,
        sample: Any,
        *,
        filename_prefix: str = "",
    ) -> dict[str, str]:
        """Infer the template for ``source`` from ``sample`` and store it.

        Later translations of documents with the same shape use the stored
        template without generation. Returns the inferred template.
        """
        standard = standard.removesuffix(".json")
        document = parse_input(source)
        _, key = fingerprint(standard, document, filename_prefix)
        template = infer_template(document, _decode_sample(sample))
        await self._store_template(key, json.dumps(template, indent=2).encode("utf-8"))
        return template

    # --- Template lookup and learning ---

    async def _lookup(self, key: str) -> ObjectSpec | None:
        with self._tele("lookup"):
            raw = await self.cache.get(key)
            if raw is not None:
                spec = self._decode_stored(key, raw, "cache")
                if spec is not None:
                    self._tele.count("cache.hit")
                    return spec
                # Keep single-flight from handing the bad entry back
                await self.cache.delete(key)
            self._tele.count("cache.miss")

            if self.samples is None:
                return None
            try:
                raw = await self.samples.load(TEMPLATES_NAMESPACE, key)
            except (OSError, ValueError) as e:
                log.warning("Couldn't read stored template %s: %s", key, e)
                return None
            if raw is None:
                return None
            spec = self._decode_stored(key, raw, "sample store")
            if spec is not None:
                await self.cache.set(key, raw, self.config.template_ttl_seconds)
            return spec

    def _decode_stored(self, key: str, raw: bytes, where: str) -> ObjectSpec | None:
        try:
            return decode_template(raw)
        except TemplateError as e:
            log.warning("Ignoring malformed template %s from %s: %s", key, where, e)
            return None

    async def _learn_template(
        self,
        key: str,
        standard_body: bytes,
        shape: bytes,
        document: Any,
        sample: Any | None,
        cancel: CancelToken | None,
    ) -> ObjectSpec:
        if sample is not None:
            template = infer_template(document, _decode_sample(sample))
            log.info("Inferred template %s from sample output", key)
            raw = json.dumps(template, indent=2).encode("utf-8")
            await self._store_template(key, raw)
            return parse_template(template)

        if self.generator is None:
            raise MissingKeyError(
                f"No template stored for {key} and no generator configured; "
                "set SCHEMALESS_API_KEY or pass a sample"
            )

        async def produce() -> bytes:
            return await self._generate(key, standard_body, shape, cancel)

        with self._tele("generate"):
            raw = await self.singleflight.do(key, produce, cancel=cancel)
        try:
            return decode_template(raw)
        except TemplateError as e:
            # Written by another process without validation
            await self.cache.delete(key)
            raise TemplateError(f"Shared template {key} is malformed: {e}") from e

    async def _generate(
        self,
        key: str,
        standard_body: bytes,
        shape: bytes,
        cancel: CancelToken | None,
    ) -> bytes:
        assert self.generator is not None  # noqa: S101
        log.info("Generating template %s", key)
        await self._persist(
            QUERIES_NAMESPACE, key, build_query(standard_body, shape).encode("utf-8")
        )
        raw = await generate_with_retry(
            self.generator,
            standard_body,
            shape,
            attempts=self.config.generation_attempts,
            delay=self.config.generation_retry_delay,
            cancel=cancel,
            validate=decode_template,
            telemetry=self._tele,
        )
        await self._persist(TEMPLATES_NAMESPACE, key, raw)
        return raw

    async def _store_template(self, key: str, raw: bytes) -> None:
        await self._persist(TEMPLATES_NAMESPACE, key, raw)
        await self.cache.set(key, raw, self.config.template_ttl_seconds)

    async def _persist(self, namespace: str, key: str, data: bytes) -> None:
        """Best-effort write to the sample store."""
        if self.samples is None:
            return
        try:
            await self.samples.save(namespace, key, data)
        except (OSError, ValueError) as e:
            log.warning("Couldn't save %s/%s: %s", namespace, key, e)

    # --- Sub-standard fan-out ---

    async def _fan_out(
        self,
        substandard: str,
        document: Any,
        *,
        keep_original: bool,
        filename_prefix: str,
        cancel: CancelToken | None,
    ) -> list[Any]:
        # Fail fast before translating any item
        await self.standards.load(substandard)

        items = find_items(document)
        if not items:
            log.debug("No list found for sub-standard %r; nothing to translate", substandard)
            return []

        limit = self.config.max_substandard_items
        if len(items) > limit:
            log.warning(
                "Translating the first %d of %d items with %r", limit, len(items), substandard
            )
            items = items[:limit]

        results: list[Any] = [None] * len(items)
        done = [False] * len(items)

        async def run(index: int) -> None:
            try:
                results[index] = await self.translate(
                    substandard,
                    items[index],
                    keep_original=keep_original,
                    skip_substandard=True,
                    filename_prefix=filename_prefix,
                    cancel=cancel,
                )
            except TranslationCancelledError:
                raise
            except SchemalessError as e:
                self._tele.count("fanout.dropped")
                log.error("Dropping item %d for %r: %s", index, substandard, e)
                return
            done[index] = True

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(index: int) -> None:
            async with semaphore:
                await checkpoint(cancel)
                await run(index)

        with self._tele("fanout", substandard=substandard, items=len(items)):
            # The first item primes the template cache for the rest
            await run(0)
            tasks = [asyncio.create_task(bounded(i)) for i in range(1, len(items))]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return [result for result, ok in zip(results, done, strict=True) if ok]


def _decode_sample(sample: Any) -> Mapping[str, Any]:
    if isinstance(sample, Mapping):
        return sample
    document = parse_input(sample)
    if not isinstance(document, dict):
        raise MalformedInputError("Sample output must be an object")
    return document


def create_translator(
    config: FrozenConfig | ResolvedConfig | None = None,
    *,
    cache: Cache | None = None,
    generator: TemplateGenerator | None = None,
    telemetry: TelemetryContextProtocol | None = None,
) -> Translator:
    """Build a translator with file stores under ``config.file_location``.

    Without an explicit ``generator`` the Gemini generator is used when an
    API key is configured.
    """
    if config is None:
        config = resolve_config()
    if isinstance(config, ResolvedConfig):
        config = config.to_frozen()

    root = Path(config.file_location)
    if generator is None and config.api_key:
        generator = GeminiTemplateGenerator(
            api_key=config.api_key,
            model=config.model,
            max_input_size=config.max_input_size,
        )
    return Translator(
        config,
        cache=cache if cache is not None else MemoryCache(),
        standards=FileStandardStore(root),
        generator=generator,
        samples=FileSampleStore(root),
        telemetry=telemetry,
    )
