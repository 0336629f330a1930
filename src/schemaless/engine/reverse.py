"""Reverse inference: discover a template from a known-good output.

Given a source document and a sample of the output it should translate to,
``infer_template`` finds, for each sample key, the path of a source leaf
holding the same value. The resulting mapping is itself a valid translation
template, so learning a template never needs the external generator.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import json
import logging
from typing import Any

from schemaless.exceptions import MalformedInputError, PathNotFoundError
from schemaless.paths import (
    KeySegment,
    ListSelector,
    PathExpression,
    decode_embedded,
    looks_like_json_object,
    parse_path,
)

log = logging.getLogger(__name__)


def _matches(candidate: Any, expected: Any) -> bool:
    if isinstance(expected, str):
        return isinstance(candidate, str) and candidate != "" and candidate == expected
    if isinstance(expected, bool):
        return isinstance(candidate, bool) and candidate is expected
    if isinstance(expected, int | float):
        return (
            isinstance(candidate, int | float)
            and not isinstance(candidate, bool)
            and candidate == expected
        )
    return False


def _addressable(key: Any) -> bool:
    """True when ``key`` reads back as exactly one key segment."""
    return isinstance(key, str) and parse_path(key) == (KeySegment(key),)


def _walk(
    node: Any,
    prefix: tuple[str, ...],
    wanted: dict[str, Any],
    found: dict[str, str],
) -> None:
    if len(found) == len(wanted):
        return

    node = decode_embedded(node)
    if isinstance(node, dict):
        for key in sorted(node, key=str):
            if not _addressable(key):
                log.debug("Skipping key %r: not addressable by path", key)
                continue
            _walk(node[key], (*prefix, key), wanted, found)
        return

    if isinstance(node, list):
        for index, item in enumerate(node):
            _walk(item, (*prefix, f"#{index}"), wanted, found)
        return

    if not prefix:
        return
    for target, expected in wanted.items():
        if target not in found and _matches(node, expected):
            found[target] = ".".join(prefix)
            log.debug("Matched %r at %s", target, found[target])


def infer_template(source: Any, sample: Mapping[str, Any]) -> dict[str, str]:
    """Infer a translation template mapping each sample key to a source path.

    Object keys are walked in sorted order and the first matching leaf wins,
    so the result is reproducible. Every key of ``sample`` is present in the
    result; keys without a match map to ``""``.

    Raises:
        MalformedInputError: If ``sample`` is not an object.
    """
    if not isinstance(sample, Mapping):
        raise MalformedInputError(
            f"Sample must be an object, got {type(sample).__name__}"
        )

    wanted = {str(key): value for key, value in sample.items()}
    found: dict[str, str] = {}
    _walk(source, (), wanted, found)

    missing = [key for key in wanted if key not in found]
    if missing:
        log.debug("No source value found for %s", missing)
    return {key: found.get(key, "") for key in wanted}


def reverse_translate(source_json: str | bytes, sample_json: str | bytes) -> str:
    """``infer_template`` over JSON text, returning the template as JSON text."""
    try:
        source = json.loads(source_json)
        sample = json.loads(sample_json)
    except ValueError as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from e
    return json.dumps(infer_template(source, sample), indent=2, ensure_ascii=False)


# --- Write-back ---


def _place(node: Any, segments: PathExpression, value: Any, path: str) -> Any:
    if not segments:
        return value

    head, rest = segments[0], segments[1:]

    if looks_like_json_object(node):
        decoded = decode_embedded(node)
        if isinstance(decoded, dict):
            return json.dumps(_place(decoded, segments, value, path), ensure_ascii=False)

    if isinstance(head, KeySegment):
        if not isinstance(node, dict):
            log.warning(
                "Cannot place %r: key '%s' applied to %s", path, head.key, type(node).__name__
            )
            return node
        if head.key in node:
            child = node[head.key]
        elif not rest:
            child = None
        elif isinstance(rest[0], KeySegment):
            child = {}
        else:
            log.warning("Cannot place %r: list '%s' does not exist", path, head.key)
            return node
        node[head.key] = _place(child, rest, value, path)
        return node

    assert isinstance(head, ListSelector)  # noqa: S101
    if not isinstance(node, list):
        log.warning(
            "Cannot place %r: selector '%s' applied to %s", path, head.raw, type(node).__name__
        )
        return node
    try:
        selected = head.indexes(len(node))
    except PathNotFoundError as e:
        log.warning("Cannot place %r: %s", path, e)
        return node
    for index in selected:
        node[index] = _place(node[index], rest, value, path)
    return node


def place_value(tree: Any, path: str, value: Any) -> Any:
    """Write ``value`` into a copy of ``tree`` at ``path``.

    List selectors choose which items receive the value: ``#`` every item,
    ``#N`` / ``#min`` / ``#max`` a single item, ``#N-M`` an inclusive range.
    Items outside the selection are left untouched. Missing intermediate keys
    are created as objects and JSON objects embedded in strings are updated in
    place and re-encoded. Paths that cannot be followed leave the tree as is.

    Returns:
        The updated copy; ``tree`` itself is never modified.
    """
    segments = parse_path(path)
    updated = copy.deepcopy(tree)
    if not segments:
        log.warning("Cannot place value at empty path")
        return updated
    return _place(updated, segments, value, path)
