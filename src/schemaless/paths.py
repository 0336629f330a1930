"""Path expressions over decoded JSON trees.

A path is a ``.``-joined sequence of segments. A segment is either a literal
object key or a list selector:

- ``#``            every item of the list
- ``#N``           item ``N`` (zero based); ``#min`` / ``#max`` pin the ends
- ``#N-M``         items ``N`` through ``M`` inclusive; either bound may be
                   left open or spelled ``min`` / ``max``

Paths may also appear inside free text as ``$path`` references, e.g.
``"The ticket $data.id was created"``.
"""

from __future__ import annotations

import dataclasses
import json
import re
from typing import Any

from schemaless.exceptions import PathError, PathNotFoundError, TypeMismatchError
from schemaless.types import Failure, Multi, Resolved, Result, Single, Success

_SELECTOR_RE = re.compile(r"^#(?:|\d+|min|max|(?:\d+|min)?-(?:\d+|max)?)$")

# $key(.segment)*
_REFERENCE_RE = re.compile(r"\$[a-zA-Z0-9_@-]+\.?(?:[a-zA-Z0-9#_@-]+\.?)*")


@dataclasses.dataclass(frozen=True, slots=True)
class KeySegment:
    """Selects a key of an object node."""

    key: str

    def __str__(self) -> str:
        return self.key


@dataclasses.dataclass(frozen=True, slots=True)
class ListSelector:
    """Selects one or more items of a list node.

    ``start``/``end`` of ``None`` are open bounds. ``pinned`` selectors pick a
    single item and therefore never produce a multi-result.
    """

    raw: str
    start: int | None = None
    end: int | None = None
    pinned: bool = False
    ranged: bool = False

    def __str__(self) -> str:
        return self.raw

    def indexes(self, length: int) -> range:
        """Return the selected indexes for a list of ``length`` items.

        Raises:
            PathNotFoundError: If a pinned index or a range falls outside the
                list, or the range is inverted.
        """
        if self.pinned:
            index = self.start if self.start is not None else length - 1
            if not 0 <= index < length:
                raise PathNotFoundError(
                    f"Index {self.raw} out of range for list of length {length}",
                    path=self.raw,
                )
            return range(index, index + 1)

        if not self.ranged:
            return range(length)

        low = self.start if self.start is not None else 0
        high = self.end if self.end is not None else length - 1
        if low > high or high >= length:
            raise PathNotFoundError(
                f"Range {self.raw} invalid for list of length {length}",
                path=self.raw,
            )
        return range(low, high + 1)


type Segment = KeySegment | ListSelector
type PathExpression = tuple[Segment, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class Reference:
    """A ``$path`` reference embedded in free text."""

    start: int
    end: int
    path: str


def is_selector(segment: str) -> bool:
    """Return True when ``segment`` is a list selector."""
    return bool(_SELECTOR_RE.match(segment))


def _parse_bound(text: str) -> int | None:
    if text in ("", "min", "max"):
        return None
    return int(text)


def _parse_selector(raw: str) -> ListSelector:
    body = raw[1:]
    if body == "":
        return ListSelector(raw=raw)
    if body == "min":
        return ListSelector(raw=raw, start=0, pinned=True)
    if body == "max":
        return ListSelector(raw=raw, start=None, pinned=True)
    if "-" in body:
        low, high = body.split("-", 1)
        start = 0 if low == "min" else _parse_bound(low)
        return ListSelector(raw=raw, start=start, end=_parse_bound(high), ranged=True)
    return ListSelector(raw=raw, start=int(body), pinned=True)


def normalize_path(expr: str) -> str:
    """Clean up the common spellings found in generated templates.

    Strips a leading ``$`` and a trailing ``.``, rewrites ``items[]`` to
    ``items.#`` and drops stray double quotes.
    """
    cleaned = expr.strip()
    if cleaned.startswith("$"):
        cleaned = cleaned[1:]
    if cleaned.endswith("."):
        cleaned = cleaned[:-1]
    if "[]" in cleaned:
        cleaned = cleaned.replace("[]", ".#")
    if '"' in cleaned:
        cleaned = cleaned.replace('"', "")
    return cleaned


def parse_path(expr: str) -> PathExpression:
    """Parse a path expression into segments."""
    cleaned = normalize_path(expr)
    if not cleaned:
        return ()
    return tuple(
        _parse_selector(part) if is_selector(part) else KeySegment(part)
        for part in cleaned.split(".")
    )


def format_path(segments: PathExpression) -> str:
    """Join segments back into their textual form."""
    return ".".join(str(s) for s in segments)


def looks_like_json_object(value: Any) -> bool:
    """Return True for strings that carry an encoded JSON object."""
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped.startswith("{") and stripped.endswith("}") and '"' in stripped


def decode_embedded(value: Any) -> Any:
    """Decode a JSON object embedded in a string, else return ``value`` as is."""
    if not looks_like_json_object(value):
        return value
    try:
        decoded = json.loads(value)
    except ValueError:
        return value
    return decoded if isinstance(decoded, dict) else value


def _resolve(node: Any, segments: PathExpression, walked: PathExpression) -> Resolved:
    for offset, segment in enumerate(segments):
        if isinstance(segment, KeySegment):
            node = decode_embedded(node)
            if not isinstance(node, dict):
                raise TypeMismatchError(
                    f"Key '{segment.key}' applied to {type(node).__name__}",
                    path=segment.key,
                )
            if segment.key not in node:
                raise PathNotFoundError(
                    f"Key '{segment.key}' not found", path=segment.key
                )
            node = node[segment.key]
            continue

        if not isinstance(node, list):
            raise TypeMismatchError(
                f"List selector '{segment.raw}' applied to {type(node).__name__}",
                path=segment.raw,
            )
        selected = segment.indexes(len(node))
        if segment.pinned:
            node = node[selected[0]]
            continue

        anchor = walked + segments[: offset + 1]
        rest = segments[offset + 1 :]
        items: list[Any] = []
        for index in selected:
            try:
                found = _resolve(node[index], rest, anchor)
            except PathError:
                items.append(None)
                continue
            items.append(found.value if isinstance(found, Single) else found)
        return Multi(items=tuple(items), anchor=format_path(anchor))

    return Single(node)


def resolve_path(tree: Any, path: str | PathExpression) -> Resolved:
    """Resolve ``path`` against ``tree``.

    Returns:
        ``Single`` for a pinned path, ``Multi`` when the path crosses an
        unpinned list selector.

    Raises:
        PathNotFoundError: A key or index is absent.
        TypeMismatchError: A selector met a node of the wrong type.
    """
    segments = parse_path(path) if isinstance(path, str) else path
    return _resolve(tree, segments, ())


def try_resolve(tree: Any, path: str | PathExpression) -> Result[Resolved, PathError]:
    """Resolve without raising; path errors come back as ``Failure``."""
    try:
        return Success(resolve_path(tree, path))
    except PathError as e:
        return Failure(e)


def find_references(text: str) -> list[Reference]:
    """Locate ``$path`` references inside free text."""
    references = []
    for match in _REFERENCE_RE.finditer(text):
        start, end = match.span()
        # A trailing dot ends the sentence, not the path
        while end > start + 1 and text[end - 1] == ".":
            end -= 1
        references.append(Reference(start=start, end=end, path=text[start + 1 : end]))
    return references


def stringify(value: Any) -> str:
    """Render a resolved value for text interpolation."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, Multi):
        value = value.to_list()
    return json.dumps(value, ensure_ascii=False)
