"""Forward application of translation templates.

A translation template maps output field names to *target specs*. Applying it
to a source document builds the output document:

- literal scalars are copied through unchanged,
- bare strings are tried as paths and fall back to themselves,
- ``$path`` references inside text are substituted with resolved values,
- nested objects recurse against the same source,
- lists apply each element, expanding list selectors into one entry per item.

When several fields of one list element read from the same source list
(``users.#.name``, ``users.#.email``), each produces a ``DeferredList`` and the
element is zipped positionally into one object per source item instead of N
separate lists.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import dataclasses
import logging
from typing import Any, Literal

from schemaless.exceptions import (
    ListLengthMismatchError,
    SchemalessError,
    TemplateError,
)
from schemaless.paths import Reference, find_references, stringify, try_resolve
from schemaless.types import DeferredList, Failure, Multi, Single

log = logging.getLogger(__name__)

type ListPolicy = Literal["pad_first", "strict"]

UNMAPPED_KEY = "unmapped"

# --- Target spec variants ---


@dataclasses.dataclass(frozen=True, slots=True)
class LiteralSpec:
    """A constant copied into the output."""

    value: Any


@dataclasses.dataclass(frozen=True, slots=True)
class PathSpec:
    """A bare string tried as a path; kept verbatim when it does not resolve."""

    path: str


@dataclasses.dataclass(frozen=True, slots=True)
class InterpolationSpec:
    """Free text with one or more ``$path`` references."""

    text: str
    references: tuple[Reference, ...]

    @property
    def is_whole_reference(self) -> bool:
        """True when the text is nothing but a single reference."""
        if len(self.references) != 1:
            return False
        ref = self.references[0]
        return self.text[: ref.start].strip() == "" and self.text[ref.end :].strip() == ""


@dataclasses.dataclass(frozen=True, slots=True)
class ObjectSpec:
    """A nested template producing an object."""

    fields: tuple[tuple[str, TargetSpec], ...]
    raw: Any = dataclasses.field(default=None, compare=False)


@dataclasses.dataclass(frozen=True, slots=True)
class ListSpec:
    """A sequence of target specs applied element-wise."""

    items: tuple[TargetSpec, ...]
    raw: Any = dataclasses.field(default=None, compare=False)


type TargetSpec = LiteralSpec | PathSpec | InterpolationSpec | ObjectSpec | ListSpec


def parse_target(value: Any) -> TargetSpec:
    """Classify one template value into its target spec variant."""
    if isinstance(value, Mapping):
        return ObjectSpec(
            fields=tuple((str(k), parse_target(v)) for k, v in value.items()),
            raw=value,
        )
    if isinstance(value, list):
        return ListSpec(items=tuple(parse_target(v) for v in value), raw=value)
    if isinstance(value, str):
        references = find_references(value)
        if references:
            return InterpolationSpec(text=value, references=tuple(references))
        if value.strip():
            return PathSpec(path=value)
    return LiteralSpec(value=value)


def parse_template(template: Any) -> ObjectSpec:
    """Parse a decoded template object.

    Raises:
        TemplateError: If the template is not an object.
    """
    if not isinstance(template, Mapping):
        raise TemplateError(
            f"Template must be an object, got {type(template).__name__}"
        )
    spec = parse_target(template)
    assert isinstance(spec, ObjectSpec)  # noqa: S101
    return spec


def _raw_value(spec: TargetSpec) -> Any:
    match spec:
        case LiteralSpec(value=value):
            return value
        case PathSpec(path=path):
            return path
        case InterpolationSpec(text=text):
            return text
        case ObjectSpec(raw=raw) | ListSpec(raw=raw):
            return copy.deepcopy(raw)


class _Applier:
    """Evaluates target specs against one source document."""

    def __init__(self, source: Any, policy: ListPolicy) -> None:
        self.source = source
        self.policy = policy

    def evaluate(self, spec: TargetSpec) -> Any:
        match spec:
            case LiteralSpec(value=value):
                return value
            case PathSpec():
                return self._path(spec)
            case InterpolationSpec():
                return self._interpolate(spec)
            case ObjectSpec():
                return self._object(spec)
            case ListSpec():
                return self._list(spec)

    def _path(self, spec: PathSpec) -> Any:
        result = try_resolve(self.source, spec.path)
        if isinstance(result, Failure):
            log.debug("Path %r unresolved (%s); keeping literal", spec.path, result.error)
            return spec.path
        return _place(result.value)

    def _interpolate(self, spec: InterpolationSpec) -> Any:
        if spec.is_whole_reference:
            result = try_resolve(self.source, spec.references[0].path)
            if isinstance(result, Failure):
                log.debug(
                    "Reference %r unresolved (%s)", spec.references[0].path, result.error
                )
                return ""
            return _place(result.value)

        resolved: list[Any] = []
        width = 0
        anchor = ""
        for ref in spec.references:
            result = try_resolve(self.source, ref.path)
            if isinstance(result, Failure):
                log.debug("Reference %r unresolved (%s)", ref.path, result.error)
                resolved.append("")
                continue
            value = result.value
            if isinstance(value, Multi):
                width = max(width, len(value.items))
                anchor = anchor or value.anchor
                resolved.append(value)
            else:
                resolved.append(value.value)

        if not anchor:
            return _substitute(spec, resolved)

        # One rendered string per source item
        rendered = []
        for index in range(width):
            row = [
                _pick(v.items, index) if isinstance(v, Multi) else v for v in resolved
            ]
            rendered.append(_substitute(spec, row))
        return DeferredList(items=tuple(rendered), anchor=anchor)

    def _object(self, spec: ObjectSpec) -> dict[str, Any]:
        output: dict[str, Any] = {}
        for key, target in spec.fields:
            try:
                output[key] = self.evaluate(target)
            except SchemalessError as e:
                log.warning("Field %r could not be translated: %s", key, e)
                output[key] = _raw_value(target)
        return output

    def _list(self, spec: ListSpec) -> list[Any]:
        output: list[Any] = []
        for target in spec.items:
            value = self.evaluate(target)
            if isinstance(target, ObjectSpec):
                output.extend(self.expand(value))
            elif isinstance(value, DeferredList):
                output.extend(value.items)
            else:
                output.append(finalize(value))
        return output

    def expand(self, obj: dict[str, Any]) -> list[dict[str, Any]]:
        """Zip every deferred field of ``obj`` into one object per source item."""
        deferred = list(_collect_deferred(obj, ()))
        if not deferred:
            return [obj]

        lengths = {len(d) for _, d in deferred}
        anchors = {d.anchor for _, d in deferred}
        if len(anchors) > 1:
            log.debug("Zipping fields from different source lists: %s", sorted(anchors))
        if len(lengths) > 1:
            if self.policy == "strict":
                raise ListLengthMismatchError(
                    f"List fields differ in length: {sorted(lengths)} "
                    f"(sources: {sorted(anchors)})"
                )
            log.debug(
                "List fields differ in length %s; padding with first items",
                sorted(lengths),
            )

        expanded = []
        for index in range(max(lengths)):
            entry = copy.deepcopy(obj)
            for location, placeholder in deferred:
                _set_at(entry, location, _pick(placeholder.items, index))
            expanded.append(entry)
        return expanded


def _place(resolved: Single | Multi) -> Any:
    if isinstance(resolved, Multi):
        return DeferredList.from_multi(resolved)
    return copy.deepcopy(resolved.value)


def _pick(items: tuple[Any, ...], index: int) -> Any:
    if index < len(items):
        item = items[index]
    elif items:
        item = items[0]
    else:
        return None
    return item.to_list() if isinstance(item, Multi) else item


def _substitute(spec: InterpolationSpec, values: list[Any]) -> str:
    parts = []
    cursor = 0
    for ref, value in zip(spec.references, values, strict=True):
        parts.append(spec.text[cursor : ref.start])
        parts.append(stringify(value))
        cursor = ref.end
    parts.append(spec.text[cursor:])
    return "".join(parts)


def _collect_deferred(node: Any, location: tuple[str, ...]):
    if isinstance(node, DeferredList):
        yield location, node
    elif isinstance(node, dict):
        for key, value in node.items():
            yield from _collect_deferred(value, (*location, key))


def _set_at(node: dict[str, Any], location: tuple[str, ...], value: Any) -> None:
    for key in location[:-1]:
        node = node[key]
    node[location[-1]] = value


def finalize(value: Any) -> Any:
    """Turn leftover deferred placeholders into plain lists."""
    if isinstance(value, DeferredList):
        return [finalize(v) for v in value.items]
    if isinstance(value, dict):
        return {k: finalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [finalize(v) for v in value]
    return value


def apply_template(
    source: Any,
    template: Mapping[str, Any] | ObjectSpec,
    *,
    keep_original: bool = False,
    list_policy: ListPolicy = "pad_first",
) -> dict[str, Any]:
    """Apply a translation template to a decoded source document.

    Args:
        source: The decoded source document.
        template: A decoded template object or an already parsed ``ObjectSpec``.
        keep_original: Attach the source under the ``unmapped`` key.
        list_policy: How to align list fields of different lengths;
            ``pad_first`` reuses each field's first item, ``strict`` leaves
            the affected field untranslated.

    Returns:
        The translated document. Unresolved fields keep their template value.

    Raises:
        TemplateError: If the template is not an object.
    """
    spec = template if isinstance(template, ObjectSpec) else parse_template(template)
    applier = _Applier(source, list_policy)
    output = finalize(applier.evaluate(spec))
    if keep_original:
        output[UNMAPPED_KEY] = source
    return output
