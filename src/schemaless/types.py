"""Core value types shared by the path language and the template engines.

Source documents are plain decoded JSON (``dict``/``list``/scalars). Path
resolution and template application wrap what they find in small immutable
variants so that "one value" and "one value per list item" can never be
confused downstream.
"""

from __future__ import annotations

import dataclasses
import typing

type JsonScalar = str | int | float | bool | None
type JsonValue = JsonScalar | dict[str, JsonValue] | list[JsonValue]

# --- Result type for explicit per-field error handling ---

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful resolution."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed resolution, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]

# --- Resolved values ---


@dataclasses.dataclass(frozen=True, slots=True)
class Single:
    """A path that resolved to exactly one value."""

    value: typing.Any


@dataclasses.dataclass(frozen=True, slots=True)
class Multi:
    """A path that passed through an unpinned list selector.

    ``items`` holds one entry per selected list item, in list order. An entry
    is either a plain value, ``None`` when the rest of the path did not resolve
    inside that item, or another ``Multi`` when a second selector was crossed.
    ``anchor`` is the path prefix up to and including the selector, which names
    the source list the items came from.
    """

    items: tuple[typing.Any, ...]
    anchor: str

    def to_list(self) -> list[typing.Any]:
        """Flatten into plain nested lists."""
        return [i.to_list() if isinstance(i, Multi) else i for i in self.items]


type Resolved = Single | Multi


@dataclasses.dataclass(frozen=True, slots=True)
class DeferredList:
    """Output placeholder for a field that yields one value per source item.

    The forward engine leaves these inside partially built objects until the
    enclosing list template zips them into one object per item.
    """

    items: tuple[typing.Any, ...]
    anchor: str

    @classmethod
    def from_multi(cls, multi: Multi) -> DeferredList:
        """Build a placeholder from a multi-result."""
        return cls(items=tuple(multi.to_list()), anchor=multi.anchor)

    def __len__(self) -> int:
        return len(self.items)
