"""Template engines: forward application and reverse inference."""

from .forward import (
    UNMAPPED_KEY,
    InterpolationSpec,
    ListPolicy,
    ListSpec,
    LiteralSpec,
    ObjectSpec,
    PathSpec,
    TargetSpec,
    apply_template,
    parse_template,
)
from .reverse import infer_template, place_value, reverse_translate

__all__ = [
    "UNMAPPED_KEY",
    "InterpolationSpec",
    "ListPolicy",
    "ListSpec",
    "LiteralSpec",
    "ObjectSpec",
    "PathSpec",
    "TargetSpec",
    "apply_template",
    "infer_template",
    "parse_template",
    "place_value",
    "reverse_translate",
]
