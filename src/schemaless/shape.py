"""Value-free shape fingerprints of source documents.

Learned templates are keyed by the *shape* of the document they were learned
from, so that documents which only differ in their values reuse one template.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def is_dynamic_key(key: str) -> bool:
    """Keys ending in a digit are usually custom fields (``customfield_10012``)."""
    return bool(key) and key[-1].isdigit()


def _zero(value: Any) -> Any:
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float):
        return 0
    if isinstance(value, str):
        return ""
    return None


def shape_skeleton(value: Any) -> Any:
    """Reduce ``value`` to its structural skeleton.

    Scalars become the zero value of their type, keys ending in a digit are
    dropped, and list items are reduced and de-duplicated in first-seen order
    so the number of items does not change the shape.
    """
    if isinstance(value, dict):
        return {
            key: shape_skeleton(item)
            for key, item in sorted(value.items())
            if not is_dynamic_key(key)
        }
    if isinstance(value, list):
        seen: set[str] = set()
        reduced: list[Any] = []
        for item in value:
            skeleton = shape_skeleton(item)
            marker = canonical_json(skeleton)
            if marker in seen:
                continue
            seen.add(marker)
            reduced.append(skeleton)
        return reduced
    return _zero(value)


def canonical_json(value: Any) -> str:
    """Stable JSON text: sorted keys, compact separators."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def shape_fingerprint(value: Any) -> tuple[bytes, str]:
    """Return the canonical skeleton bytes of ``value`` and their md5 token."""
    shape = canonical_json(shape_skeleton(value)).encode("utf-8")
    return shape, hashlib.md5(shape).hexdigest()  # noqa: S324


def shape_token(value: Any) -> str:
    """Return the content hash of the skeleton of ``value``."""
    return shape_fingerprint(value)[1]


def template_key(standard: str, token: str, prefix: str = "") -> str:
    """Cache and storage key of a template learned for ``standard``."""
    return f"{prefix}{standard}-{token}"
