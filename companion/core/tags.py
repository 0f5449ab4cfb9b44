"""
Tag normalization.

Question tags have been stored as JSON arrays, comma-separated strings, plain
lists and occasionally objects. normalize_tags() accepts all of them.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

DEFAULT_TOPIC = "General"


def _clean(items: Any) -> list[str]:
    return [text for text in (str(item).strip() for item in items) if text]


def normalize_tags(value: Any) -> list[str]:
    """
    Normalize tags from any input format to a list of non-empty strings.

    Examples:
        "a, b ,c"       -> ["a", "b", "c"]
        '["x","y"]'     -> ["x", "y"]
        None            -> []
    """
    if value is None:
        return []

    if isinstance(value, (list, tuple, set)):
        return _clean(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return _clean(parsed)
        return _clean(text.split(","))

    if isinstance(value, Mapping):
        return _clean(value.values())

    return []


def primary_topic(tags: Any, fallback: str | None = None) -> str:
    """First normalized tag, else the fallback, else "General"."""
    normalized = normalize_tags(tags)
    if normalized:
        return normalized[0]
    if fallback and fallback.strip():
        return fallback.strip()
    return DEFAULT_TOPIC
