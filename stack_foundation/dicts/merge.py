"""Deep merge for resource argument dictionaries."""

from __future__ import annotations

from typing import Any


def deep_merge(parent: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    """Layer ``child`` resource arguments over ``parent`` defaults.

    Nested mappings such as ``metadata`` or ``labels`` are combined key by
    key. Scalars, lists and objects from ``child`` win outright.

    Returns:
        A new dict. Neither input is modified.
    """
    merged = dict(parent)

    for key, value in child.items():
        base = merged.get(key)
        merged[key] = deep_merge(base, value) if isinstance(base, dict) and isinstance(value, dict) else value

    return merged
