"""Namespace resource arguments."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from typing import TypeVar

from stack_foundation.dicts.merge import deep_merge

T = TypeVar("T")

PART_OF_LABEL = "app.kubernetes.io/part-of"


def namespace_args(name: str, part_of: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Namespace arguments with the name and ``part-of`` label filled in.

    ``params`` is deep-merged on top, so callers can add labels or override
    the defaults.
    """
    base = {"metadata": {"name": name, "labels": {PART_OF_LABEL: part_of}}}
    return deep_merge(base, params or {})


def create_namespace(
    name: str,
    factory: Callable[[str, dict[str, Any], dict[str, Any]], T],
    provider: Any,
    part_of: str,
    params: dict[str, Any] | None = None,
    opts: dict[str, Any] | None = None,
) -> T:
    """Create a namespace through the host factory.

    Args:
        name: Namespace (and resource) name.
        factory: Host constructor, called as ``factory(name, args, opts)``.
        provider: Kubernetes provider the namespace is created with.
        part_of: Value of the ``app.kubernetes.io/part-of`` label.
        params: Extra namespace arguments, deep-merged.
        opts: Extra resource options, deep-merged over ``{"provider": provider}``.

    Returns:
        Whatever the factory returns.
    """
    merged_opts = deep_merge({"provider": provider}, opts or {})
    return factory(name, namespace_args(name, part_of, params), merged_opts)
