"""Helpers over rendered chart resources."""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from typing import TypeVar

import yaml

from stack_foundation.exceptions import ResourceMatchError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def resource_id(obj: Any) -> str:
    """Identify a rendered resource as ``"{apiVersion}:{kind}:{namespace}:{name}"``.

    Accepts plain manifest dicts and resource objects exposing ``api_version``,
    ``kind`` and ``metadata`` attributes.
    """
    if isinstance(obj, dict):
        api_version = obj.get("apiVersion")
        kind = obj.get("kind")
        metadata = obj.get("metadata") or {}
    else:
        api_version = getattr(obj, "api_version", None)
        kind = getattr(obj, "kind", None)
        metadata = getattr(obj, "metadata", None) or {}

    if not isinstance(metadata, dict):
        metadata = {"namespace": getattr(metadata, "namespace", None), "name": getattr(metadata, "name", None)}

    return f"{api_version}:{kind}:{metadata.get('namespace') or ''}:{metadata.get('name') or ''}"


def get_resource(resources: Iterable[R], match: str) -> R:
    """Return the single resource whose :func:`resource_id` equals ``match``.

    Args:
        resources: Rendered resources of a chart.
        match: ``"{apiVersion}:{kind}:{namespace}:{name}"`` (empty namespace
               for cluster-scoped resources).

    Raises:
        ResourceMatchError: Unless exactly one resource matches.
    """
    named = [(resource, resource_id(resource)) for resource in resources]
    matching = [(resource, name) for resource, name in named if name == match]

    if len(matching) != 1:
        raise ResourceMatchError(
            f"Exactly 1 resource should match '{match}'\n"
            f"Matched: {[name for _, name in matching]}\n"
            f"Out of: {[name for _, name in named]}"
        )
    return matching[0][0]


def ignore_resources_transformation(
    *resources: str,
    output_dir: Path,
    project: str,
) -> Callable[[dict[str, Any], Any], None]:
    """Build a v3 chart transformation that drops selected resources.

    Each dropped resource is written as YAML to ``output_dir`` so it can be
    deployed by other means, then replaced in place by an empty ``v1 List``.

    Args:
        resources: Resource ids as produced by :func:`resource_id`.
        output_dir: Directory receiving the YAML dumps (created if missing).
        project: Project name, used as the file name prefix.

    Returns:
        Transformation callable ``(obj, opts) -> None``.
    """
    skipped = set(resources)

    def transformation(obj: dict[str, Any], opts: Any) -> None:
        name = resource_id(obj)
        if name not in skipped:
            return

        logger.info(f"Skip: {name}")
        output_dir.mkdir(parents=True, exist_ok=True)
        dump_path = output_dir / f"{project}-{name.replace('/', '-')}.yaml"
        dump_path.write_text(
            yaml.dump(obj, default_flow_style=False, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )

        obj.clear()
        obj["apiVersion"] = "v1"
        obj["kind"] = "List"
        obj["items"] = []

    return transformation
