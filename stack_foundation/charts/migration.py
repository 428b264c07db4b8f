"""Managed chart builders with cached charts and alias migration.

A chart resource needs the chart on local disk before the host runtime can
construct it, and constructors are synchronous. Each builder therefore works
in two phases:

1. ``prepare()`` (async) pulls the chart through :class:`ChartCache`, points
   the config at the local copy and injects the alias-migration hook.
2. ``build()`` (sync) hands the prepared descriptor to the host factory.

The v3 and v4 builders differ only in the hook they inject: each one aliases
rendered resources to the URN the *other* chart kind would have given them,
so switching kinds does not replace live resources.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Generic
from typing import TypeVar

from stack_foundation.charts.cache import ChartCache
from stack_foundation.exceptions import CacheMisuseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (release_name, config, opts) -> host chart resource
ChartFactory = Callable[[str, dict[str, Any], dict[str, Any]], T]


@dataclass
class ChartDescriptor:
    """Everything the host factory needs to construct a chart resource."""

    release_name: str
    config: dict[str, Any]
    opts: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChartTransformResult:
    """Replacement props/opts returned by a v4 resource transform."""

    props: dict[str, Any]
    opts: Any


def _option(container: Any, key: str) -> Any:
    """Read ``key`` from a dict or an options object."""
    if container is None:
        return None
    if isinstance(container, dict):
        return container.get(key)
    return getattr(container, key, None)


def _urn_api_version(api_version: str) -> str:
    return "core/v1" if api_version == "v1" else api_version


def _namespace_prefix(metadata: dict[str, Any] | None) -> str:
    namespace = (metadata or {}).get("namespace")
    return f"{namespace}/" if namespace else ""


def helm_v4_alias(stack: str, project: str, release_name: str, obj: dict[str, Any]) -> str:
    """URN a v4 chart assigns to one of its rendered resources."""
    metadata = obj.get("metadata") or {}
    return (
        f"urn:pulumi:{stack}::{project}::kubernetes:helm.sh/v4:Chart$kubernetes:"
        f"{_urn_api_version(obj['apiVersion'])}:{obj['kind']}::"
        f"{release_name}:{_namespace_prefix(metadata)}{metadata.get('name')}"
    )


def helm_v3_alias(stack: str, project: str, obj: dict[str, Any]) -> str:
    """URN a v3 chart assigns to one of its rendered resources."""
    metadata = obj.get("metadata") or {}
    return (
        f"urn:pulumi:{stack}::{project}::kubernetes:helm.sh/v3:Chart$kubernetes:"
        f"{_urn_api_version(obj['apiVersion'])}:{obj['kind']}::"
        f"{_namespace_prefix(metadata)}{metadata.get('name')}"
    )


def _with_alias(opts: Any, alias: str, provider: Any = None) -> Any:
    """Copy of ``opts`` with ``alias`` appended (and ``provider`` set if given)."""
    merged = copy.copy(opts)
    merged.aliases = [*(_option(opts, "aliases") or []), alias]
    if provider is not None:
        merged.provider = provider
    return merged


class ManagedChartBuilder(ABC, Generic[T]):
    """Shared two-phase construction for managed chart resources."""

    def __init__(
        self,
        chart_cache: ChartCache,
        factory: ChartFactory[T],
        *,
        stack: str,
        project: str,
    ) -> None:
        """Initialize the builder.

        Args:
            chart_cache: Cache used to materialize charts locally.
            factory: Host constructor, called as ``factory(release_name, config, opts)``.
            stack: Current stack name (for alias URNs).
            project: Current project name (for alias URNs).
        """
        self._chart_cache = chart_cache
        self._factory = factory
        self.stack = stack
        self.project = project

    async def prepare(
        self,
        release_name: str,
        config: dict[str, Any],
        opts: dict[str, Any] | None = None,
    ) -> ChartDescriptor:
        """Resolve the chart locally and inject the alias-migration hook.

        The caller's ``config`` and ``opts`` are not modified.
        """
        descriptor = ChartDescriptor(release_name, dict(config), dict(opts or {}))
        await self._use_cached_chart(descriptor)
        self._inject_migration(descriptor)
        return descriptor

    def build(self, descriptor: ChartDescriptor) -> T:
        """Construct the host resource from a prepared descriptor."""
        return self._factory(descriptor.release_name, descriptor.config, descriptor.opts)

    async def new(
        self,
        release_name: str,
        config: dict[str, Any],
        opts: dict[str, Any] | None = None,
    ) -> T:
        """``prepare`` then ``build``."""
        return self.build(await self.prepare(release_name, config, opts))

    async def _resolve(self, descriptor: ChartDescriptor, repo: Any) -> str:
        config = descriptor.config
        version = config.get("version")
        if not version:
            raise CacheMisuseError(
                f"Chart {config['chart']!r} for release {descriptor.release_name!r} needs a pinned version"
            )
        path = await self._chart_cache.chart_path(config["chart"], str(version), repo)
        return str(path)

    @abstractmethod
    async def _use_cached_chart(self, descriptor: ChartDescriptor) -> None:
        """Point the config at the locally cached chart."""

    @abstractmethod
    def _inject_migration(self, descriptor: ChartDescriptor) -> None:
        """Add the hook aliasing rendered resources to the other chart kind."""


class ChartV3Builder(ManagedChartBuilder[T]):
    """Helm v3 chart (deploys hook resources, which v4 ignores).

    Rendered resources are aliased to their helm v4 URNs so a stack can move
    from v4 back to v3.
    """

    async def _use_cached_chart(self, descriptor: ChartDescriptor) -> None:
        config = descriptor.config
        if "chart" not in config:
            # Already a local chart
            return
        repo = _option(config.get("fetch_opts"), "repo")
        config["path"] = await self._resolve(descriptor, repo)
        for key in ("chart", "version", "fetch_opts"):
            config.pop(key, None)

    def _inject_migration(self, descriptor: ChartDescriptor) -> None:
        release_name = descriptor.release_name

        def alias_to_v4(obj: dict[str, Any], opts: Any) -> None:
            alias = helm_v4_alias(self.stack, self.project, release_name, obj)
            opts.aliases = [*(_option(opts, "aliases") or []), alias]

        transformations = list(descriptor.config.get("transformations") or [])
        transformations.append(alias_to_v4)
        descriptor.config["transformations"] = transformations


class ChartV4Builder(ManagedChartBuilder[T]):
    """Helm v4 chart whose resources are aliased to their helm v3 URNs."""

    async def _use_cached_chart(self, descriptor: ChartDescriptor) -> None:
        config = descriptor.config
        repo = _option(config.get("repository_opts"), "repo")
        config["chart"] = await self._resolve(descriptor, repo)
        config.pop("repository_opts", None)
        config.pop("version", None)

    def _inject_migration(self, descriptor: ChartDescriptor) -> None:
        provider = descriptor.opts.get("provider")

        def alias_to_v3(args: Any) -> ChartTransformResult | None:
            props = args.props
            if not props.get("apiVersion"):
                # The chart component itself
                return None
            alias = helm_v3_alias(self.stack, self.project, props)
            logger.debug(f"Aliasing {props['kind']} {(props.get('metadata') or {}).get('name')} to {alias}")
            return ChartTransformResult(props=props, opts=_with_alias(args.opts, alias, provider))

        transforms = list(descriptor.opts.get("transforms") or [])
        transforms.append(alias_to_v3)
        descriptor.opts["transforms"] = transforms
