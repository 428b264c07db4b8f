"""Helm chart caching, managed chart builders and resource helpers."""

from .cache import ChartCache
from .cache import short_chart_name
from .migration import ChartDescriptor
from .migration import ChartTransformResult
from .migration import ChartV3Builder
from .migration import ChartV4Builder
from .migration import ManagedChartBuilder
from .migration import helm_v3_alias
from .migration import helm_v4_alias
from .resources import get_resource
from .resources import ignore_resources_transformation
from .resources import resource_id

__all__ = [
    "ChartCache",
    "ChartDescriptor",
    "ChartTransformResult",
    "ChartV3Builder",
    "ChartV4Builder",
    "ManagedChartBuilder",
    "get_resource",
    "helm_v3_alias",
    "helm_v4_alias",
    "ignore_resources_transformation",
    "resource_id",
    "short_chart_name",
]
