"""Stack Foundation - content-addressed caches and a rotation provider.

Four pieces, leaf-first:

- ArtifactCache: remote files cached on disk under an immutable reference.
- GitHubBrowser: resolves repository files and folders to cache entries.
- ChartCache: helm charts pulled once per (chart, version, source).
- MultiRotateProvider: reconciliation provider for rotating timestamps.
"""

from __future__ import annotations

# Caches
from stack_foundation.cache.artifact import ArtifactCache
from stack_foundation.cache.artifact import CachedRemoteFile
from stack_foundation.cache.keys import normalize_component
from stack_foundation.cache.keys import safe_component

# Charts
from stack_foundation.charts.cache import ChartCache
from stack_foundation.charts.migration import ChartDescriptor
from stack_foundation.charts.migration import ChartV3Builder
from stack_foundation.charts.migration import ChartV4Builder
from stack_foundation.charts.resources import get_resource
from stack_foundation.charts.resources import ignore_resources_transformation

# Dict utilities
from stack_foundation.dicts.merge import deep_merge

# Exceptions
from stack_foundation.exceptions import CacheMisuseError
from stack_foundation.exceptions import ConfigurationError
from stack_foundation.exceptions import ExternalToolError
from stack_foundation.exceptions import FoundationError
from stack_foundation.exceptions import RemoteFetchError
from stack_foundation.exceptions import ResourceMatchError

# Kubernetes helpers
from stack_foundation.k8s.namespace import create_namespace

# Reconciliation protocol
from stack_foundation.protocol import CheckFailure
from stack_foundation.protocol import CheckResult
from stack_foundation.protocol import CreateResult
from stack_foundation.protocol import DiffResult
from stack_foundation.protocol import ResourceProvider
from stack_foundation.protocol import UpdateResult
from stack_foundation.rotation.provider import MultiRotateProvider

# Settings
from stack_foundation.settings import FoundationSettings
from stack_foundation.settings import load_settings

# Sources
from stack_foundation.sources.github import GitHubBrowser

__all__ = [
    # Caches
    "ArtifactCache",
    "CachedRemoteFile",
    "normalize_component",
    "safe_component",
    # Charts
    "ChartCache",
    "ChartDescriptor",
    "ChartV3Builder",
    "ChartV4Builder",
    "get_resource",
    "ignore_resources_transformation",
    # Dict utilities
    "deep_merge",
    # Exceptions
    "CacheMisuseError",
    "ConfigurationError",
    "ExternalToolError",
    "FoundationError",
    "RemoteFetchError",
    "ResourceMatchError",
    # Kubernetes helpers
    "create_namespace",
    # Reconciliation protocol
    "CheckFailure",
    "CheckResult",
    "CreateResult",
    "DiffResult",
    "ResourceProvider",
    "UpdateResult",
    "MultiRotateProvider",
    # Settings
    "FoundationSettings",
    "load_settings",
    # Sources
    "GitHubBrowser",
]
