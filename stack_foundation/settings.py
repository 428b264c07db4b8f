"""Process settings resolved once at startup.

Settings are loaded before the first network call and passed by value into
the components that need them. Nothing here is re-read mid-process.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from stack_foundation.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "STACK_FOUNDATION_"

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_GITHUB_RAW_URL = "https://raw.githubusercontent.com"

_LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass(frozen=True)
class FoundationSettings:
    """Resolved configuration for caches and remote sources."""

    cache_root: Path
    github_token: str | None = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_raw_url: str = DEFAULT_GITHUB_RAW_URL
    helm_executable: str = "helm"
    log_level: str = "warning"

    @property
    def artifact_dir(self) -> Path:
        """Directory for cached remote files."""
        return self.cache_root

    @property
    def chart_dir(self) -> Path:
        """Directory for unpacked helm charts."""
        return self.cache_root / "helm-charts"


def _env(environ: Mapping[str, str], key: str, default: str = "") -> str:
    return environ.get(f"{ENV_PREFIX}{key}", default)


def _validate_log_level(value: str) -> str:
    if value.lower() not in _LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level: {value}. Must be one of {sorted(_LOG_LEVELS)}")
    return value.lower()


def find_repo_root(start: Path) -> Path | None:
    """Find the nearest enclosing directory that holds a ``.git`` entry.

    Args:
        start: Directory to start searching from.

    Returns:
        The repository root, or None if ``start`` is not inside a repository.
    """
    current = start.resolve()

    while True:
        if (current / ".git").exists():
            return current
        if current == current.parent:
            return None
        current = current.parent


def resolve_cache_root(environ: Mapping[str, str], cwd: Path) -> Path:
    """Resolve the cache root directory.

    Resolves in order:
    1. STACK_FOUNDATION_CACHE_DIR environment variable
    2. ``<repo root>/.cache`` for the repository enclosing ``cwd``

    When STACK_FOUNDATION_PROJECT_DEPTH is set, ``cwd`` must sit exactly that
    many directories below the repository root. This catches programs run
    from an unexpected directory that would otherwise scatter caches around.

    Raises:
        ConfigurationError: If no repository encloses ``cwd`` or the depth
            check fails.
    """
    explicit = _env(environ, "CACHE_DIR")
    if explicit:
        return Path(explicit).expanduser().resolve()

    root = find_repo_root(cwd)
    if root is None:
        raise ConfigurationError(
            f"Cannot place the cache: {cwd} is not inside a git repository "
            f"(set {ENV_PREFIX}CACHE_DIR to choose a location)"
        )

    depth_value = _env(environ, "PROJECT_DEPTH")
    if depth_value:
        try:
            expected_depth = int(depth_value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {ENV_PREFIX}PROJECT_DEPTH: {depth_value!r}") from e
        actual_depth = len(cwd.resolve().relative_to(root).parts)
        if actual_depth != expected_depth:
            raise ConfigurationError(
                f"Working directory {cwd} is {actual_depth} levels below {root}, expected {expected_depth}"
            )

    return root / ".cache"


def resolve_github_token(environ: Mapping[str, str]) -> str | None:
    """Find a GitHub token.

    Uses GITHUB_TOKEN when set, otherwise asks the ``gh`` credential helper.
    A missing token is not an error: callers fall back to unauthenticated
    requests.
    """
    token = environ.get("GITHUB_TOKEN")
    if token is not None:
        return token or None

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning(f"Could not get a GitHub auth token: {e}")
        return None

    return result.stdout.strip() or None


def load_settings(
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    *,
    resolve_token: bool = True,
) -> FoundationSettings:
    """Load settings from the environment.

    Args:
        environ: Environment mapping (defaults to ``os.environ``).
        cwd: Working directory used to locate the cache (defaults to the
             process working directory).
        resolve_token: Look up a GitHub token. Callers that never talk to
                       GitHub pass False and skip the `gh` subprocess.

    Returns:
        Immutable settings.

    Raises:
        ConfigurationError: If the cache root or a value cannot be resolved.
    """
    if environ is None:
        environ = os.environ
    if cwd is None:
        cwd = Path.cwd()

    return FoundationSettings(
        cache_root=resolve_cache_root(environ, cwd),
        github_token=resolve_github_token(environ) if resolve_token else None,
        github_api_url=_env(environ, "GITHUB_API_URL", DEFAULT_GITHUB_API_URL),
        github_raw_url=_env(environ, "GITHUB_RAW_URL", DEFAULT_GITHUB_RAW_URL),
        helm_executable=_env(environ, "HELM", "helm"),
        log_level=_validate_log_level(_env(environ, "LOG_LEVEL", "warning")),
    )
