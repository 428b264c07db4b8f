"""Local cache of unpacked helm charts."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

from stack_foundation.cache.keys import normalize_component
from stack_foundation.cache.keys import source_hash
from stack_foundation.exceptions import CacheMisuseError
from stack_foundation.exceptions import ExternalToolError
from stack_foundation.io.files import publish_directory
from stack_foundation.settings import FoundationSettings

logger = logging.getLogger(__name__)

_SAFE_VERSION = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+_-]*$")


def short_chart_name(chart: str) -> str:
    """Last path segment of a chart reference (drops ``oci://`` and repo prefixes)."""
    return chart.rstrip("/").split("/")[-1]


class ChartCache:
    """Unpacked helm charts keyed by ``(chart, version, source)``.

    Layout: ``<cache_dir>/<short name>-<source hash>/<version>/<short name>``.
    The source hash tells apart same-named charts from different
    repositories. An existing version directory is a cache hit; its content is
    not verified.
    """

    def __init__(self, cache_dir: Path, helm_executable: str = "helm") -> None:
        """Initialize the chart cache.

        Args:
            cache_dir: Directory holding unpacked charts.
            helm_executable: Name or path of the helm binary.
        """
        self.cache_dir = cache_dir
        self.helm_executable = helm_executable
        self._locks: dict[Path, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: FoundationSettings) -> ChartCache:
        return cls(settings.chart_dir, settings.helm_executable)

    def entry_dir(self, chart: str, version: str, repo: str | None = None) -> Path:
        """Directory ``helm pull --untar`` populates for this chart version.

        Raises:
            CacheMisuseError: If ``version`` cannot be used as a directory name.
        """
        if not _SAFE_VERSION.match(version) or ".." in version:
            raise CacheMisuseError(f"Unusable chart version {version!r} for {chart}")
        short_name = short_chart_name(chart)
        local_name = normalize_component(f"{short_name}-{source_hash(repo or chart)}")
        return self.cache_dir / local_name / version

    async def chart_path(self, chart: str, version: str, repo: str | None = None) -> Path:
        """Local directory of the unpacked chart, pulling it on first use.

        Args:
            chart: Chart reference (``name``, ``repo/name`` or ``oci://...``).
            version: Exact chart version.
            repo: Optional repository URL passed to ``helm pull --repo``.

        Returns:
            Path to the chart directory (the one holding ``Chart.yaml``).

        Raises:
            ExternalToolError: If helm fails or is not installed.
            CacheMisuseError: If ``version`` is not usable.
        """
        entry_dir = self.entry_dir(chart, version, repo)
        chart_dir = entry_dir / short_chart_name(chart)

        if entry_dir.exists():
            logger.debug(f"Chart cache hit: {chart}@{version}")
            return chart_dir

        lock = self._locks.setdefault(entry_dir, asyncio.Lock())
        async with lock:
            if not entry_dir.exists():
                await self._pull(chart, version, repo, entry_dir)

        return chart_dir

    def _pull_args(self, chart: str, version: str, repo: str | None, destination: Path) -> list[str]:
        args = [self.helm_executable, "pull", chart]
        if repo:
            args.extend(["--repo", repo])
        args.extend(["--version", version, "-d", str(destination), "--untar"])
        return args

    async def _pull(self, chart: str, version: str, repo: str | None, entry_dir: Path) -> None:
        """Pull into a staging directory and publish it as ``entry_dir``."""
        entry_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(dir=entry_dir.parent, prefix=f".{version}_"))
        args = self._pull_args(chart, version, repo, staging)

        logger.info(f"Pulling chart {chart}@{version}" + (f" from {repo}" if repo else ""))
        loop = asyncio.get_running_loop()
        pull = loop.run_in_executor(None, lambda: self._run(args))
        try:
            # Cancellation must not abandon a helm process still writing into staging
            await asyncio.shield(pull)

            if not (staging / short_chart_name(chart)).is_dir():
                raise ExternalToolError(
                    f"helm pull did not produce a '{short_chart_name(chart)}' directory for {chart}@{version}",
                    command=args,
                    returncode=0,
                )
        except BaseException:
            if not pull.done():
                await asyncio.wait([pull])
            shutil.rmtree(staging, ignore_errors=True)
            raise

        publish_directory(staging, entry_dir)

    def _run(self, args: list[str]) -> None:
        try:
            subprocess.run(args, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ExternalToolError(f"helm executable not found: {args[0]}", command=args) from e
        except subprocess.CalledProcessError as e:
            raise ExternalToolError(
                f"helm pull failed with exit code {e.returncode}: {e.stderr}",
                command=args,
                returncode=e.returncode,
                stderr=e.stderr or "",
            ) from e
