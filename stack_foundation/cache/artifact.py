"""Content-addressed cache for remote files."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

import httpx

from stack_foundation.exceptions import CacheMisuseError
from stack_foundation.exceptions import RemoteFetchError
from stack_foundation.io.files import write_atomic

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9-]+$")


class ArtifactCache:
    """Durable local copies of remote files, keyed by ``(name, unique_ref)``.

    ``unique_ref`` must change whenever the remote content changes (commit SHA,
    tag, blob SHA), so a present entry is never stale and is never refetched.
    There is no eviction.

    Concurrent resolutions of the same key share a single download: each key
    has its own lock, and entries are published with an atomic rename so a
    reader never observes a partial file.
    """

    def __init__(self, cache_dir: Path, http_client: httpx.AsyncClient) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Root directory for cached files. Created on first write.
            http_client: Client used for downloads. Timeouts and proxies are the
                         caller's choice.
        """
        self.cache_dir = cache_dir
        self._http_client = http_client
        self._locks: dict[Path, asyncio.Lock] = {}

    def entry(self, name: str, unique_ref: str, url: str) -> CachedRemoteFile:
        """Create a handle for one remote file.

        Args:
            name: Human-readable part of the key (already normalized).
            unique_ref: Content-identifying part of the key (already normalized).
            url: Where to download the content from on a cache miss.

        Raises:
            CacheMisuseError: If a key component is outside ``[A-Za-z0-9-]``.
        """
        for label, value in (("name", name), ("unique_ref", unique_ref)):
            if not _SAFE_KEY.match(value):
                raise CacheMisuseError(f"Cache key {label} {value!r} contains unsafe characters")
        return CachedRemoteFile(name=name, unique_ref=unique_ref, url=url, cache=self)

    def path_for(self, name: str, unique_ref: str) -> Path:
        """Deterministic cache path for a key."""
        return self.cache_dir / f"{name}-{unique_ref}"

    def __contains__(self, item: CachedRemoteFile) -> bool:
        return self.path_for(item.name, item.unique_ref).exists()

    async def resolve(self, item: CachedRemoteFile) -> Path:
        """Return the local path for ``item``, downloading it on first use."""
        cached_path = self.path_for(item.name, item.unique_ref)
        if cached_path.exists():
            logger.debug(f"Cache hit: {cached_path.name}")
            return cached_path

        lock = self._locks.setdefault(cached_path, asyncio.Lock())
        async with lock:
            # Another task may have finished the download while we waited
            if cached_path.exists():
                return cached_path

            content = await self._download(item.url)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            write_atomic(cached_path, content)
            logger.info(f"Cached {item.url} as {cached_path.name} ({len(content)} bytes)")

        return cached_path

    async def _download(self, url: str) -> bytes:
        try:
            response = await self._http_client.get(url)
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Failed to download {url}: {e}", url=url) from e

        if response.status_code >= 400:
            raise RemoteFetchError(
                f"Download of {url} failed with HTTP {response.status_code}: {response.text}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            )
        return response.content


@dataclass(frozen=True)
class CachedRemoteFile:
    """Handle to one remote file in an :class:`ArtifactCache`."""

    name: str
    unique_ref: str
    url: str
    cache: ArtifactCache = field(repr=False, compare=False)

    async def resolve_path(self) -> Path:
        """Local path holding the exact bytes served at ``url``.

        Returns:
            Path inside the cache root.

        Raises:
            RemoteFetchError: If the download fails.
        """
        return await self.cache.resolve(self)

    async def read_contents(self) -> str:
        """Resolve the file and return its content decoded as UTF-8."""
        path = await self.resolve_path()
        return path.read_text(encoding="utf-8")
