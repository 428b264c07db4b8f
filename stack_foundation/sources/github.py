"""GitHub repository browsing backed by the artifact cache.

Uses the GitHub REST API, which is rate-limited. Without a token the much
lower unauthenticated limit applies.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from pydantic import ValidationError

from stack_foundation.cache.artifact import ArtifactCache
from stack_foundation.cache.artifact import CachedRemoteFile
from stack_foundation.cache.keys import safe_component
from stack_foundation.cache.keys import short_digest
from stack_foundation.exceptions import CacheMisuseError
from stack_foundation.exceptions import RemoteFetchError
from stack_foundation.settings import DEFAULT_GITHUB_API_URL
from stack_foundation.settings import DEFAULT_GITHUB_RAW_URL
from stack_foundation.settings import FoundationSettings
from stack_foundation.sources.models import ContentEntry
from stack_foundation.sources.models import GitTree

logger = logging.getLogger(__name__)

_COMMIT_SHA = re.compile(r"^[0-9a-fA-F]{7,40}$")


class GitHubBrowser:
    """Lists repository files and hands them out as cached remote files.

    Every handle returned is keyed by an immutable reference (blob SHA, tag or
    commit), so resolving it twice never hits the network twice.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        http_client: httpx.AsyncClient,
        *,
        token: str | None = None,
        api_url: str = DEFAULT_GITHUB_API_URL,
        raw_url: str = DEFAULT_GITHUB_RAW_URL,
    ) -> None:
        """Initialize the browser.

        Args:
            cache: Artifact cache that stores downloaded files.
            http_client: Client used for API calls.
            token: GitHub token. None means unauthenticated requests.
            api_url: Base URL of the REST API.
            raw_url: Base URL of the raw content host.
        """
        self._cache = cache
        self._http_client = http_client
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._raw_url = raw_url.rstrip("/")
        if not token:
            logger.debug("No GitHub token configured, API calls are unauthenticated")

    @classmethod
    def from_settings(
        cls,
        settings: FoundationSettings,
        cache: ArtifactCache,
        http_client: httpx.AsyncClient,
    ) -> GitHubBrowser:
        """Build a browser from resolved process settings."""
        return cls(
            cache,
            http_client,
            token=settings.github_token,
            api_url=settings.github_api_url,
            raw_url=settings.github_raw_url,
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_json(self, url: str, params: dict[str, str]) -> Any:
        try:
            response = await self._http_client.get(url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Request to GitHub failed: {e}", url=url) from e

        if response.status_code >= 400:
            raise RemoteFetchError(
                f"Request to GitHub failed with HTTP {response.status_code}: {response.text}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteFetchError(
                f"GitHub returned a non-JSON response for {url}: {response.text[:200]}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def repo_tree(self, repo: str, ref: str) -> GitTree:
        """Recursive tree listing of a repository at ``ref``.

        Args:
            repo: Repository as ``owner/name``.
            ref: A git reference, e.g. ``heads/main``, a tag or a commit SHA.

        Returns:
            Parsed tree. ``truncated`` is set by GitHub for very large trees.

        Raises:
            RemoteFetchError: If the request fails or the payload is malformed.
        """
        url = f"{self._api_url}/repos/{repo}/git/trees/{ref}"
        data = await self._get_json(url, {"recursive": "1"})
        try:
            return GitTree.model_validate(data)
        except ValidationError as e:
            raise RemoteFetchError(f"Unexpected GitHub tree response for {repo}@{ref}: {e}", url=url) from e

    async def folder_files(self, repo: str, subdir: str, ref: str) -> list[CachedRemoteFile]:
        """Cached handles for every file directly inside ``subdir``.

        Args:
            repo: Repository as ``owner/name``.
            subdir: Directory path inside the repository.
            ref: Branch, tag or commit to list. Handles are keyed by blob SHA,
                 so moving refs are safe here.

        Returns:
            One handle per file. Nested directories are skipped.

        Raises:
            CacheMisuseError: If the path resolves to a single file; use
                :meth:`file_at` for that.
            RemoteFetchError: If the request fails.
        """
        url = f"{self._api_url}/repos/{repo}/contents/{subdir.strip('/')}"
        data = await self._get_json(url, {"ref": ref})

        if not isinstance(data, list) or len(data) <= 1:
            raise CacheMisuseError(f"Retrieved a single file, use 'file_at' instead: {repo} {subdir}")

        try:
            entries = [ContentEntry.model_validate(item) for item in data]
        except ValidationError as e:
            raise RemoteFetchError(f"Unexpected GitHub contents response for {repo}/{subdir}: {e}", url=url) from e

        files: list[CachedRemoteFile] = []
        for entry in entries:
            if entry.download_url is None:
                logger.debug(f"Skipping {entry.path} ({entry.type}) in {repo}")
                continue
            files.append(self._cache.entry(safe_component(entry.name), entry.sha, entry.download_url))
        return files

    def file_at(
        self,
        repo: str,
        path: str,
        *,
        tag: str | None = None,
        commit: str | None = None,
    ) -> CachedRemoteFile:
        """Cached handle for a single file pinned to a tag or a commit.

        Branches are rejected: a branch head moves, which would make the cache
        key stop identifying the content. Resolve a branch to a commit SHA
        first if "latest" is wanted.

        Args:
            repo: Repository as ``owner/name``.
            path: File path inside the repository.
            tag: Immutable tag name.
            commit: Commit SHA (7 to 40 hex characters).

        Returns:
            Handle into the artifact cache. Nothing is downloaded yet.

        Raises:
            CacheMisuseError: If not exactly one of ``tag``/``commit`` is given,
                or ``commit`` is not a SHA.
        """
        if bool(tag) == bool(commit):
            raise CacheMisuseError(f"Exactly one of tag or commit is required for {repo}/{path}")

        path = path.lstrip("/")
        safe_repo = safe_component(repo)
        base_url = f"{self._raw_url}/{repo}"
        path_key = short_digest(path)

        if tag:
            url = f"{base_url}/refs/tags/{tag}/{path}"
            unique_ref = f"tag-{safe_repo}-{safe_component(tag)}-{path_key}"
        else:
            assert commit is not None
            if not _COMMIT_SHA.match(commit):
                raise CacheMisuseError(f"Not a commit SHA: {commit!r} (branches are not accepted)")
            url = f"{base_url}/{commit}/{path}"
            unique_ref = f"{safe_repo}-{commit.lower()}-{path_key}"

        name = path.rsplit("/", 1)[-1] or "unknown"
        return self._cache.entry(safe_component(name), unique_ref, url)
