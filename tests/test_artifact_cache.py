"""Tests for the content-addressed artifact cache."""

import asyncio
from pathlib import Path

import httpx
import pytest

from stack_foundation.cache.artifact import ArtifactCache
from stack_foundation.exceptions import CacheMisuseError
from stack_foundation.exceptions import RemoteFetchError


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class CountingHandler:
    """MockTransport handler serving fixed content and counting requests."""

    def __init__(self, content: bytes = b"hello", status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(str(request.url))
        return httpx.Response(self.status_code, content=self.content)


class TestArtifactCache:
    """Tests for ArtifactCache."""

    @pytest.mark.asyncio
    async def test_first_resolve_downloads(self, tmp_path: Path) -> None:
        """A miss downloads and stores the exact bytes."""
        handler = CountingHandler(content=b"\x00binary\xff")
        async with make_client(handler) as client:
            cache = ArtifactCache(tmp_path / "cache", client)
            item = cache.entry("values", "abc123", "https://example.com/values.yaml")
            path = await item.resolve_path()

        assert path == tmp_path / "cache" / "values-abc123"
        assert path.read_bytes() == b"\x00binary\xff"
        assert handler.calls == ["https://example.com/values.yaml"]

    @pytest.mark.asyncio
    async def test_second_resolve_hits_cache(self, tmp_path: Path) -> None:
        """Resolving the same key twice fetches once."""
        handler = CountingHandler()
        async with make_client(handler) as client:
            cache = ArtifactCache(tmp_path, client)
            item = cache.entry("values", "abc123", "https://example.com/values.yaml")
            first = await item.resolve_path()
            second = await item.resolve_path()

        assert first == second
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_hit_survives_new_cache_instance(self, tmp_path: Path) -> None:
        """Entries persist on disk across cache instances."""
        handler = CountingHandler()
        async with make_client(handler) as client:
            await ArtifactCache(tmp_path, client).entry("a", "r1", "https://example.com/a").resolve_path()
            await ArtifactCache(tmp_path, client).entry("a", "r1", "https://example.com/a").resolve_path()

        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_fetch(self, tmp_path: Path) -> None:
        """Racing callers on one key trigger a single download."""
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return httpx.Response(200, content=b"shared")

        async with make_client(handler) as client:
            cache = ArtifactCache(tmp_path, client)
            items = [cache.entry("shared", "ref1", "https://example.com/f") for _ in range(5)]
            paths = await asyncio.gather(*(item.resolve_path() for item in items))

        assert calls == 1
        assert len(set(paths)) == 1
        assert paths[0].read_bytes() == b"shared"

    @pytest.mark.asyncio
    async def test_read_contents(self, tmp_path: Path) -> None:
        """read_contents decodes as UTF-8."""
        handler = CountingHandler(content="naïve: true\n".encode())
        async with make_client(handler) as client:
            item = ArtifactCache(tmp_path, client).entry("cfg", "r1", "https://example.com/cfg")
            assert await item.read_contents() == "naïve: true\n"

    @pytest.mark.asyncio
    async def test_http_error_status(self, tmp_path: Path) -> None:
        """Non-success status raises RemoteFetchError carrying the body."""
        handler = CountingHandler(content=b"Not Found", status_code=404)
        async with make_client(handler) as client:
            item = ArtifactCache(tmp_path, client).entry("missing", "r1", "https://example.com/missing")
            with pytest.raises(RemoteFetchError) as exc_info:
                await item.resolve_path()

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "Not Found"
        assert exc_info.value.url == "https://example.com/missing"
        assert not (tmp_path / "missing-r1").exists()

    @pytest.mark.asyncio
    async def test_transport_error(self, tmp_path: Path) -> None:
        """Network failures raise RemoteFetchError without a status."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            item = ArtifactCache(tmp_path, client).entry("f", "r1", "https://example.com/f")
            with pytest.raises(RemoteFetchError) as exc_info:
                await item.resolve_path()

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_failed_fetch_can_be_retried(self, tmp_path: Path) -> None:
        """A failed download leaves no entry behind."""
        handler = CountingHandler(status_code=500)
        async with make_client(handler) as client:
            item = ArtifactCache(tmp_path, client).entry("f", "r1", "https://example.com/f")
            with pytest.raises(RemoteFetchError):
                await item.resolve_path()
            handler.status_code = 200
            path = await item.resolve_path()

        assert path.read_bytes() == b"hello"
        assert len(handler.calls) == 2

    def test_unsafe_key_rejected(self, tmp_path: Path) -> None:
        """Key components outside [A-Za-z0-9-] are refused."""
        cache = ArtifactCache(tmp_path, httpx.AsyncClient())
        with pytest.raises(CacheMisuseError):
            cache.entry("../escape", "r1", "https://example.com/f")
        with pytest.raises(CacheMisuseError):
            cache.entry("name", "ref.with.dots", "https://example.com/f")
        with pytest.raises(CacheMisuseError):
            cache.entry("", "r1", "https://example.com/f")

    def test_contains(self, tmp_path: Path) -> None:
        """Membership reflects files on disk."""
        cache = ArtifactCache(tmp_path, httpx.AsyncClient())
        item = cache.entry("f", "r1", "https://example.com/f")
        assert item not in cache
        (tmp_path / "f-r1").write_bytes(b"x")
        assert item in cache
