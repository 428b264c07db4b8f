"""Tests for managed chart builders and alias migration."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from stack_foundation.charts.migration import ChartTransformResult
from stack_foundation.charts.migration import ChartV3Builder
from stack_foundation.charts.migration import ChartV4Builder
from stack_foundation.charts.migration import ManagedChartBuilder
from stack_foundation.charts.migration import helm_v3_alias
from stack_foundation.charts.migration import helm_v4_alias
from stack_foundation.exceptions import CacheMisuseError

DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "redis-master", "namespace": "cache"},
}

SERVICE_ACCOUNT = {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "redis"}}


class FakeChartCache:
    """Records chart requests and returns a predictable local path."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.requests: list[tuple[str, str, str | None]] = []

    async def chart_path(self, chart: str, version: str, repo: str | None = None) -> Path:
        self.requests.append((chart, version, repo))
        return self.root / chart.split("/")[-1]


def record_factory(calls: list):
    def factory(release_name, config, opts):
        calls.append((release_name, config, opts))
        return SimpleNamespace(release_name=release_name, config=config, opts=opts)

    return factory


class TestAliases:
    """Tests for alias URN construction."""

    def test_v4_alias_namespaced(self) -> None:
        """v4 URNs include the release name and namespace."""
        assert helm_v4_alias("dev", "infra", "redis", DEPLOYMENT) == (
            "urn:pulumi:dev::infra::kubernetes:helm.sh/v4:Chart$kubernetes:apps/v1:Deployment::redis:cache/redis-master"
        )

    def test_v4_alias_core_group(self) -> None:
        """The core v1 group is spelled core/v1; no namespace prefix when absent."""
        assert helm_v4_alias("dev", "infra", "redis", SERVICE_ACCOUNT) == (
            "urn:pulumi:dev::infra::kubernetes:helm.sh/v4:Chart$kubernetes:core/v1:ServiceAccount::redis:redis"
        )

    def test_v3_alias(self) -> None:
        """v3 URNs omit the release name."""
        assert helm_v3_alias("prod", "infra", DEPLOYMENT) == (
            "urn:pulumi:prod::infra::kubernetes:helm.sh/v3:Chart$kubernetes:apps/v1:Deployment::cache/redis-master"
        )


class TestManagedChartBuilder:
    """Tests for the shared builder base."""

    def test_base_is_abstract(self, tmp_path: Path) -> None:
        """The base cannot be built without the per-kind hooks."""
        with pytest.raises(TypeError):
            ManagedChartBuilder(FakeChartCache(tmp_path), record_factory([]), stack="dev", project="infra")


class TestChartV3Builder:
    """Tests for ChartV3Builder."""

    @pytest.mark.asyncio
    async def test_config_points_at_local_chart(self, tmp_path: Path) -> None:
        """chart/version/fetch_opts are replaced by a local path."""
        chart_cache = FakeChartCache(tmp_path)
        builder = ChartV3Builder(chart_cache, record_factory([]), stack="dev", project="infra")
        config = {
            "chart": "redis",
            "version": "18.1.0",
            "fetch_opts": {"repo": "https://charts.bitnami.com/bitnami"},
            "values": {"replicas": 2},
        }

        descriptor = await builder.prepare("redis", config)

        assert chart_cache.requests == [("redis", "18.1.0", "https://charts.bitnami.com/bitnami")]
        assert descriptor.config["path"] == str(tmp_path / "redis")
        assert "chart" not in descriptor.config
        assert "version" not in descriptor.config
        assert "fetch_opts" not in descriptor.config
        assert descriptor.config["values"] == {"replicas": 2}
        assert "chart" in config

    @pytest.mark.asyncio
    async def test_fetch_opts_object(self, tmp_path: Path) -> None:
        """fetch_opts may be an options object instead of a dict."""
        chart_cache = FakeChartCache(tmp_path)
        builder = ChartV3Builder(chart_cache, record_factory([]), stack="dev", project="infra")

        await builder.prepare(
            "redis", {"chart": "redis", "version": "1.0.0", "fetch_opts": SimpleNamespace(repo="https://r")}
        )

        assert chart_cache.requests == [("redis", "1.0.0", "https://r")]

    @pytest.mark.asyncio
    async def test_local_chart_untouched(self, tmp_path: Path) -> None:
        """A config already using a local path is not fetched."""
        chart_cache = FakeChartCache(tmp_path)
        builder = ChartV3Builder(chart_cache, record_factory([]), stack="dev", project="infra")

        descriptor = await builder.prepare("app", {"path": "./charts/app"})

        assert chart_cache.requests == []
        assert descriptor.config["path"] == "./charts/app"

    @pytest.mark.asyncio
    async def test_transformation_adds_v4_alias(self, tmp_path: Path) -> None:
        """The injected transformation aliases resources to their v4 URNs."""
        builder = ChartV3Builder(FakeChartCache(tmp_path), record_factory([]), stack="dev", project="infra")
        existing = lambda obj, opts: None  # noqa: E731
        descriptor = await builder.prepare(
            "redis", {"chart": "redis", "version": "1.0.0", "transformations": [existing]}
        )

        transformations = descriptor.config["transformations"]
        assert transformations[0] is existing
        opts = SimpleNamespace(aliases=["urn:old"])
        transformations[-1](dict(DEPLOYMENT), opts)

        assert opts.aliases == ["urn:old", helm_v4_alias("dev", "infra", "redis", DEPLOYMENT)]

    @pytest.mark.asyncio
    async def test_missing_version(self, tmp_path: Path) -> None:
        """Remote charts must be pinned."""
        builder = ChartV3Builder(FakeChartCache(tmp_path), record_factory([]), stack="dev", project="infra")
        with pytest.raises(CacheMisuseError):
            await builder.prepare("redis", {"chart": "redis"})

    @pytest.mark.asyncio
    async def test_new_calls_factory(self, tmp_path: Path) -> None:
        """new() prepares then hands the descriptor to the factory."""
        calls: list = []
        builder = ChartV3Builder(FakeChartCache(tmp_path), record_factory(calls), stack="dev", project="infra")

        resource = await builder.new("redis", {"chart": "redis", "version": "1.0.0"}, {"depends_on": ["ns"]})

        assert resource.release_name == "redis"
        assert calls[0][1]["path"] == str(tmp_path / "redis")
        assert calls[0][2] == {"depends_on": ["ns"]}


class TestChartV4Builder:
    """Tests for ChartV4Builder."""

    @pytest.mark.asyncio
    async def test_chart_replaced_by_local_path(self, tmp_path: Path) -> None:
        """chart becomes the local path; repository_opts and version are dropped."""
        chart_cache = FakeChartCache(tmp_path)
        builder = ChartV4Builder(chart_cache, record_factory([]), stack="dev", project="infra")

        descriptor = await builder.prepare(
            "redis",
            {"chart": "redis", "version": "18.1.0", "repository_opts": {"repo": "https://charts.example.com"}},
        )

        assert chart_cache.requests == [("redis", "18.1.0", "https://charts.example.com")]
        assert descriptor.config == {"chart": str(tmp_path / "redis")}

    @pytest.mark.asyncio
    async def test_transform_adds_v3_alias(self, tmp_path: Path) -> None:
        """The injected transform aliases resources to their v3 URNs and sets the provider."""
        provider = object()
        builder = ChartV4Builder(FakeChartCache(tmp_path), record_factory([]), stack="dev", project="infra")
        descriptor = await builder.prepare("redis", {"chart": "redis", "version": "1.0.0"}, {"provider": provider})

        transform = descriptor.opts["transforms"][-1]
        original_opts = SimpleNamespace(aliases=[])
        result = transform(SimpleNamespace(props=dict(DEPLOYMENT), opts=original_opts))

        assert isinstance(result, ChartTransformResult)
        assert result.props == DEPLOYMENT
        assert result.opts.aliases == [helm_v3_alias("dev", "infra", DEPLOYMENT)]
        assert result.opts.provider is provider
        assert original_opts.aliases == []

    @pytest.mark.asyncio
    async def test_transform_skips_chart_component(self, tmp_path: Path) -> None:
        """Props without apiVersion (the chart itself) are left alone."""
        builder = ChartV4Builder(FakeChartCache(tmp_path), record_factory([]), stack="dev", project="infra")
        descriptor = await builder.prepare("redis", {"chart": "redis", "version": "1.0.0"})

        transform = descriptor.opts["transforms"][-1]
        assert transform(SimpleNamespace(props={"chart": "redis"}, opts=SimpleNamespace())) is None
