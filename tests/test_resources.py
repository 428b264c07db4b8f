"""Tests for rendered chart resource helpers."""

from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml

from stack_foundation.charts.resources import get_resource
from stack_foundation.charts.resources import ignore_resources_transformation
from stack_foundation.charts.resources import resource_id
from stack_foundation.exceptions import ResourceMatchError


def manifest(kind: str, name: str, namespace: str | None = None, api_version: str = "v1") -> dict:
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


class TestResourceId:
    """Tests for resource_id."""

    def test_namespaced_dict(self) -> None:
        """Dict manifests are identified by apiVersion, kind, namespace, name."""
        assert resource_id(manifest("Service", "web", "apps")) == "v1:Service:apps:web"

    def test_cluster_scoped(self) -> None:
        """Cluster-scoped resources have an empty namespace segment."""
        obj = manifest("ClusterRole", "admin", api_version="rbac.authorization.k8s.io/v1")
        assert resource_id(obj) == "rbac.authorization.k8s.io/v1:ClusterRole::admin"

    def test_resource_object(self) -> None:
        """Objects with api_version/kind/metadata attributes are supported."""
        obj = SimpleNamespace(
            api_version="apps/v1",
            kind="Deployment",
            metadata=SimpleNamespace(namespace="apps", name="web"),
        )
        assert resource_id(obj) == "apps/v1:Deployment:apps:web"


class TestGetResource:
    """Tests for get_resource."""

    def test_single_match(self) -> None:
        """The one matching resource is returned."""
        service = manifest("Service", "web", "apps")
        resources = [manifest("ConfigMap", "web", "apps"), service]
        assert get_resource(resources, "v1:Service:apps:web") is service

    def test_no_match(self) -> None:
        """Zero matches raise and list the candidates."""
        with pytest.raises(ResourceMatchError) as exc_info:
            get_resource([manifest("Service", "web", "apps")], "v1:Service:apps:api")
        assert "v1:Service:apps:web" in str(exc_info.value)

    def test_multiple_matches(self) -> None:
        """Duplicates raise too."""
        resources = [manifest("Service", "web", "apps"), manifest("Service", "web", "apps")]
        with pytest.raises(ResourceMatchError):
            get_resource(resources, "v1:Service:apps:web")


class TestIgnoreResourcesTransformation:
    """Tests for ignore_resources_transformation."""

    def test_skipped_resource_dumped_and_emptied(self, tmp_path: Path) -> None:
        """Selected resources are written to YAML and replaced by an empty List."""
        crd = manifest("CustomResourceDefinition", "widgets.example.com", api_version="apiextensions.k8s.io/v1")
        original = dict(crd)
        transform = ignore_resources_transformation(
            "apiextensions.k8s.io/v1:CustomResourceDefinition::widgets.example.com",
            output_dir=tmp_path / "skipped",
            project="infra",
        )

        transform(crd, None)

        assert crd == {"apiVersion": "v1", "kind": "List", "items": []}
        dumps = list((tmp_path / "skipped").iterdir())
        assert [p.name for p in dumps] == [
            "infra-apiextensions.k8s.io-v1:CustomResourceDefinition::widgets.example.com.yaml"
        ]
        assert yaml.safe_load(dumps[0].read_text()) == original

    def test_other_resources_untouched(self, tmp_path: Path) -> None:
        """Resources not selected pass through unchanged."""
        service = manifest("Service", "web", "apps")
        transform = ignore_resources_transformation("v1:Service:apps:api", output_dir=tmp_path, project="infra")

        transform(service, None)

        assert service == manifest("Service", "web", "apps")
        assert list(tmp_path.iterdir()) == []
