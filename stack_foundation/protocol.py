"""Reconciliation protocol between the host runtime and resource providers.

The host calls ``validate`` with old and new inputs, then ``create`` for a
new resource, or ``diff`` followed by ``update`` when one exists. Whatever
``outs`` a provider returns is persisted by the host and passed back as
``olds`` on the next run.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Protocol


@dataclass
class CheckFailure:
    """A single invalid input property."""

    property: str
    reason: str


@dataclass
class CheckResult:
    """Normalized inputs plus any per-field failures."""

    inputs: dict[str, Any]
    failures: list[CheckFailure] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True if every property validated."""
        return not self.failures


@dataclass
class CreateResult:
    """Identifier and outputs of a newly created resource."""

    id: str
    outs: dict[str, Any]


@dataclass
class DiffResult:
    """Whether the resource must be updated."""

    changes: bool


@dataclass
class UpdateResult:
    """Outputs after an update."""

    outs: dict[str, Any]


class ResourceProvider(Protocol):
    """The four operations a provider exposes to the host runtime."""

    def validate(self, olds: dict[str, Any], news: dict[str, Any]) -> CheckResult:
        """Validate and normalize desired inputs. Never raises for bad input."""
        ...

    def create(self, inputs: dict[str, Any]) -> CreateResult:
        """Create the resource from validated inputs."""
        ...

    def diff(self, id: str, olds: dict[str, Any], news: dict[str, Any]) -> DiffResult:
        """Compare stored outputs with desired inputs."""
        ...

    def update(self, id: str, olds: dict[str, Any], news: dict[str, Any]) -> UpdateResult:
        """Converge stored outputs toward desired inputs."""
        ...
