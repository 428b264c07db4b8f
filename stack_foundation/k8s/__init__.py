"""Kubernetes resource helpers."""

from .namespace import PART_OF_LABEL
from .namespace import create_namespace
from .namespace import namespace_args

__all__ = [
    "PART_OF_LABEL",
    "create_namespace",
    "namespace_args",
]
