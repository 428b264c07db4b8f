"""File IO helpers."""

from .files import publish_directory
from .files import write_atomic

__all__ = [
    "publish_directory",
    "write_atomic",
]
