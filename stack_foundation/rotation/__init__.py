"""Rotating multi-slot timestamp resource provider."""

from .provider import DEFAULT_COUNT
from .provider import DEFAULT_ROTATION_PERIOD_DAYS
from .provider import MultiRotateProvider
from .provider import format_timestamp
from .provider import parse_timestamp

__all__ = [
    "DEFAULT_COUNT",
    "DEFAULT_ROTATION_PERIOD_DAYS",
    "MultiRotateProvider",
    "format_timestamp",
    "parse_timestamp",
]
