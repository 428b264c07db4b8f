"""Content-addressed caching of remote artifacts."""

from .artifact import ArtifactCache
from .artifact import CachedRemoteFile
from .keys import normalize_component
from .keys import safe_component
from .keys import short_digest
from .keys import source_hash

__all__ = [
    "ArtifactCache",
    "CachedRemoteFile",
    "normalize_component",
    "safe_component",
    "short_digest",
    "source_hash",
]
