"""Cache key construction from untrusted identifiers.

Every component folded into an on-disk cache key is restricted to
``[A-Za-z0-9-]``. Repository names, tags and file names are supplied by
humans or remote APIs, so they are normalized before use.
"""

from __future__ import annotations

import base64
import hashlib
import re

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9-]")

# Length of the hex digest appended to components that needed normalization
DIGEST_LENGTH = 8


def normalize_component(value: str) -> str:
    """Replace every character outside ``[A-Za-z0-9-]`` with ``-``.

    Distinct inputs may normalize to the same string (``a/b`` and ``a.b``
    both become ``a-b``). Use :func:`safe_component` when the result is a
    cache key.
    """
    return _UNSAFE_CHARS.sub("-", value)


def short_digest(value: str, length: int = DIGEST_LENGTH) -> str:
    """Hex SHA-256 prefix of ``value``."""
    return hashlib.sha256(value.encode()).hexdigest()[:length]


def safe_component(value: str) -> str:
    """Normalize ``value`` into a collision-free cache key component.

    Values already in the safe alphabet are returned unchanged. Otherwise the
    normalized form is suffixed with a digest of the raw value, so two
    different unsafe inputs never share a key.

    Examples:
        'v1-2-0'          -> 'v1-2-0'
        'org/repo'        -> 'org-repo-<digest>'
        'values.yaml'     -> 'values-yaml-<digest>'
    """
    normalized = normalize_component(value)
    if normalized == value and value:
        return value
    return f"{normalized}-{short_digest(value)}"


def source_hash(source: str) -> str:
    """Short digest identifying the origin of a package.

    Four characters of the base64 SHA-256, normalized to the safe alphabet.
    """
    digest = base64.b64encode(hashlib.sha256(source.encode()).digest()).decode()
    return normalize_component(digest[:4])
