"""Remote repository sources."""

from .github import GitHubBrowser
from .models import ContentEntry
from .models import GitTree
from .models import GitTreeEntry

__all__ = [
    "ContentEntry",
    "GitHubBrowser",
    "GitTree",
    "GitTreeEntry",
]
