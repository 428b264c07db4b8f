"""GitHub API response models.

Only the fields this package reads are declared; everything else in the
payload is ignored.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel
from pydantic import Field


class GitTreeEntry(BaseModel):
    """One entry of a recursive git tree listing."""

    path: str
    mode: str
    type: Literal["blob", "tree", "commit"]
    sha: str
    size: int | None = None
    url: str | None = None


class GitTree(BaseModel):
    """Response of ``GET /repos/{repo}/git/trees/{ref}?recursive=1``."""

    sha: str
    url: str
    tree: list[GitTreeEntry] = Field(default_factory=list)
    truncated: bool = False

    def blobs(self) -> list[GitTreeEntry]:
        """File entries only (no directories or submodules)."""
        return [entry for entry in self.tree if entry.type == "blob"]


class ContentEntry(BaseModel):
    """One item of a ``GET /repos/{repo}/contents/{path}`` directory listing."""

    name: str
    path: str
    sha: str
    type: str = "file"
    size: int | None = None
    download_url: str | None = None
