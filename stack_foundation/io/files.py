"""Crash-safe file writes for the on-disk cache.

Cache entries are published with the temp file + rename pattern so a reader
either sees no entry or a complete one, never a partially written file.
"""

from __future__ import annotations

import contextlib
import shutil
import tempfile
from pathlib import Path


def write_atomic(path: Path, content: bytes) -> None:
    """Write bytes to ``path`` atomically.

    The temp file is created in the destination directory so the final
    rename stays on one filesystem.

    Args:
        path: Target file path. Parent directories are created if missing.
        content: Exact bytes to store.

    Raises:
        OSError: If the write or the rename fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}_",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            tmp_file.write(content)
            tmp_file.flush()

        temp_path.replace(path)

    except Exception as e:
        if temp_path:
            with contextlib.suppress(Exception):
                temp_path.unlink()
        raise OSError(f"Failed to write atomically to {path}: {e}") from e


def publish_directory(staging: Path, target: Path) -> bool:
    """Move a fully populated staging directory into its final location.

    Args:
        staging: Directory holding the complete content.
        target: Final directory path; must not exist yet.

    Returns:
        True if ``staging`` was moved into place, False if another writer
        published ``target`` first (``staging`` is removed in that case).
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        staging.rename(target)
    except OSError:
        if target.exists():
            shutil.rmtree(staging, ignore_errors=True)
            return False
        raise
    return True
