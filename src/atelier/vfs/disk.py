"""Move projects between a local directory and a :class:`MemoryFileSystem`."""

from __future__ import annotations

import logging
from pathlib import Path

from atelier.vfs.memory import MemoryFileSystem

logger = logging.getLogger(__name__)

_SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".atelier", "dist", "build"}
_MAX_FILE_BYTES = 1_000_000


def load_directory(
    root: str | Path,
    project_id: str,
    vfs: MemoryFileSystem | None = None,
) -> MemoryFileSystem:
    """Load every text file under *root* into *vfs* (created if omitted).

    Binary files, files larger than 1 MB and common build or VCS
    directories are skipped.
    """
    base = Path(root).resolve()
    if not base.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    files: dict[str, str] = {}
    for path in sorted(base.rglob("*")):
        rel = path.relative_to(base)
        if any(part in _SKIP_DIRS for part in rel.parts) or not path.is_file():
            continue
        if path.stat().st_size > _MAX_FILE_BYTES:
            logger.debug("Skipping large file %s", rel)
            continue
        try:
            files["/" + rel.as_posix()] = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping binary file %s", rel)

    target = vfs if vfs is not None else MemoryFileSystem()
    target.seed(project_id, files)
    logger.info("Loaded %d files from %s into project %s", len(files), base, project_id)
    return target


def export_directory(
    vfs: MemoryFileSystem,
    project_id: str,
    root: str | Path,
    *,
    only: set[str] | None = None,
) -> list[Path]:
    """Write the project's files under *root*; returns the paths written.

    When *only* is given, just those VFS paths are written.
    """
    base = Path(root).resolve()
    written: list[Path] = []
    for vfs_path, content in sorted(vfs.files(project_id).items()):
        if only is not None and vfs_path not in only:
            continue
        dest = base / vfs_path.lstrip("/")
        if dest.exists() and dest.read_text(encoding="utf-8", errors="replace") == content:
            continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(content, encoding="utf-8")
        written.append(dest)
    logger.info("Wrote %d files to %s", len(written), base)
    return written


def changed_paths(before: dict[str, str], after: dict[str, str]) -> dict[str, str]:
    """Classify paths as "created", "modified" or "deleted" between two snapshots."""
    changes: dict[str, str] = {}
    for path, content in after.items():
        if path not in before:
            changes[path] = "created"
        elif before[path] != content:
            changes[path] = "modified"
    for path in before:
        if path not in after:
            changes[path] = "deleted"
    return dict(sorted(changes.items()))
