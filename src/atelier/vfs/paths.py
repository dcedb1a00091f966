"""Path helpers for ``/``-rooted virtual file system paths."""

from __future__ import annotations

import posixpath
import re


def normalize_path(path: str, cwd: str = "/") -> str:
    """Normalize a VFS path.

    Collapses duplicate slashes, resolves ``.`` and ``..``, maps the
    ``/workspace`` prefix onto ``/`` and resolves relative paths against
    *cwd*.
    """
    raw = path.strip() or "."
    if not raw.startswith("/"):
        raw = f"{cwd.rstrip('/')}/{raw}"
    raw = re.sub(r"/+", "/", raw)
    if raw == "/workspace" or raw.startswith("/workspace/"):
        raw = raw[len("/workspace"):] or "/"
    normalized = posixpath.normpath(raw)
    # normpath keeps a leading "//"
    return "/" + normalized.lstrip("/")


def parent_of(path: str) -> str:
    return posixpath.dirname(path) or "/"


def basename(path: str) -> str:
    return posixpath.basename(path)


def ancestors(path: str) -> list[str]:
    """Return every parent directory of *path*, excluding ``/``, shallowest first."""
    parts = [p for p in path.split("/") if p]
    return ["/" + "/".join(parts[:i]) for i in range(1, len(parts))]


def is_within(path: str, directory: str) -> bool:
    """True when *path* lies strictly below *directory*."""
    if directory == "/":
        return path != "/"
    return path.startswith(directory.rstrip("/") + "/")
