"""In-memory virtual file system."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from atelier.errors import (
    VfsFileExistsError,
    VfsFileNotFoundError,
    VfsNotADirectoryError,
)
from atelier.types.vfs import FileReadResult, VirtualFile
from atelier.vfs.paths import ancestors, is_within, normalize_path

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Project:
    files: dict[str, str] = field(default_factory=dict)
    directories: set[str] = field(default_factory=set)

    def all_directories(self) -> set[str]:
        dirs = set(self.directories)
        for path in [*self.files, *self.directories]:
            dirs.update(ancestors(path))
        return dirs


class MemoryFileSystem:
    """Project-scoped file store kept entirely in memory.

    Directories exist either explicitly (``create_directory``) or
    implicitly as parents of stored files.

    Usage::

        vfs = MemoryFileSystem()
        await vfs.create_file("demo", "/index.html", "<h1>Hi</h1>")
        (await vfs.read_file("demo", "/index.html")).content
    """

    def __init__(self, projects: dict[str, dict[str, str]] | None = None) -> None:
        self._projects: dict[str, _Project] = {}
        for project_id, files in (projects or {}).items():
            self.seed(project_id, files)

    def _project(self, project_id: str) -> _Project:
        return self._projects.setdefault(project_id, _Project())

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def read_file(self, project_id: str, path: str) -> FileReadResult:
        project = self._project(project_id)
        content = project.files.get(normalize_path(path))
        return FileReadResult(content=content, exists=content is not None)

    async def create_file(self, project_id: str, path: str, content: str) -> None:
        project = self._project(project_id)
        path = normalize_path(path)
        if path in project.files:
            raise VfsFileExistsError(path)
        if path in project.all_directories() or path == "/":
            raise VfsFileExistsError(path)
        for parent in ancestors(path):
            if parent in project.files:
                raise VfsNotADirectoryError(parent)
        project.files[path] = content
        logger.debug("Created %s in %s (%d chars)", path, project_id, len(content))

    async def update_file(self, project_id: str, path: str, content: str) -> None:
        project = self._project(project_id)
        path = normalize_path(path)
        if path not in project.files:
            raise VfsFileNotFoundError(path)
        project.files[path] = content
        logger.debug("Updated %s in %s (%d chars)", path, project_id, len(content))

    async def delete_file(self, project_id: str, path: str) -> None:
        project = self._project(project_id)
        path = normalize_path(path)
        if project.files.pop(path, None) is None:
            raise VfsFileNotFoundError(path)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def create_directory(self, project_id: str, path: str) -> None:
        project = self._project(project_id)
        path = normalize_path(path)
        if path == "/":
            return
        for candidate in [*ancestors(path), path]:
            if candidate in project.files:
                raise VfsFileExistsError(candidate)
        project.directories.add(path)

    async def delete_directory(self, project_id: str, path: str) -> None:
        """Remove *path* and everything below it."""
        project = self._project(project_id)
        path = normalize_path(path)
        if path != "/" and path not in project.all_directories():
            raise VfsFileNotFoundError(path)
        project.files = {p: c for p, c in project.files.items() if not is_within(p, path)}
        project.directories = {
            d for d in project.directories if d != path and not is_within(d, path)
        }

    async def list_directory(self, project_id: str, path: str = "/") -> list[VirtualFile]:
        project = self._project(project_id)
        path = normalize_path(path)
        dirs = project.all_directories()
        if path in project.files:
            raise VfsNotADirectoryError(path)
        if path != "/" and path not in dirs:
            raise VfsFileNotFoundError(path)

        entries = [
            VirtualFile(path=d, type="directory") for d in dirs if is_within(d, path)
        ]
        entries.extend(
            VirtualFile(path=p, type="file", size=len(c.encode("utf-8")))
            for p, c in project.files.items()
            if is_within(p, path)
        )
        return sorted(entries, key=lambda e: e.path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def seed(self, project_id: str, files: dict[str, str]) -> None:
        """Store *files* (path -> content) without existence checks."""
        project = self._project(project_id)
        for path, content in files.items():
            project.files[normalize_path(path)] = content

    def files(self, project_id: str) -> dict[str, str]:
        """Return a copy of every file of *project_id* (path -> content)."""
        return dict(self._project(project_id).files)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._projects

    def __repr__(self) -> str:
        return f"MemoryFileSystem(projects={sorted(self._projects)})"
