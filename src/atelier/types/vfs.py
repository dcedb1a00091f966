"""Contracts of the virtual file system and checkpoint service the engine consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class VirtualFile:
    """An entry in a project's virtual file system."""

    path: str
    type: str = "file"  # "file" or "directory"
    size: int = 0

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"


@dataclass(frozen=True, slots=True)
class FileReadResult:
    """Result of reading a path; ``content`` is None when the file does not exist."""

    content: str | None
    exists: bool


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """A restorable snapshot of a project's files."""

    id: str
    project_id: str
    label: str
    created_at: datetime
    meta: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class VirtualFileSystem(Protocol):
    """Async file store keyed by project id and absolute ``/``-rooted paths."""

    async def read_file(self, project_id: str, path: str) -> FileReadResult: ...

    async def create_file(self, project_id: str, path: str, content: str) -> None: ...

    async def update_file(self, project_id: str, path: str, content: str) -> None: ...

    async def delete_file(self, project_id: str, path: str) -> None: ...

    async def create_directory(self, project_id: str, path: str) -> None: ...

    async def delete_directory(self, project_id: str, path: str) -> None: ...

    async def list_directory(self, project_id: str, path: str = "/") -> list[VirtualFile]:
        """Return every file and directory below *path*, recursively."""
        ...


@runtime_checkable
class CheckpointService(Protocol):
    """Creates and restores project snapshots."""

    async def create_checkpoint(
        self, project_id: str, label: str, meta: dict[str, Any] | None = None,
    ) -> Checkpoint: ...

    async def restore_checkpoint(self, checkpoint_id: str) -> bool: ...

    async def checkpoint_exists(self, checkpoint_id: str) -> bool: ...
