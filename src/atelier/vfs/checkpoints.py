"""Checkpoint store — whole-project snapshots kept in memory."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from atelier.types.vfs import Checkpoint, VirtualFileSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Snapshot:
    checkpoint: Checkpoint
    files: dict[str, str]
    directories: frozenset[str]


class SnapshotCheckpointStore:
    """Snapshots every file of a project so it can be restored later.

    Works against any :class:`~atelier.types.vfs.VirtualFileSystem`;
    restoring rewrites changed files, recreates deleted ones and removes
    files created after the snapshot.
    """

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self._vfs = vfs
        self._snapshots: dict[str, _Snapshot] = {}

    async def create_checkpoint(
        self, project_id: str, label: str, meta: dict[str, Any] | None = None,
    ) -> Checkpoint:
        entries = await self._vfs.list_directory(project_id, "/")
        files: dict[str, str] = {}
        directories: set[str] = set()
        for entry in entries:
            if entry.is_directory:
                directories.add(entry.path)
                continue
            read = await self._vfs.read_file(project_id, entry.path)
            if read.exists and read.content is not None:
                files[entry.path] = read.content

        checkpoint = Checkpoint(
            id=uuid.uuid4().hex[:12],
            project_id=project_id,
            label=label,
            created_at=datetime.now(timezone.utc),
            meta=dict(meta or {}),
        )
        self._snapshots[checkpoint.id] = _Snapshot(
            checkpoint=checkpoint, files=files, directories=frozenset(directories),
        )
        logger.debug("Checkpoint %s (%s): %d files", checkpoint.id, label, len(files))
        return checkpoint

    async def restore_checkpoint(self, checkpoint_id: str) -> bool:
        snapshot = self._snapshots.get(checkpoint_id)
        if snapshot is None:
            return False
        project_id = snapshot.checkpoint.project_id

        current = await self._vfs.list_directory(project_id, "/")
        for entry in current:
            if not entry.is_directory and entry.path not in snapshot.files:
                await self._vfs.delete_file(project_id, entry.path)
        # Deepest first so parents are removed after their children.
        for entry in sorted(current, key=lambda e: e.path.count("/"), reverse=True):
            if entry.is_directory and entry.path not in snapshot.directories:
                remaining = await self._vfs.list_directory(project_id, "/")
                if any(e.path == entry.path for e in remaining):
                    await self._vfs.delete_directory(project_id, entry.path)

        for directory in sorted(snapshot.directories):
            await self._vfs.create_directory(project_id, directory)
        for path, content in snapshot.files.items():
            read = await self._vfs.read_file(project_id, path)
            if not read.exists:
                await self._vfs.create_file(project_id, path, content)
            elif read.content != content:
                await self._vfs.update_file(project_id, path, content)

        logger.info("Restored checkpoint %s (%s)", checkpoint_id, snapshot.checkpoint.label)
        return True

    async def checkpoint_exists(self, checkpoint_id: str) -> bool:
        return checkpoint_id in self._snapshots

    def list_checkpoints(self, project_id: str) -> list[Checkpoint]:
        """Checkpoints of *project_id*, oldest first."""
        return [
            s.checkpoint
            for s in self._snapshots.values()
            if s.checkpoint.project_id == project_id
        ]
