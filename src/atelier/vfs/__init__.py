"""Virtual file system: in-memory store, checkpoints, shell and disk sync."""

from atelier.vfs.checkpoints import SnapshotCheckpointStore
from atelier.vfs.disk import changed_paths, export_directory, load_directory
from atelier.vfs.memory import MemoryFileSystem
from atelier.vfs.paths import normalize_path
from atelier.vfs.shell import ShellResult, VfsShell, is_structure_command, render_tree

__all__ = [
    "MemoryFileSystem",
    "ShellResult",
    "SnapshotCheckpointStore",
    "VfsShell",
    "changed_paths",
    "export_directory",
    "is_structure_command",
    "load_directory",
    "normalize_path",
    "render_tree",
]
