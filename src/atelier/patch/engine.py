"""Deterministic patch engine — applies declarative edits to one file's text.

Operations run in order against the running content, so later operations
see earlier edits. A failing operation produces a warning and is skipped;
it never aborts the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from atelier.patch.boundaries import detect_boundary, find_selector
from atelier.types.patch import (
    InvalidOperation,
    PatchOperation,
    PatchResult,
    ReplaceEntityOperation,
    RewriteOperation,
    UpdateOperation,
)
from atelier.types.vfs import VirtualFileSystem
from atelier.vfs.paths import normalize_path

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 100

OPERATIONS_USAGE = """\
json_patch requires an operations array with at least one operation.

Required format:
{
  "file_path": "/path/to/file",
  "operations": [
    {"type": "update", "oldStr": "exact text to find", "newStr": "replacement text"}
  ]
}

Operation types:
- update: replace an exact string (oldStr must be unique in the file)
- rewrite: replace the entire file content
- replace_entity: replace a whole code entity (element, function, rule) by its opening pattern"""


def truncate(text: str, limit: int = _PREVIEW_CHARS) -> str:
    """Shorten *text* for display in warnings."""
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def replace_entity(
    content: str, op: ReplaceEntityOperation,
) -> tuple[str | None, str | None]:
    """Replace the entity starting at ``op.selector``.

    Returns ``(new_content, None)`` on success or ``(None, error)``.
    """
    found = find_selector(content, op.selector)
    if found is None:
        return None, f'Selector not found: "{truncate(op.selector)}"'
    index, matched = found

    boundary = detect_boundary(content, index, matched, op.entity_type)
    if boundary is None:
        return None, (
            f'Could not detect entity boundary for selector: "{truncate(op.selector)}"'
        )
    return content[: boundary.start] + op.replacement + content[boundary.end :], None


def apply_operations(
    file_content: str | None,
    operations: Sequence[PatchOperation | InvalidOperation],
) -> PatchResult:
    """Apply *operations* to *file_content* entirely in memory.

    ``None`` content means the file does not exist yet: it is treated as
    empty and ``created`` is set when at least one operation applies.
    """
    working = file_content if file_content is not None else ""
    warnings: list[str] = []
    applied = 0

    for number, op in enumerate(operations, start=1):
        match op:
            case UpdateOperation(old_str=old_str, new_str=new_str):
                if not old_str:
                    warnings.append(f"Operation {number}: oldStr is required for update operations")
                    continue
                occurrences = working.count(old_str)
                if occurrences == 0:
                    warnings.append(
                        f'Operation {number}: oldStr not found in file. '
                        f'Expected: "{truncate(old_str)}"'
                    )
                    continue
                if occurrences > 1:
                    warnings.append(
                        f"Operation {number}: oldStr appears {occurrences} times in file, "
                        f'must be unique. String: "{truncate(old_str)}"'
                    )
                    continue
                working = working.replace(old_str, new_str, 1)
                applied += 1

            case RewriteOperation(content=content):
                working = content
                applied += 1

            case ReplaceEntityOperation():
                updated, error = replace_entity(working, op)
                if updated is None:
                    warnings.append(f"Operation {number}: {error}")
                    continue
                working = updated
                applied += 1

            case InvalidOperation(reason=reason):
                warnings.append(f"Operation {number}: {reason}")

            case _:
                warnings.append(f"Operation {number}: Unknown operation type: {type(op).__name__}")

    return PatchResult(
        content=working,
        applied_count=applied,
        total_count=len(operations),
        warnings=warnings,
        created=file_content is None and applied > 0,
    )


@dataclass(slots=True)
class FilePatchOutcome:
    """Result of patching a file held in the VFS."""

    path: str
    applied: bool
    summary: str
    warnings: list[str] = field(default_factory=list)
    applied_count: int = 0
    created: bool = False

    def render(self) -> str:
        """Format the outcome as tool output for the model."""
        text = self.summary
        if self.warnings:
            text += "\n\nWarnings:\n" + "\n".join(f"- {w}" for w in self.warnings)
        return text


async def apply_patch_to_vfs(
    vfs: VirtualFileSystem,
    project_id: str,
    file_path: str,
    operations: Sequence[PatchOperation | InvalidOperation],
) -> FilePatchOutcome:
    """Read *file_path*, apply *operations* in memory, write back at most once."""
    if not file_path or not file_path.startswith("/"):
        return FilePatchOutcome(
            path=file_path,
            applied=False,
            summary="Invalid file path",
            warnings=["File path must be absolute and start with /"],
        )
    if not operations:
        return FilePatchOutcome(
            path=file_path,
            applied=False,
            summary="Missing operations parameter",
            warnings=[OPERATIONS_USAGE],
        )

    path = normalize_path(file_path)
    current = await vfs.read_file(project_id, path)
    if not current.exists:
        logger.debug("File %s does not exist, will create it", path)

    result = apply_operations(current.content if current.exists else None, operations)

    if result.applied:
        if current.exists:
            await vfs.update_file(project_id, path, result.content)
        else:
            await vfs.create_file(project_id, path, result.content)
        summary = f"Applied {result.applied_count}/{result.total_count} operations to {path}"
    else:
        summary = f"No operations applied to {path}"

    logger.debug("%s (%d warnings)", summary, len(result.warnings))
    return FilePatchOutcome(
        path=path,
        applied=result.applied,
        summary=summary,
        warnings=result.warnings,
        applied_count=result.applied_count,
        created=result.created,
    )
