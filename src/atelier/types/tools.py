"""Tool definition types and typed tool arguments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from atelier.types.messages import EvaluationReport
from atelier.types.patch import InvalidOperation, PatchOperation


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "number", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # For array types: JSON Schema for items


@dataclass(frozen=True, slots=True)
class ToolDef:
    """Definition of a tool exposed to the model."""

    name: str
    description: str = ""
    parameters: tuple[ToolParam, ...] | None = ()


@dataclass(slots=True)
class ToolContext:
    """Context handed to tool executors."""

    project_id: str
    chat_mode: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ShellArgs:
    """Arguments of a ``shell`` call."""

    cmd: tuple[str, ...]
    cwd: str | None = None
    timeout_ms: int | None = None


@dataclass(frozen=True, slots=True)
class JsonPatchArgs:
    """Arguments of a ``json_patch`` call."""

    file_path: str
    operations: tuple[PatchOperation | InvalidOperation, ...]


ToolArguments = ShellArgs | JsonPatchArgs | EvaluationReport
