"""JSON patch tool — applies declarative edit operations to one file."""

from __future__ import annotations

from typing import Any

from atelier.errors import ToolArgumentError
from atelier.patch.engine import apply_patch_to_vfs
from atelier.tools.base import BaseTool, ToolOutcome
from atelier.types.patch import parse_operations
from atelier.types.tools import JsonPatchArgs, ToolContext, ToolDef, ToolParam
from atelier.types.vfs import VirtualFileSystem

_OPERATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {
            "type": "string",
            "enum": ["update", "rewrite", "replace_entity"],
            "description": (
                '"update" for string replacement, "rewrite" for complete file '
                'replacement, "replace_entity" for replacing a whole element, '
                "function or rule"
            ),
        },
        "oldStr": {
            "type": "string",
            "description": (
                'For "update": EXACT string to find, copied from the file as seen '
                "with cat. Must be unique in the file."
            ),
        },
        "newStr": {"type": "string", "description": 'For "update": replacement string'},
        "content": {"type": "string", "description": 'For "rewrite": complete new file content'},
        "selector": {
            "type": "string",
            "description": (
                'For "replace_entity": opening pattern of the entity, e.g. '
                '"<div class=\\"contact\\">" or "function calculateTotal(". '
                "Start at the first non-space character and keep it unique."
            ),
        },
        "replacement": {
            "type": "string",
            "description": 'For "replace_entity": complete new entity content',
        },
        "entity_type": {
            "type": "string",
            "description": (
                'For "replace_entity": optional boundary hint (html_element, '
                "react_component, function, css_rule, interface, type)"
            ),
        },
    },
    "required": ["type"],
}

_DEFINITION = ToolDef(
    name="json_patch",
    description=(
        "Apply precise string-based patches to a file using JSON operations. "
        "Operations run in order; a failing operation is reported as a warning "
        "and skipped. A missing file is created when an operation applies."
    ),
    parameters=(
        ToolParam(
            name="file_path",
            type="string",
            description='Absolute path to the file to modify (e.g. "/index.html").',
        ),
        ToolParam(
            name="operations",
            type="array",
            description=(
                'Patch operations applied sequentially. "update" needs oldStr and '
                'newStr, "rewrite" needs content, "replace_entity" needs selector '
                "and replacement."
            ),
            items=_OPERATION_SCHEMA,
        ),
    ),
)


class JsonPatchTool(BaseTool):
    """Edits files in the VFS through the patch engine."""

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self._vfs = vfs

    @property
    def definition(self) -> ToolDef:
        return _DEFINITION

    def parse_arguments(self, data: dict[str, Any]) -> JsonPatchArgs:
        file_path = data.get("file_path", data.get("path"))
        if not isinstance(file_path, str) or not file_path:
            raise ToolArgumentError("json_patch", "file_path is required")

        operations = data.get("operations")
        if operations is None:
            operations = []
        if isinstance(operations, dict):
            operations = [operations]
        if not isinstance(operations, list):
            raise ToolArgumentError("json_patch", "operations must be an array of objects")
        return JsonPatchArgs(file_path=file_path, operations=tuple(parse_operations(operations)))

    async def execute(self, args: JsonPatchArgs, ctx: ToolContext) -> ToolOutcome:
        if ctx.chat_mode:
            return self._error("json_patch is not available in chat mode")
        outcome = await apply_patch_to_vfs(
            self._vfs, ctx.project_id, args.file_path, list(args.operations),
        )
        if not outcome.applied:
            return self._error(outcome.render())
        return self._ok(outcome.render(), mutated_files=True)
