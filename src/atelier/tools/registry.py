"""ToolRegistry — tool catalogue, schema rendering and argument parsing."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from atelier.errors import SchemaFailure, ToolArgumentError, ToolSchemaError
from atelier.tools.base import BaseTool
from atelier.tools.evaluation import EvaluationTool
from atelier.tools.json_patch import JsonPatchTool
from atelier.tools.shell import ShellTool
from atelier.types.tools import ToolArguments, ToolDef, ToolParam
from atelier.types.vfs import VirtualFileSystem

logger = logging.getLogger(__name__)

CHAT_MODE_TOOLS = frozenset({"shell"})


# ------------------------------------------------------------------
# Validation and schema rendering
# ------------------------------------------------------------------


def validate_tool_definitions(defs: Sequence[ToolDef]) -> None:
    """Check definitions before they are sent to a model.

    A missing or blank name is fatal: every failing entry is collected
    and reported in one :class:`ToolSchemaError`. A missing description
    or parameter list is only logged.
    """
    failures: list[SchemaFailure] = []
    for index, defn in enumerate(defs):
        name = getattr(defn, "name", None)
        if not isinstance(name, str) or not name.strip():
            failures.append(SchemaFailure(index=index, name=None, reason="missing tool name"))
            continue
        if not defn.description:
            logger.warning("Tool %r has no description", name)
        if defn.parameters is None:
            logger.warning("Tool %r has no parameters schema", name)
    if failures:
        raise ToolSchemaError(failures)


def param_to_schema(param: ToolParam) -> dict[str, Any]:
    """Render a single :class:`ToolParam` as a JSON Schema property dict."""
    prop: dict[str, Any] = {
        "type": param.type,
        "description": param.description,
    }
    if param.enum is not None:
        prop["enum"] = list(param.enum)
    if param.default is not None:
        prop["default"] = param.default
    # Array types require an items schema (OpenAI enforces this).
    if param.type == "array":
        prop["items"] = param.items if param.items is not None else {"type": "string"}
    return prop


def tool_schema(defn: ToolDef) -> dict[str, Any]:
    """Render a definition as ``{name, description, input_schema}``."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in defn.parameters or ():
        properties[param.name] = param_to_schema(param)
        if param.required:
            required.append(param.name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return {"name": defn.name, "description": defn.description, "input_schema": schema}


# ------------------------------------------------------------------
# Argument decoding
# ------------------------------------------------------------------


def repair_json(raw: str) -> str:
    """Close an unterminated string and unbalanced brackets of truncated JSON."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in raw:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()

    repaired = raw
    if in_string:
        repaired += "\\" if escaped else ""
        repaired += '"'
    else:
        repaired = repaired.rstrip()
        if repaired.endswith(","):
            repaired = repaired[:-1]
        elif repaired.endswith(":"):
            repaired += " null"
    return repaired + "".join(reversed(stack))


def decode_arguments(tool_name: str, raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode a call's raw argument text into a JSON object."""
    if isinstance(raw, dict):
        return raw
    text = (raw or "").strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        repaired = repair_json(text)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as exc:
            raise ToolArgumentError(
                tool_name, f"Invalid JSON arguments for {tool_name}: {exc.msg}",
            ) from exc
        logger.warning("Repaired truncated arguments for %s", tool_name)
    if not isinstance(data, dict):
        raise ToolArgumentError(tool_name, f"Arguments for {tool_name} must be a JSON object")
    return data


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------


class ToolRegistry:
    """Registers tools and turns raw calls into typed arguments.

    Usage::

        registry = ToolRegistry.default(vfs)
        args = registry.parse_tool_arguments("shell", '{"cmd": ["ls", "/"]}')
    """

    def __init__(self) -> None:
        self._registry: dict[str, BaseTool] = {}

    @classmethod
    def default(cls, vfs: VirtualFileSystem) -> ToolRegistry:
        """Registry with the built-in ``shell``, ``json_patch`` and ``evaluation`` tools."""
        registry = cls()
        for tool in (ShellTool(vfs), JsonPatchTool(vfs), EvaluationTool()):
            registry.register(tool)
        return registry

    def register(self, tool: BaseTool) -> None:
        """Add a tool to the registry under its definition name."""
        self._registry[tool.definition.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._registry.get(name)

    def names(self, *, chat_mode: bool = False) -> list[str]:
        return [n for n in self._registry if not chat_mode or n in CHAT_MODE_TOOLS]

    def definitions(self, *, chat_mode: bool = False) -> list[ToolDef]:
        """Definitions offered to the model; chat mode offers only ``shell``."""
        return [self._registry[n].definition for n in self.names(chat_mode=chat_mode)]

    def schemas(self, *, chat_mode: bool = False) -> list[dict[str, Any]]:
        defs = self.definitions(chat_mode=chat_mode)
        validate_tool_definitions(defs)
        return [tool_schema(d) for d in defs]

    def parse_tool_arguments(
        self, name: str, raw: str | dict[str, Any] | None,
    ) -> ToolArguments:
        """Decode *raw* and build the typed argument struct for tool *name*."""
        tool = self._registry.get(name)
        if tool is None:
            raise ToolArgumentError(name, f"Unknown tool: '{name}'")
        return tool.parse_arguments(decode_arguments(name, raw))

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={sorted(self._registry)})"
