"""Tool system: the registry, the dispatcher and the built-in tools."""

from atelier.tools.base import BaseTool, ToolOutcome
from atelier.tools.dispatcher import Dispatched, ToolDispatcher
from atelier.tools.evaluation import EvaluationTool
from atelier.tools.json_patch import JsonPatchTool
from atelier.tools.registry import (
    ToolRegistry,
    decode_arguments,
    repair_json,
    tool_schema,
    validate_tool_definitions,
)
from atelier.tools.shell import ShellTool

__all__ = [
    "BaseTool",
    "Dispatched",
    "EvaluationTool",
    "JsonPatchTool",
    "ShellTool",
    "ToolDispatcher",
    "ToolOutcome",
    "ToolRegistry",
    "decode_arguments",
    "repair_json",
    "tool_schema",
    "validate_tool_definitions",
]
