"""Base tool class with shared logic."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from atelier.types.tools import ToolArguments, ToolContext, ToolDef


@dataclass(slots=True)
class ToolOutcome:
    """What a tool executor hands back to the dispatcher."""

    output: str | dict[str, Any]
    is_error: bool = False
    mutated_files: bool = False


class BaseTool(ABC):
    """Base class for all tools.

    ``parse_arguments`` turns the decoded JSON object into the tool's typed
    argument struct (raising :class:`~atelier.errors.ToolArgumentError`);
    ``execute`` only ever sees that struct.
    """

    @property
    @abstractmethod
    def definition(self) -> ToolDef:
        ...

    @abstractmethod
    def parse_arguments(self, data: dict[str, Any]) -> ToolArguments:
        ...

    @abstractmethod
    async def execute(self, args: Any, ctx: ToolContext) -> ToolOutcome:
        ...

    @property
    def name(self) -> str:
        return self.definition.name

    def _error(self, msg: str) -> ToolOutcome:
        return ToolOutcome(output=msg, is_error=True)

    def _ok(self, output: str | dict[str, Any], *, mutated_files: bool = False) -> ToolOutcome:
        return ToolOutcome(output=output, mutated_files=mutated_files)
