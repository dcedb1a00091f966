"""Evaluation tool — the model's progress report and the loop's stop signal."""

from __future__ import annotations

from typing import Any

from atelier.errors import ToolArgumentError
from atelier.tools.base import BaseTool, ToolOutcome
from atelier.types.messages import EvaluationReport
from atelier.types.tools import ToolContext, ToolDef, ToolParam

_DEFINITION = ToolDef(
    name="evaluation",
    description=(
        "Assess task progress, track what remains and identify blockers. Call it "
        "every 5-10 steps on complex tasks, and once the goal is achieved to finish."
    ),
    parameters=(
        ToolParam(
            name="goal_achieved",
            type="boolean",
            description="Whether the original task has been fully achieved.",
        ),
        ToolParam(
            name="progress_summary",
            type="string",
            description="Brief summary of the work completed so far.",
        ),
        ToolParam(
            name="remaining_work",
            type="array",
            description="Specific tasks still needed. Empty if goal_achieved is true.",
            items={"type": "string"},
        ),
        ToolParam(
            name="blockers",
            type="array",
            description="Current blockers preventing progress. Empty if none.",
            required=False,
            items={"type": "string"},
        ),
        ToolParam(
            name="reasoning",
            type="string",
            description="Explanation of the current status and next steps.",
        ),
        ToolParam(
            name="should_continue",
            type="boolean",
            description="Whether to keep working (false if complete or permanently blocked).",
        ),
    ),
)


def _as_bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ToolArgumentError("evaluation", f"{key} must be a boolean")


def _as_strings(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ToolArgumentError("evaluation", f"{key} must be an array of strings")
    return tuple(str(item) for item in value)


class EvaluationTool(BaseTool):
    """Records an evaluation report; the agent loop decides what it means."""

    @property
    def definition(self) -> ToolDef:
        return _DEFINITION

    def parse_arguments(self, data: dict[str, Any]) -> EvaluationReport:
        reasoning = data.get("reasoning", "")
        if not isinstance(reasoning, str):
            raise ToolArgumentError("evaluation", "reasoning must be a string")
        return EvaluationReport(
            goal_achieved=_as_bool(data, "goal_achieved"),
            reasoning=reasoning,
            should_continue=_as_bool(data, "should_continue"),
            progress_summary=str(data.get("progress_summary") or ""),
            remaining_work=_as_strings(data, "remaining_work"),
            blockers=_as_strings(data, "blockers"),
        )

    async def execute(self, args: EvaluationReport, ctx: ToolContext) -> ToolOutcome:
        return self._ok({"recorded": True, **args.to_dict()})
