"""Events the agent loop reports to its caller.

Each event carries a ``name`` matching the wire tag the UI listens for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from atelier.types.messages import (
    EvaluationReport,
    RunResult,
    ToolCallRequest,
    ToolStatus,
    UsageInfo,
)


@dataclass(frozen=True, slots=True)
class AssistantDelta:
    """Streaming assistant text.

    ``snapshot`` is the full text of the current turn so far and is
    authoritative: consumers replace whatever they accumulated with it.
    """

    name: ClassVar[str] = "assistant_delta"

    text: str
    snapshot: str


@dataclass(frozen=True, slots=True)
class ToolCallsAnnounced:
    """Tool calls requested by the model.

    ``final`` is False for early notifications emitted when a call starts
    streaming, and True for the single end-of-stream event with the
    assembled list (an empty final list means no further action).
    """

    name: ClassVar[str] = "toolCalls"

    tool_calls: tuple[ToolCallRequest, ...]
    final: bool = True


@dataclass(frozen=True, slots=True)
class ToolStatusChanged:
    name: ClassVar[str] = "tool_status"

    tool_index: int
    tool_call_id: str
    status: ToolStatus
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ToolResultReady:
    name: ClassVar[str] = "tool_result"

    tool_index: int
    tool_call_id: str
    tool_name: str
    result: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class UsageReported:
    """Usage of the last turn plus the running cost of the run."""

    name: ClassVar[str] = "usage"

    usage: UsageInfo
    total_cost: float


@dataclass(frozen=True, slots=True)
class EvaluationReceived:
    name: ClassVar[str] = "evaluation"

    report: EvaluationReport


@dataclass(frozen=True, slots=True)
class Divider:
    """Section divider or notice such as ``Retry 1/3: ...``."""

    name: ClassVar[str] = "divider"

    text: str
    kind: str = "section"  # "section", "retry", "notice"


@dataclass(frozen=True, slots=True)
class RunFinished:
    """Terminal event of the channel view; carries the run's result."""

    name: ClassVar[str] = "run_finished"

    result: RunResult


AgentEvent = (
    AssistantDelta
    | ToolCallsAnnounced
    | ToolStatusChanged
    | ToolResultReady
    | UsageReported
    | EvaluationReceived
    | Divider
    | RunFinished
)
