"""Conversation, tool-call and run result types for the agent loop."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(Enum):
    """Roles a conversation message can carry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """A tool call requested by the model, with its arguments still as raw JSON."""

    id: str
    name: str
    raw_arguments: str = ""


@dataclass(slots=True)
class ConversationMessage:
    """One entry of the conversation history (OpenAI-style shape)."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.raw_arguments},
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMessage:
        calls = [
            ToolCallRequest(
                id=tc.get("id", ""),
                name=tc.get("function", {}).get("name", ""),
                raw_arguments=tc.get("function", {}).get("arguments", ""),
            )
            for tc in data.get("tool_calls") or []
        ]
        return cls(
            role=Role(data["role"]),
            content=data.get("content") or "",
            tool_calls=calls,
            tool_call_id=data.get("tool_call_id"),
        )


class ToolStatus(Enum):
    """Lifecycle of a single tool call within a turn."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolStatus.COMPLETED, ToolStatus.FAILED)


@dataclass(slots=True)
class ToolResult:
    """Outcome of one dispatched tool call.

    Only the dispatcher moves a result through its states; once
    ``COMPLETED`` or ``FAILED`` it can no longer change.
    """

    tool_call_id: str
    tool_name: str = ""
    status: ToolStatus = ToolStatus.PENDING
    output: str | dict[str, Any] = ""
    error: str | None = None
    mutated_files: bool = False

    def mark_executing(self) -> None:
        self._transition(ToolStatus.EXECUTING)

    def complete(self, output: str | dict[str, Any], *, mutated_files: bool = False) -> None:
        self._transition(ToolStatus.COMPLETED)
        self.output = output
        self.mutated_files = mutated_files

    def fail(self, error: str, output: str | dict[str, Any] = "") -> None:
        self._transition(ToolStatus.FAILED)
        self.error = error
        self.output = output or error

    @property
    def succeeded(self) -> bool:
        return self.status is ToolStatus.COMPLETED

    def content_for_model(self) -> str:
        """Render the result as the text of a ``tool`` message."""
        if isinstance(self.output, dict):
            text = json.dumps(self.output)
        else:
            text = self.output
        if self.status is ToolStatus.FAILED and not text.startswith("Error"):
            return f"Error: {text}"
        return text

    def _transition(self, new: ToolStatus) -> None:
        if self.status.is_terminal:
            raise RuntimeError(
                f"Tool result {self.tool_call_id} is already {self.status.value}; "
                f"cannot move to {new.value}"
            )
        self.status = new


@dataclass(slots=True)
class UsageInfo:
    """Token usage and cost, summed over every model turn in a run."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    provider: str = ""
    model: str = ""

    def add(self, other: UsageInfo) -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens
        self.cost += other.cost
        if other.provider:
            self.provider = other.provider
        if other.model:
            self.model = other.model


class LoopState(Enum):
    """States of the agent loop state machine."""

    IDLE = "idle"
    STREAMING = "streaming"
    DISPATCHING = "dispatching"
    EVALUATING = "evaluating"
    DONE = "done"
    CANCELLED = "cancelled"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class EvaluationReport:
    """Arguments of an ``evaluation`` tool call."""

    goal_achieved: bool
    reasoning: str
    should_continue: bool
    progress_summary: str = ""
    remaining_work: tuple[str, ...] = ()
    blockers: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal_achieved": self.goal_achieved,
            "reasoning": self.reasoning,
            "should_continue": self.should_continue,
            "progress_summary": self.progress_summary,
            "remaining_work": list(self.remaining_work),
            "blockers": list(self.blockers),
        }


@dataclass(frozen=True, slots=True)
class RunResult:
    """Final result of one ``AgentLoop.execute()`` call."""

    success: bool
    summary: str
    steps_completed: int = 0
    checkpoint_id: str | None = None
    total_cost: float = 0.0
    usage: UsageInfo = field(default_factory=UsageInfo)
    stop_reason: str = "end_turn"
    state: LoopState = LoopState.DONE
    turns: int = 0
