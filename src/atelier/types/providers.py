"""Provider adapter protocol and stream event types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from atelier.types.messages import ConversationMessage
from atelier.types.tools import ToolDef


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """A single event from a streaming provider response."""

    type: str  # "text_delta", "tool_use_start", "tool_use_delta", "tool_use_end", "message_end"
    text: str | None = None
    tool_use_id: str | None = None
    tool_name: str | None = None
    tool_args_json: str | None = None
    stop_reason: str | None = None
    usage: dict[str, Any] | None = None


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol that all provider adapters must implement."""

    provider_name: str

    def chat_completion_stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
        tool_choice: str = "auto",
    ) -> Any:
        """Stream a chat completion. Returns an async iterator of StreamEvent."""
        ...

    @property
    def model_id(self) -> str:
        """The model identifier being used."""
        ...


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """Information about a supported model."""

    id: str
    provider: str
    display_name: str
    context_window: int
    max_output_tokens: int
    supports_tools: bool = True
    input_cost_per_mtok: float = 0.0
    output_cost_per_mtok: float = 0.0
    reasoning_cost_per_mtok: float = 0.0
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """Static description of a model provider endpoint."""

    id: str
    display_name: str
    base_url: str | None
    api_key_env: str | None
    default_model: str
    adapter: str = "openai"  # "openai" (compatible API) or "anthropic"
    is_local: bool = False
