"""Anthropic/Claude provider adapter."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from atelier.providers.base import BaseProvider
from atelier.types.messages import ConversationMessage, Role
from atelier.types.providers import StreamEvent
from atelier.types.tools import ToolDef

logger = logging.getLogger(__name__)

_TOOL_CHOICE: dict[str, dict[str, str]] = {
    "auto": {"type": "auto"},
    "required": {"type": "any"},
    "any": {"type": "any"},
    "none": {"type": "none"},
}


class AnthropicProvider(BaseProvider):
    """Provider adapter for Anthropic's Claude models.

    Uses the official ``anthropic`` Python SDK with its async streaming
    interface.  All stream events from the SDK are translated into the
    provider-agnostic :class:`~atelier.types.providers.StreamEvent` format.

    Parameters
    ----------
    api_key:
        Anthropic API key.  When *None* the SDK will fall back to the
        ``ANTHROPIC_API_KEY`` environment variable.
    model:
        Model ID to use for completions (default ``"claude-sonnet-4-5"``).
    base_url:
        Optional proxy endpoint.
    """

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5",
        base_url: str | None = None,
    ) -> None:
        super().__init__(model)
        # Defer import so the rest of the codebase can be imported even if the
        # anthropic package is not installed (useful for type checking).
        try:
            from anthropic import AsyncAnthropic
        except ImportError as exc:
            raise ImportError(
                "The 'anthropic' package is required for AnthropicProvider. "
                "Install it with: pip install anthropic"
            ) from exc

        kwargs: dict[str, Any] = {"max_retries": 0}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        self._client = AsyncAnthropic(**kwargs)

    # ------------------------------------------------------------------
    # ProviderAdapter protocol
    # ------------------------------------------------------------------

    async def chat_completion_stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int = 4096,
        tool_choice: str = "auto",
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion from the Anthropic API.

        Parameters
        ----------
        messages:
            Conversation history (system messages are dropped; *system* is
            passed separately as Anthropic expects).
        tools:
            Tool definitions available to the model.
        system:
            System prompt.
        max_tokens:
            Maximum number of tokens to generate.
        tool_choice:
            ``"auto"``, ``"required"`` or ``"none"``.

        Yields
        ------
        StreamEvent
            One event per meaningful chunk from the Anthropic stream.
        """
        try:
            async for event in self._stream(messages, tools, system, max_tokens, tool_choice):
                yield event
        except Exception as exc:
            raise self._wrap_error(exc) from exc

    async def _stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
        tool_choice: str,
    ) -> AsyncIterator[StreamEvent]:
        anthropic_tools = self._to_anthropic_tools(tools)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": self._to_anthropic_messages(messages),
        }
        if system:
            kwargs["system"] = system
        if anthropic_tools:
            kwargs["tools"] = anthropic_tools
            kwargs["tool_choice"] = _TOOL_CHOICE.get(tool_choice, {"type": "auto"})

        async with self._client.messages.stream(**kwargs) as stream:
            # Track the current content block so we know when a tool_use
            # block ends (content_block_stop carries no type).
            current_tool_id: str | None = None

            async for event in stream:
                event_type: str = event.type

                if event_type == "content_block_start" and event.content_block.type == "tool_use":
                    current_tool_id = event.content_block.id
                    yield StreamEvent(
                        type="tool_use_start",
                        tool_use_id=event.content_block.id,
                        tool_name=event.content_block.name,
                    )

                elif event_type == "content_block_delta" and event.delta.type == "text_delta":
                    yield StreamEvent(type="text_delta", text=event.delta.text)

                elif event_type == "content_block_delta" and event.delta.type == "input_json_delta":
                    yield StreamEvent(
                        type="tool_use_delta",
                        tool_use_id=current_tool_id,
                        tool_args_json=event.delta.partial_json,
                    )

                elif event_type == "content_block_stop":
                    if current_tool_id is not None:
                        yield StreamEvent(type="tool_use_end", tool_use_id=current_tool_id)
                    current_tool_id = None

                elif event_type == "message_stop":
                    final_message = await stream.get_final_message()
                    usage_obj = final_message.usage
                    yield StreamEvent(
                        type="message_end",
                        stop_reason=final_message.stop_reason,
                        usage={
                            "input_tokens": usage_obj.input_tokens,
                            "output_tokens": usage_obj.output_tokens,
                        },
                    )

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _to_anthropic_messages(
        self, messages: list[ConversationMessage]
    ) -> list[dict[str, Any]]:
        """Convert the conversation to Anthropic's messages format.

        Assistant tool calls become ``tool_use`` blocks and consecutive
        ``tool`` messages are merged into one ``role="user"`` message of
        ``tool_result`` blocks, which is what the Anthropic API expects.
        """
        result: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role is Role.SYSTEM:
                continue

            if msg.role is Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id or "",
                    "content": msg.content,
                }
                if msg.content.startswith("Error"):
                    block["is_error"] = True
                previous = result[-1] if result else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    result.append({"role": "user", "content": [block]})

            elif msg.role is Role.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    try:
                        args = json.loads(call.raw_arguments) if call.raw_arguments else {}
                    except json.JSONDecodeError:
                        args = {}
                    if not isinstance(args, dict):
                        args = {}
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": args}
                    )
                if blocks:
                    result.append({"role": "assistant", "content": blocks})

            else:
                result.append({"role": "user", "content": msg.content})

        return result

    def _to_anthropic_tools(self, tools: list[ToolDef]) -> list[dict[str, Any]]:
        """The generic schema already has Anthropic's name/description/input_schema shape."""
        return self._make_tool_defs(tools)
