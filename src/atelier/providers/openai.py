"""OpenAI provider adapter.

Supports OpenAI models and any OpenAI-compatible endpoint such as
OpenRouter, Groq, Ollama (``http://localhost:11434/v1``) and LM Studio by
passing a custom ``base_url``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from atelier.providers.base import BaseProvider
from atelier.types.messages import ConversationMessage, Role
from atelier.types.providers import StreamEvent
from atelier.types.tools import ToolDef

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """Provider adapter for OpenAI-compatible chat completion APIs.

    Uses the official ``openai`` Python SDK with its async streaming interface.
    All stream events from the SDK are translated into the provider-agnostic
    :class:`~atelier.types.providers.StreamEvent` format.

    The ``base_url`` parameter enables drop-in compatibility with:

    - **OpenRouter**: ``https://openrouter.ai/api/v1``
    - **Groq**: ``https://api.groq.com/openai/v1``
    - **Ollama**: ``http://localhost:11434/v1``
    - **LM Studio**: ``http://localhost:1234/v1``

    Parameters
    ----------
    api_key:
        API key.  When *None* the SDK falls back to the ``OPENAI_API_KEY``
        environment variable.
    model:
        Model ID to use for completions (default ``"gpt-4o-mini"``).
    base_url:
        Optional custom base URL for OpenAI-compatible endpoints.
    provider_name:
        Name reported in usage records and cost lookups.
    extra_headers:
        Headers sent with every request (OpenRouter attribution headers).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        provider_name: str = "openai",
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(model)
        self.provider_name = provider_name
        # Defer import so the rest of the codebase can be imported even if the
        # openai package is not installed (useful for type checking).
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:
            raise ImportError(
                "The 'openai' package is required for OpenAIProvider. "
                "Install it with: pip install openai"
            ) from exc

        kwargs: dict[str, Any] = {"max_retries": 0}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if base_url is not None:
            kwargs["base_url"] = base_url
        if extra_headers:
            kwargs["default_headers"] = extra_headers

        self._client = AsyncOpenAI(**kwargs)

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
        """Stream a chat completion from an OpenAI-compatible API.

        The system prompt is injected as the first message with
        ``role="system"``, which is the convention for OpenAI-compatible APIs.
        SDK errors are re-raised as :class:`~atelier.errors.ProviderError`.

        Yields
        ------
        StreamEvent
            One event per meaningful chunk from the OpenAI stream.
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
        """Internal async generator — yielded by :meth:`chat_completion_stream`."""
        from openai import NOT_GIVEN

        openai_messages = self._to_openai_messages(messages, system)
        openai_tools = self._to_openai_tools(tools)

        # Reasoning models (o1/o3/o4, gpt-5) use max_completion_tokens
        # instead of the legacy max_tokens parameter.
        model_lower = self._model.lower().rsplit("/", 1)[-1]
        use_new_param = any(
            model_lower.startswith(p)
            for p in ("gpt-5", "o1", "o3", "o4")
        )

        token_kwargs: dict[str, Any] = {}
        if use_new_param:
            token_kwargs["max_completion_tokens"] = max_tokens
        else:
            token_kwargs["max_tokens"] = max_tokens

        stream = await self._client.chat.completions.create(
            model=self._model,
            messages=openai_messages,  # type: ignore[arg-type]
            tools=openai_tools if openai_tools else NOT_GIVEN,
            tool_choice=tool_choice if openai_tools else NOT_GIVEN,  # type: ignore[arg-type]
            stream=True,
            stream_options={"include_usage": True},
            **token_kwargs,
        )

        # OpenAI streams parallel tool calls by index; only the first chunk
        # of each call carries its id, so later fragments are mapped back.
        active_tool_call_ids: dict[int, str] = {}
        final_usage: dict[str, Any] | None = None
        stop_reason: str | None = None

        async for chunk in stream:
            # The final chunk has choices=[] and usage populated when
            # stream_options={"include_usage": True}.
            raw_usage = getattr(chunk, "usage", None)
            if raw_usage is not None:
                final_usage = {
                    "input_tokens": getattr(raw_usage, "prompt_tokens", 0) or 0,
                    "output_tokens": getattr(raw_usage, "completion_tokens", 0) or 0,
                }
                # OpenRouter reports the billed cost inline.
                cost = getattr(raw_usage, "cost", None)
                if isinstance(cost, (int, float)):
                    final_usage["cost"] = float(cost)

            choice = chunk.choices[0] if chunk.choices else None
            if choice is None:
                continue

            delta = choice.delta

            if delta.content:
                yield StreamEvent(type="text_delta", text=delta.content)

            if delta.tool_calls:
                for tc in delta.tool_calls:
                    idx = tc.index
                    if tc.id is not None and idx not in active_tool_call_ids:
                        active_tool_call_ids[idx] = tc.id
                        tool_name = tc.function.name if tc.function else ""
                        yield StreamEvent(
                            type="tool_use_start",
                            tool_use_id=tc.id,
                            tool_name=tool_name or "",
                        )

                    if tc.function and tc.function.arguments:
                        yield StreamEvent(
                            type="tool_use_delta",
                            tool_use_id=active_tool_call_ids.get(idx),
                            tool_args_json=tc.function.arguments,
                        )

            if choice.finish_reason:
                for idx in sorted(active_tool_call_ids):
                    yield StreamEvent(type="tool_use_end", tool_use_id=active_tool_call_ids[idx])
                active_tool_call_ids.clear()

                # Normalize "tool_calls"; usage arrives in a trailing chunk.
                stop_reason = choice.finish_reason
                if stop_reason == "tool_calls":
                    stop_reason = "tool_use"

        yield StreamEvent(
            type="message_end",
            stop_reason=stop_reason or "end_turn",
            usage=final_usage,
        )

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _to_openai_messages(
        self,
        messages: list[ConversationMessage],
        system: str,
    ) -> list[dict[str, Any]]:
        """Convert the conversation to the OpenAI messages array format.

        The explicit *system* prompt goes first; system messages in the
        history are dropped in its favour.
        """
        result: list[dict[str, Any]] = []
        if system:
            result.append({"role": "system", "content": system})

        for msg in messages:
            if msg.role is Role.SYSTEM:
                continue
            data = msg.to_dict()
            if msg.role is Role.ASSISTANT and msg.tool_calls and not msg.content:
                data["content"] = None
            result.append(data)
        return result

    def _to_openai_tools(self, tools: list[ToolDef]) -> list[dict[str, Any]]:
        """Wrap each generic tool schema in the OpenAI function envelope."""
        generic = self._make_tool_defs(tools)
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t["description"],
                    "parameters": t["input_schema"],
                },
            }
            for t in generic
        ]
