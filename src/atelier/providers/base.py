"""Base provider with shared error classification and tool schema conversion."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from atelier.core.retry import is_transient
from atelier.errors import ProviderError
from atelier.tools.registry import tool_schema
from atelier.types.messages import ConversationMessage
from atelier.types.providers import StreamEvent
from atelier.types.tools import ToolDef

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for all provider adapters.

    Concrete sub-classes must implement :meth:`chat_completion_stream`.
    Retrying is not done here: the agent loop owns the retry policy so it
    can restart the turn and announce each attempt.

    Parameters
    ----------
    model:
        The model identifier string (e.g. ``"gpt-4o-mini"``).
    """

    provider_name: str = "unknown"

    def __init__(self, model: str) -> None:
        self._model = model

    # ------------------------------------------------------------------
    # Public interface (ProviderAdapter protocol)
    # ------------------------------------------------------------------

    @property
    def model_id(self) -> str:
        """The model identifier being used by this provider instance."""
        return self._model

    def estimate_tokens(self, text: str) -> int:
        """Rough token count estimate, approximately 4 characters per token.

        Used when a provider does not report usage; never for billing
        decisions where real counts exist.

        Examples
        --------
        >>> provider.estimate_tokens("Hello, world!")
        3
        """
        return max(0, len(text) // 4)

    @abstractmethod
    def chat_completion_stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
        tool_choice: str = "auto",
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion, yielding :class:`StreamEvent` objects.

        Implementations are ``async def`` generators. SDK exceptions should
        be passed through :meth:`_wrap_error` so callers only ever see
        :class:`~atelier.errors.ProviderError`.

        Parameters
        ----------
        messages:
            Ordered conversation history (system messages excluded or
            overridden by *system*).
        tools:
            Tool definitions the model may call.
        system:
            System prompt string.
        max_tokens:
            Hard upper bound on generated tokens.
        tool_choice:
            ``"auto"``, ``"none"`` or ``"required"``.

        Yields
        ------
        StreamEvent
            Individual stream events as they arrive from the provider.
        """
        ...

    # ------------------------------------------------------------------
    # Protected helpers — available to sub-classes
    # ------------------------------------------------------------------

    def _wrap_error(self, exc: Exception) -> ProviderError:
        """Convert an SDK or transport exception into a :class:`ProviderError`."""
        if isinstance(exc, ProviderError):
            return exc
        status_code: int | None = getattr(exc, "status_code", None)
        transient = is_transient(exc)
        logger.debug(
            "%s error from %s (status=%s, transient=%s): %s",
            type(exc).__name__, self.provider_name, status_code, transient, exc,
        )
        return ProviderError(
            f"{self.provider_name} request failed: {type(exc).__name__}: {exc}",
            transient=transient,
            status_code=status_code,
        )

    def _make_tool_defs(self, tools: list[ToolDef]) -> list[dict[str, Any]]:
        """Convert :class:`ToolDef` objects into JSON-Schema-style dicts.

        Returns
        -------
        list[dict[str, Any]]
            One dict per tool, each with keys ``name``, ``description``, and
            ``input_schema`` (a JSON Schema ``object``).
        """
        return [tool_schema(tool) for tool in tools]
