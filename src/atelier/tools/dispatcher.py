"""ToolDispatcher — routes tool calls to executors and normalizes results."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from atelier.errors import ToolArgumentError, VfsError
from atelier.tools.registry import ToolRegistry, decode_arguments
from atelier.types.messages import ToolCallRequest, ToolResult, ToolStatus
from atelier.types.tools import ToolArguments, ToolContext

logger = logging.getLogger(__name__)

# Identical repeats of these are harmless and never count as a loop.
_LOOP_EXEMPT = frozenset({"evaluation"})


@dataclass(slots=True)
class Dispatched:
    """A finished tool call together with its typed arguments (when parsed)."""

    result: ToolResult
    arguments: ToolArguments | None = None


class ToolDispatcher:
    """Executes one tool call at a time against a :class:`ToolRegistry`.

    Every failure mode (unknown tool, bad arguments, a repeated identical
    call, an executor error) ends as a ``FAILED`` :class:`ToolResult`;
    nothing here raises for a bad call.

    Usage::

        dispatcher = ToolDispatcher(ToolRegistry.default(vfs))
        done = await dispatcher.dispatch(call, ToolContext(project_id="demo"))
        done.result.status  # ToolStatus.COMPLETED or ToolStatus.FAILED
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._last_signature: str | None = None

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def reset(self) -> None:
        """Forget the previous call (start of a new run)."""
        self._last_signature = None

    async def dispatch(
        self,
        call: ToolCallRequest,
        ctx: ToolContext,
        result: ToolResult | None = None,
    ) -> Dispatched:
        """Run *call* and drive *result* to a terminal state.

        *result* may be supplied already ``EXECUTING`` by a caller that
        publishes the intermediate states itself.
        """
        if result is None:
            result = ToolResult(tool_call_id=call.id, tool_name=call.name)
        if result.status is ToolStatus.PENDING:
            result.mark_executing()

        tool = self._registry.get(call.name)
        available = self._registry.names(chat_mode=ctx.chat_mode)
        if tool is None or call.name not in available:
            reason = (
                f"Tool '{call.name}' is not available in chat mode"
                if tool is not None
                else f"Unknown tool: '{call.name}'"
            )
            result.fail(f"{reason}. Available tools: {sorted(available)}")
            logger.warning("Rejected call %s: %s", call.id, reason)
            return Dispatched(result=result)

        try:
            data = decode_arguments(call.name, call.raw_arguments)
            args = tool.parse_arguments(data)
        except ToolArgumentError as exc:
            result.fail(f"Invalid arguments for {call.name}: {exc}")
            return Dispatched(result=result)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Argument parsing for %s raised", call.name)
            result.fail(f"Invalid arguments for {call.name}: {exc}")
            return Dispatched(result=result)

        signature = f"{call.name}:{json.dumps(data, sort_keys=True, default=str)}"
        if call.name not in _LOOP_EXEMPT and signature == self._last_signature:
            result.fail(
                f"Loop detected: this exact {call.name} call was just executed. "
                "Its result will not change; try a different approach."
            )
            logger.warning("Loop detected on %s", call.name)
            return Dispatched(result=result, arguments=args)
        self._last_signature = signature

        try:
            outcome = await tool.execute(args, ctx)
        except VfsError as exc:
            result.fail(str(exc))
            return Dispatched(result=result, arguments=args)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool %s raised", call.name)
            result.fail(f"Tool '{call.name}' raised an unexpected error: {exc}")
            return Dispatched(result=result, arguments=args)

        if outcome.is_error:
            error = outcome.output if isinstance(outcome.output, str) else json.dumps(outcome.output)
            result.fail(error)
        else:
            result.complete(outcome.output, mutated_files=outcome.mutated_files)
        return Dispatched(result=result, arguments=args)
