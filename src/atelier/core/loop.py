"""The agent loop — drives one run of model turns and tool dispatch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from atelier.core.cost import usage_from_stream
from atelier.core.events import EventBus, EventCallback, EventChannel
from atelier.core.prompt import build_system_prompt
from atelier.core.retry import RetryPolicy, describe_error, is_transient
from atelier.errors import ProviderError, RetryExhaustedError
from atelier.tools.dispatcher import ToolDispatcher
from atelier.tools.registry import ToolRegistry, validate_tool_definitions
from atelier.types.config import RunConfig
from atelier.types.events import (
    AgentEvent,
    AssistantDelta,
    Divider,
    EvaluationReceived,
    RunFinished,
    ToolCallsAnnounced,
    ToolResultReady,
    ToolStatusChanged,
    UsageReported,
)
from atelier.types.messages import (
    ConversationMessage,
    EvaluationReport,
    LoopState,
    Role,
    RunResult,
    ToolCallRequest,
    ToolResult,
    UsageInfo,
)
from atelier.types.providers import ProviderAdapter
from atelier.types.tools import JsonPatchArgs, ShellArgs, ToolContext, ToolDef
from atelier.types.vfs import CheckpointService, VirtualFileSystem
from atelier.vfs.paths import normalize_path

logger = logging.getLogger(__name__)

# Assistant text shorter than this is not used as the run summary.
_SUMMARY_MIN_CHARS = 50

# A text-only turn after this many steps gets one request for an evaluation.
_EVALUATION_REQUEST_STEPS = 3

_EVALUATION_REQUEST = (
    "Please use the evaluation tool to assess if the task has been completed "
    "successfully. Include progress_summary, remaining_work, and any blockers."
)


@dataclass(slots=True)
class RunState:
    """Mutable state of the run in progress."""

    state: LoopState = LoopState.IDLE
    turns: int = 0
    steps: int = 0
    usage: UsageInfo = field(default_factory=UsageInfo)
    checkpoint_id: str | None = None
    evaluation: EvaluationReport | None = None
    evaluation_requested: bool = False
    touched_files: list[str] = field(default_factory=list)
    error: str | None = None

    def touch(self, path: str) -> None:
        if path not in self.touched_files:
            self.touched_files.append(path)


@dataclass(slots=True)
class _TurnOutput:
    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: dict[str, Any] | None = None
    stop_reason: str = "end_turn"
    cancelled: bool = False


class AgentLoop:
    """Runs the model against the project until the goal is judged complete.

    One loop owns one conversation; ``execute`` may be called repeatedly
    (follow-up prompts continue the conversation) but never concurrently.

    Usage::

        loop = AgentLoop(provider, vfs, RunConfig(project_id="demo"),
                         checkpoints=SnapshotCheckpointStore(vfs))
        result = await loop.execute("Make the header blue")

        async for event in loop.stream("Now add a footer"):
            ...
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        vfs: VirtualFileSystem,
        config: RunConfig | None = None,
        *,
        checkpoints: CheckpointService | None = None,
        registry: ToolRegistry | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self._provider = provider
        self._vfs = vfs
        self._config = config or RunConfig()
        self._checkpoints = checkpoints
        self._dispatcher = ToolDispatcher(registry or ToolRegistry.default(vfs))
        self._bus = EventBus(on_event)
        self._retry = RetryPolicy(self._config.retry)
        self._messages: list[ConversationMessage] = []
        self._run: RunState | None = None
        self._running = False
        self._stop_requested = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[ConversationMessage]:
        """The conversation so far (a copy)."""
        return list(self._messages)

    @property
    def state(self) -> LoopState:
        return self._run.state if self._run is not None else LoopState.IDLE

    @property
    def run_state(self) -> RunState | None:
        return self._run

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Request cancellation; a tool already executing finishes first."""
        if self._running:
            logger.info("Stop requested")
            self._stop_requested = True

    async def execute(self, prompt: str) -> RunResult:
        """Run *prompt* to completion and return the run's result.

        Raises
        ------
        ToolSchemaError
            The tool definitions are invalid (nothing was sent to the model).
        RuntimeError
            Another ``execute`` is already in progress on this loop.
        """
        if self._running:
            raise RuntimeError("AgentLoop is already running; wait for it or call stop()")
        defs = self._dispatcher.registry.definitions(chat_mode=self._config.chat_mode)
        validate_tool_definitions(defs)

        self._running = True
        self._stop_requested = False
        self._run = RunState()
        try:
            return await self._execute(prompt, self._run, defs)
        finally:
            self._running = False

    async def stream(self, prompt: str) -> AsyncIterator[AgentEvent]:
        """Run *prompt* and yield every event, ending with :class:`RunFinished`.

        Leaving the iteration early stops the run.
        """
        channel = EventChannel()
        self._bus.attach(channel)

        async def run() -> None:
            try:
                result = await self.execute(prompt)
                await channel.send(RunFinished(result=result))
            finally:
                self._bus.detach(channel)
                await channel.close()

        task = asyncio.ensure_future(run())
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                self.stop()
                await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _execute(self, prompt: str, run: RunState, defs: list[ToolDef]) -> RunResult:
        config = self._config
        system = await build_system_prompt(
            self._vfs,
            config.project_id,
            chat_mode=config.chat_mode,
            base=config.system_prompt,
        )
        if not self._messages:
            self._messages.append(ConversationMessage(role=Role.SYSTEM, content=system))
        self._messages.append(ConversationMessage(role=Role.USER, content=prompt))
        self._dispatcher.reset()
        logger.info("Run started (project=%s, chat_mode=%s)", config.project_id, config.chat_mode)

        if config.checkpoint_before_run and not config.chat_mode:
            await self._checkpoint(run, "Before prompt", {"prompt": prompt[:200]})

        ctx = ToolContext(project_id=config.project_id, chat_mode=config.chat_mode)

        while True:
            if self._stop_requested:
                return await self._cancel(run)
            if run.turns >= config.max_turns:
                await self._bus.emit(Divider(f"Turn limit reached ({config.max_turns})", kind="notice"))
                return await self._finish(run, LoopState.DONE, False, "max_turns")

            run.turns += 1
            run.state = LoopState.STREAMING
            try:
                turn = await self._stream_turn(system, defs)
            except ProviderError as exc:
                logger.error("Run failed on turn %d: %s", run.turns, exc)
                run.error = str(exc)
                return await self._finish(run, LoopState.FATAL, False, "error")

            await self._record_usage(run, turn)

            if turn.cancelled:
                if turn.text:
                    self._messages.append(
                        ConversationMessage(role=Role.ASSISTANT, content=turn.text)
                    )
                return await self._cancel(run)

            self._messages.append(
                ConversationMessage(
                    role=Role.ASSISTANT, content=turn.text, tool_calls=list(turn.tool_calls),
                )
            )
            await self._bus.emit(ToolCallsAnnounced(tool_calls=tuple(turn.tool_calls), final=True))

            if not turn.tool_calls:
                if self._should_request_evaluation(run, turn):
                    run.evaluation_requested = True
                    logger.debug("Requesting evaluation after %d steps", run.steps)
                    self._messages.append(
                        ConversationMessage(role=Role.USER, content=_EVALUATION_REQUEST)
                    )
                    continue
                return await self._finish(run, LoopState.DONE, True, turn.stop_reason)

            run.state = LoopState.DISPATCHING
            limit_hit = await self._dispatch_batch(run, turn.tool_calls, ctx)
            if limit_hit is not None:
                return await self._finish(run, LoopState.DONE, False, limit_hit)

            evaluation = run.evaluation
            if evaluation is not None and any(c.name == "evaluation" for c in turn.tool_calls):
                run.state = LoopState.EVALUATING
                if evaluation.goal_achieved:
                    return await self._finish(run, LoopState.DONE, True, "goal_achieved")
                if not evaluation.should_continue:
                    return await self._finish(run, LoopState.DONE, False, "evaluation")

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_turn(self, system: str, defs: list[ToolDef]) -> _TurnOutput:
        """Stream one model turn, restarting it on transient errors."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._stream_once(system, defs)
            except Exception as exc:
                if not is_transient(exc):
                    if isinstance(exc, ProviderError):
                        raise
                    raise ProviderError(describe_error(exc)) from exc
                if attempt >= self._retry.max_attempts:
                    raise RetryExhaustedError(attempt, exc) from exc
                if self._stop_requested:
                    return _TurnOutput(cancelled=True)
                reason = describe_error(exc)
                logger.warning("Transient provider error (attempt %d): %s", attempt, reason)
                await self._bus.emit(
                    Divider(f"Retry {attempt}/{self._retry.max_attempts - 1}: {reason}", kind="retry")
                )
                await self._retry.sleep(attempt)

    async def _stream_once(self, system: str, defs: list[ToolDef]) -> _TurnOutput:
        out = _TurnOutput()
        args: dict[str, list[str]] = {}
        names: dict[str, str] = {}
        last_id: str | None = None

        stream = self._provider.chat_completion_stream(
            messages=list(self._messages),
            tools=defs,
            system=system,
            max_tokens=self._config.max_tokens,
            tool_choice="auto",
        )
        try:
            async for event in stream:
                if self._stop_requested:
                    out.cancelled = True
                    break
                match event.type:
                    case "text_delta" if event.text:
                        out.text += event.text
                        await self._bus.emit(AssistantDelta(text=event.text, snapshot=out.text))
                    case "tool_use_start":
                        call_id = event.tool_use_id or f"call_{len(names) + 1}"
                        names[call_id] = event.tool_name or ""
                        args[call_id] = []
                        last_id = call_id
                        await self._bus.emit(
                            ToolCallsAnnounced(
                                tool_calls=(ToolCallRequest(id=call_id, name=names[call_id]),),
                                final=False,
                            )
                        )
                    case "tool_use_delta":
                        target = event.tool_use_id if event.tool_use_id in args else last_id
                        if target is not None:
                            args[target].append(event.tool_args_json or "")
                    case "message_end":
                        out.usage = event.usage
                        out.stop_reason = event.stop_reason or "end_turn"
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        out.tool_calls = [
            ToolCallRequest(id=call_id, name=name, raw_arguments="".join(args[call_id]))
            for call_id, name in names.items()
        ]
        return out

    async def _record_usage(self, run: RunState, turn: _TurnOutput) -> None:
        if turn.usage is None:
            return
        usage = usage_from_stream(
            turn.usage,
            getattr(self._provider, "provider_name", self._config.provider),
            self._provider.model_id,
        )
        run.usage.add(usage)
        await self._bus.emit(UsageReported(usage=usage, total_cost=run.usage.cost))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch_batch(
        self, run: RunState, calls: list[ToolCallRequest], ctx: ToolContext,
    ) -> str | None:
        """Run *calls* in order; returns a stop reason if a limit cut the batch short."""
        mutated = False
        stop_reason: str | None = None

        for index, call in enumerate(calls):
            result = ToolResult(tool_call_id=call.id, tool_name=call.name)
            await self._emit_status(index, result)

            if stop_reason is None and self._stop_requested:
                stop_reason = "stopped"
            elif stop_reason is None and run.steps >= self._config.max_steps:
                stop_reason = "max_steps"
                await self._bus.emit(
                    Divider(f"Step limit reached ({self._config.max_steps})", kind="notice")
                )
            if stop_reason is not None:
                # Every requested call still gets a tool message.
                result.fail("Stopped by user" if stop_reason == "stopped" else "Step limit reached")
                await self._publish_result(index, result)
                continue

            run.steps += 1
            result.mark_executing()
            await self._emit_status(index, result)
            dispatched = await self._dispatcher.dispatch(call, ctx, result)
            await self._publish_result(index, result)

            if not result.succeeded:
                continue
            arguments = dispatched.arguments
            if result.mutated_files:
                mutated = True
                if isinstance(arguments, JsonPatchArgs):
                    run.touch(normalize_path(arguments.file_path))
                elif isinstance(arguments, ShellArgs):
                    for arg in arguments.cmd[1:]:
                        if arg.startswith("/"):
                            run.touch(normalize_path(arg))
            if isinstance(arguments, EvaluationReport):
                run.evaluation = arguments
                await self._bus.emit(EvaluationReceived(report=arguments))

        if mutated and not ctx.chat_mode:
            await self._checkpoint(run, f"After step {run.steps}", {"turn": run.turns})

        if stop_reason == "stopped":
            # Picked up by the cancellation check at the top of the loop.
            return None
        return stop_reason

    async def _emit_status(self, index: int, result: ToolResult) -> None:
        await self._bus.emit(
            ToolStatusChanged(
                tool_index=index,
                tool_call_id=result.tool_call_id,
                status=result.status,
                error=result.error,
            )
        )

    async def _publish_result(self, index: int, result: ToolResult) -> None:
        content = result.content_for_model()
        self._messages.append(
            ConversationMessage(role=Role.TOOL, content=content, tool_call_id=result.tool_call_id)
        )
        await self._bus.emit(
            ToolResultReady(
                tool_index=index,
                tool_call_id=result.tool_call_id,
                tool_name=result.tool_name,
                result=content,
                is_error=not result.succeeded,
            )
        )
        await self._emit_status(index, result)

    # ------------------------------------------------------------------
    # Checkpoints and completion
    # ------------------------------------------------------------------

    async def _checkpoint(self, run: RunState, label: str, meta: dict[str, Any]) -> None:
        if self._checkpoints is None:
            return
        try:
            checkpoint = await self._checkpoints.create_checkpoint(
                self._config.project_id, label, meta,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Checkpoint %r failed: %s", label, exc)
            await self._bus.emit(Divider(f"Checkpoint failed: {exc}", kind="notice"))
            return
        run.checkpoint_id = checkpoint.id
        logger.debug("Checkpoint %s: %s", checkpoint.id, label)

    def _should_request_evaluation(self, run: RunState, turn: _TurnOutput) -> bool:
        return (
            not self._config.chat_mode
            and bool(turn.text.strip())
            and run.steps >= _EVALUATION_REQUEST_STEPS
            and run.evaluation is None
            and not run.evaluation_requested
        )

    async def _cancel(self, run: RunState) -> RunResult:
        if not self._config.chat_mode:
            await self._checkpoint(
                run, "Generation stopped before completion", {"turn": run.turns},
            )
        return await self._finish(run, LoopState.CANCELLED, False, "stopped")

    async def _finish(
        self, run: RunState, state: LoopState, success: bool, stop_reason: str,
    ) -> RunResult:
        run.state = state
        result = RunResult(
            success=success,
            summary=self._summarize(run, state),
            steps_completed=run.steps,
            checkpoint_id=run.checkpoint_id,
            total_cost=run.usage.cost,
            usage=run.usage,
            stop_reason=stop_reason,
            state=state,
            turns=run.turns,
        )
        logger.info(
            "Run finished: %s (success=%s, turns=%d, steps=%d, cost=$%.4f)",
            stop_reason, success, run.turns, run.steps, run.usage.cost,
        )
        return result

    def _summarize(self, run: RunState, state: LoopState) -> str:
        if state is LoopState.FATAL:
            return f"Error: {run.error}"
        if state is LoopState.CANCELLED:
            return "Generation stopped by user"

        last_text = ""
        for msg in reversed(self._messages):
            if msg.role is Role.ASSISTANT and msg.content.strip():
                last_text = msg.content.strip()
                break
        files = "".join(f"\n- {path}" for path in run.touched_files)

        evaluation = run.evaluation
        if evaluation is not None:
            summary = last_text if len(last_text) > _SUMMARY_MIN_CHARS else evaluation.reasoning
            if evaluation.goal_achieved:
                lowered = summary.lower()
                if "task complete" not in lowered and "completed successfully" not in lowered:
                    summary += "\n\nTask complete"
                if files:
                    summary += "\n\nCreated/modified files:" + files
            else:
                summary += "\n\nTask incomplete"
                if evaluation.remaining_work:
                    summary += "\n\nRemaining work:" + "".join(
                        f"\n- {w}" for w in evaluation.remaining_work
                    )
                if evaluation.blockers:
                    summary += "\n\nBlockers:" + "".join(f"\n- {b}" for b in evaluation.blockers)
            return summary

        if run.steps == 0:
            return last_text or "No actions were taken."
        summary = last_text or f"Completed {run.steps} operation{'s' if run.steps != 1 else ''}."
        if files:
            summary += "\n\nCreated/modified files:" + files
        return summary
