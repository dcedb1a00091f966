"""Terminal rendering of agent events (plain text and Rich)."""

from __future__ import annotations

import difflib
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from atelier.types.events import (
    AgentEvent,
    AssistantDelta,
    Divider,
    EvaluationReceived,
    RunFinished,
    ToolCallsAnnounced,
    ToolResultReady,
)
from atelier.types.messages import RunResult, ToolCallRequest

# ── Palette ──────────────────────────────────────────────────────────────────

TOOL_ICONS: dict[str, str] = {
    "shell": "█",       # █  solid block
    "json_patch": "▸",  # ▸  right-pointing triangle
    "evaluation": "◆",  # ◆  diamond
}
DEFAULT_ICON = "▸"

STYLE_TOOL_NAME = "bold #a78bfa"
STYLE_TOOL_DETAIL = "#7c7c8a"
STYLE_ERROR_LABEL = "bold #f87171"
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_DIM = "dim #7c7c8a"
STYLE_RESULT_LABEL = "bold #94a3b8"
STYLE_RESULT_VALUE = "#e2e8f0"
STYLE_COST_VALUE = "#34d399"
STYLE_DIVIDER = "dim italic #94a3b8"
STYLE_SUCCESS = "bold #34d399"

_PREVIEW_CHARS = 300


def call_detail(call: ToolCallRequest) -> str:
    """Short human-readable hint of what a tool call does."""
    raw = call.raw_arguments.strip()
    if not raw:
        return ""
    return raw if len(raw) <= 120 else raw[:117] + "..."


def print_event(event: AgentEvent) -> None:
    """Print an event in basic text mode."""
    match event:
        case AssistantDelta(text=t):
            sys.stdout.write(t)
            sys.stdout.flush()
        case ToolCallsAnnounced(tool_calls=calls, final=True):
            for call in calls:
                print(f"\n[Tool: {call.name}] {call_detail(call)}", file=sys.stderr)
        case ToolResultReady(result=content, is_error=True):
            print(f"[Error] {content[:200]}", file=sys.stderr)
        case Divider(text=text):
            print(f"\n-- {text} --", file=sys.stderr)
        case EvaluationReceived(report=report):
            state = "achieved" if report.goal_achieved else "not achieved"
            print(f"[Evaluation] goal {state}: {report.reasoning}", file=sys.stderr)
        case RunFinished(result=result):
            print(file=sys.stderr)
            print(result.summary, file=sys.stderr)
            parts = [
                f"Turns: {result.turns}",
                f"Steps: {result.steps_completed}",
                f"Stop: {result.stop_reason}",
            ]
            if result.usage.total_tokens:
                parts.append(f"Tokens: {result.usage.total_tokens:,}")
            if result.total_cost:
                parts.append(f"Cost: ${result.total_cost:.4f}")
            print(" | ".join(parts), file=sys.stderr)
        case _:
            pass


class RichPrinter:
    """Rich-based event printer for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._stdout = Console()
        self._streaming = False

    def print_event(self, event: AgentEvent) -> None:
        match event:
            case AssistantDelta(text=t):
                self._streaming = True
                self._stdout.print(t, end="", highlight=False)

            case ToolCallsAnnounced(tool_calls=calls, final=True):
                self._end_stream()
                for call in calls:
                    self._print_tool_call(call)

            case ToolResultReady(result=content, is_error=is_error):
                self._print_tool_result(content, is_error)

            case EvaluationReceived(report=report):
                style = STYLE_SUCCESS if report.goal_achieved else STYLE_ERROR_LABEL
                line = Text("  ◆ ", style=style)
                line.append(report.progress_summary or report.reasoning, style=STYLE_TOOL_DETAIL)
                self._console.print(line)

            case Divider(text=text):
                self._end_stream()
                self._console.print(f"  [dim]──[/dim] [{STYLE_DIVIDER}]{text}[/]")

            case RunFinished(result=result):
                self._end_stream()
                self._print_result(result)

    def _end_stream(self) -> None:
        if self._streaming:
            self._stdout.print()
            self._streaming = False

    # ── Tool calls ───────────────────────────────────────────────────────────

    def _print_tool_call(self, call: ToolCallRequest) -> None:
        icon = TOOL_ICONS.get(call.name, DEFAULT_ICON)
        line = Text()
        line.append(f"  {icon} ", style=STYLE_TOOL_NAME)
        line.append(call.name, style=STYLE_TOOL_NAME)
        detail = call_detail(call)
        if detail:
            line.append("  ")
            line.append(detail, style=STYLE_TOOL_DETAIL)
        self._console.print(line)

    def _print_tool_result(self, content: str, is_error: bool) -> None:
        if is_error:
            label = Text("    ✗ ", style=STYLE_ERROR_LABEL)
            label.append(content[:_PREVIEW_CHARS], style=STYLE_ERROR_BODY)
            self._console.print(label)
        elif len(content) > _PREVIEW_CHARS:
            self._console.print(
                Text(f"    {content[:_PREVIEW_CHARS]}…", style=STYLE_RESULT_DIM),
            )

    # ── Final result ─────────────────────────────────────────────────────────

    def _print_result(self, result: RunResult) -> None:
        self._console.print()
        self._console.print(result.summary, highlight=False)

        tbl = Table(show_header=False, show_edge=False, padding=(0, 1), expand=False)
        tbl.add_column(style=STYLE_RESULT_LABEL, justify="right", no_wrap=True)
        tbl.add_column(style=STYLE_RESULT_VALUE, no_wrap=True)

        status = Text("success" if result.success else "incomplete",
                      style=STYLE_SUCCESS if result.success else STYLE_ERROR_LABEL)
        tbl.add_row("Status", status)
        tbl.add_row("Stop reason", result.stop_reason)
        tbl.add_row("Turns", str(result.turns))
        tbl.add_row("Steps", str(result.steps_completed))
        if result.usage.total_tokens:
            tbl.add_row("Tokens", f"{result.usage.total_tokens:,}")
        if result.total_cost:
            tbl.add_row("Cost", Text(f"${result.total_cost:.4f}", style=STYLE_COST_VALUE))
        if result.checkpoint_id:
            tbl.add_row("Checkpoint", result.checkpoint_id)

        self._console.print(Panel(tbl, border_style="#3f3f50", expand=False, padding=(0, 1)))


def render_diff(
    old: str,
    new: str,
    filename: str = "",
    *,
    console: Console | None = None,
) -> str:
    """Unified diff between *old* and *new*; printed in colour when *console* is given."""
    diff_lines = list(difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"a/{filename}" if filename else "a/file",
        tofile=f"b/{filename}" if filename else "b/file",
        lineterm="",
    ))
    if not diff_lines:
        return "(no changes)"

    if console is not None:
        for line in diff_lines:
            line = line.rstrip("\n")
            if line.startswith(("+++", "---")):
                console.print(Text(line, style="bold"))
            elif line.startswith("@@"):
                console.print(Text(line, style="cyan"))
            elif line.startswith("+"):
                console.print(Text(line, style="green"))
            elif line.startswith("-"):
                console.print(Text(line, style="red"))
            else:
                console.print(Text(line, style="dim"))

    return "\n".join(line.rstrip("\n") for line in diff_lines)
