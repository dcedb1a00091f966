"""Test fixtures including MockProvider for deterministic testing."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from atelier.types.messages import ConversationMessage
from atelier.types.providers import StreamEvent
from atelier.types.tools import ToolDef
from atelier.vfs import MemoryFileSystem, SnapshotCheckpointStore

PROJECT = "demo"

SAMPLE_FILES = {
    "/index.html": (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        "  <title>Demo</title>\n"
        '  <link rel="stylesheet" href="/styles.css">\n'
        "</head>\n"
        "<body>\n"
        '  <header class="site-header">\n'
        "    <h1>Hello</h1>\n"
        "  </header>\n"
        '  <script src="/app.js"></script>\n'
        "</body>\n"
        "</html>\n"
    ),
    "/styles.css": (
        ".site-header {\n"
        "  color: red;\n"
        "}\n"
        "\n"
        "body {\n"
        "  margin: 0;\n"
        "}\n"
    ),
    "/app.js": (
        "function calculateTotal(items) {\n"
        "  return items.reduce((sum, item) => sum + item.price, 0);\n"
        "}\n"
        "\n"
        "console.log(calculateTotal([]));\n"
    ),
}


@dataclass
class MockTurn:
    """A scripted turn for MockProvider.

    Specify either text or tool_uses (or both) for what the model should "respond" with.
    """

    text: str = ""
    tool_uses: list[dict[str, Any]] = field(default_factory=list)
    # Each tool_use: {"id": "tu1", "name": "shell", "args": {"cmd": ["ls", "/"]}}
    usage: dict[str, Any] = field(default_factory=lambda: {"input_tokens": 100, "output_tokens": 50})


class MockProvider:
    """A deterministic mock provider for testing.

    Usage:
        provider = MockProvider(turns=[
            MockTurn(tool_uses=[{"id": "tu1", "name": "shell", "args": {"cmd": ["cat", "/app.js"]}}]),
            MockTurn(text="The file defines calculateTotal."),
        ])
    """

    provider_name = "mock"

    def __init__(self, turns: list[MockTurn], model: str = "mock-model"):
        self._turns = list(turns)
        self._turn_index = 0
        self._model = model
        self.calls: list[dict[str, Any]] = []

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def turns_used(self) -> int:
        return self._turn_index

    def estimate_tokens(self, text: str) -> int:
        return max(1, len(text) // 4)

    async def chat_completion_stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
        tool_choice: str = "auto",
    ) -> AsyncIterator[StreamEvent]:
        """Yield scripted StreamEvents for the current turn."""
        self.calls.append({
            "messages": list(messages),
            "tools": [t.name for t in tools],
            "system": system,
            "max_tokens": max_tokens,
            "tool_choice": tool_choice,
        })
        if self._turn_index >= len(self._turns):
            # No more turns, just end
            yield StreamEvent(
                type="message_end", stop_reason="end_turn",
                usage={"input_tokens": 10, "output_tokens": 5},
            )
            return

        turn = self._turns[self._turn_index]
        self._turn_index += 1

        if turn.text:
            # Stream in two chunks so snapshots can be checked
            half = len(turn.text) // 2 or len(turn.text)
            yield StreamEvent(type="text_delta", text=turn.text[:half])
            if turn.text[half:]:
                yield StreamEvent(type="text_delta", text=turn.text[half:])

        for tu in turn.tool_uses:
            yield StreamEvent(type="tool_use_start", tool_use_id=tu["id"], tool_name=tu["name"])
            args = tu.get("args", {})
            args_json = args if isinstance(args, str) else json.dumps(args)
            yield StreamEvent(type="tool_use_delta", tool_use_id=tu["id"], tool_args_json=args_json)
            yield StreamEvent(type="tool_use_end", tool_use_id=tu["id"])

        stop_reason = "tool_use" if turn.tool_uses else "end_turn"
        yield StreamEvent(type="message_end", stop_reason=stop_reason, usage=turn.usage)


class FailingMockProvider(MockProvider):
    """A mock provider that raises *error* on the first N calls."""

    def __init__(
        self,
        turns: list[MockTurn],
        fail_count: int = 1,
        error: Exception | None = None,
        model: str = "mock-model",
    ):
        super().__init__(turns, model=model)
        self._fail_count = fail_count
        self._error = error
        self._call_count = 0

    async def chat_completion_stream(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
        tool_choice: str = "auto",
    ) -> AsyncIterator[StreamEvent]:
        self._call_count += 1
        if self._call_count <= self._fail_count:
            raise self._error or ConnectionError(f"Simulated failure #{self._call_count}")
        async for event in super().chat_completion_stream(
            messages, tools, system, max_tokens, tool_choice,
        ):
            yield event


def tool_use(call_id: str, name: str, **args: Any) -> dict[str, Any]:
    """Shorthand for a MockTurn tool use."""
    return {"id": call_id, "name": name, "args": args}


def evaluation(call_id: str = "ev1", *, achieved: bool = True, cont: bool = False, **extra: Any) -> dict[str, Any]:
    return tool_use(
        call_id,
        "evaluation",
        goal_achieved=achieved,
        reasoning=extra.pop("reasoning", "Checked the result."),
        should_continue=cont,
        **extra,
    )


@pytest.fixture
def vfs() -> MemoryFileSystem:
    """In-memory VFS holding a small sample site under project ``demo``."""
    return MemoryFileSystem({PROJECT: dict(SAMPLE_FILES)})


@pytest.fixture
def checkpoints(vfs: MemoryFileSystem) -> SnapshotCheckpointStore:
    return SnapshotCheckpointStore(vfs)


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with the sample files."""
    for path, content in SAMPLE_FILES.items():
        (tmp_path / path.lstrip("/")).write_text(content)
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "logo.svg").write_text("<svg></svg>\n")
    return tmp_path


@pytest.fixture
def mock_provider() -> MockProvider:
    """A simple mock provider that responds with text."""
    return MockProvider(turns=[MockTurn(text="I can help with that.")])


@pytest.fixture
def failing_mock_provider() -> FailingMockProvider:
    return FailingMockProvider(turns=[MockTurn(text="Recovered!")], fail_count=1)
