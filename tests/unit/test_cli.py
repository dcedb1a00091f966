"""Tests for the command line interface and terminal output."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from atelier import __version__
from atelier.cli.main import cli
from atelier.cli.output import RichPrinter, call_detail, print_event, render_diff
from atelier.types.events import Divider, RunFinished, ToolCallsAnnounced
from atelier.types.messages import RunResult, ToolCallRequest, UsageInfo
from tests.conftest import SAMPLE_FILES, MockProvider, MockTurn, evaluation, tool_use

_UPDATE_RED = [{"type": "update", "oldStr": "color: red;", "newStr": "color: blue;"}]


@pytest.fixture
def isolated_env(monkeypatch, tmp_path: Path) -> None:
    for name in ("ATELIER_PROVIDER", "ATELIER_MODEL", "ATELIER_MAX_TURNS", "OPENROUTER_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def _use_provider(monkeypatch, provider: MockProvider) -> None:
    monkeypatch.setattr(
        "atelier.providers.registry.create_provider", lambda *args, **kwargs: provider,
    )


class TestCli:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_models_filtered_by_provider(self):
        result = CliRunner().invoke(cli, ["models", "-p", "anthropic"])
        assert result.exit_code == 0
        assert "claude-sonnet-4-5" in result.output
        assert "2 models" in result.output


class TestPatchCommand:
    def test_dry_run_shows_diff_only(self, tmp_path: Path):
        target = tmp_path / "styles.css"
        target.write_text(SAMPLE_FILES["/styles.css"])
        ops = tmp_path / "ops.json"
        ops.write_text(json.dumps(_UPDATE_RED))

        result = CliRunner().invoke(cli, ["patch", str(target), str(ops), "--dry-run"])

        assert result.exit_code == 0
        assert "+  color: blue;" in result.output
        assert "Applied 1/1 operations" in result.output
        assert target.read_text() == SAMPLE_FILES["/styles.css"]

    def test_operations_from_stdin_written(self, tmp_path: Path):
        target = tmp_path / "styles.css"
        target.write_text(SAMPLE_FILES["/styles.css"])

        result = CliRunner().invoke(
            cli, ["patch", str(target), "-"], input=json.dumps({"operations": _UPDATE_RED}),
        )

        assert result.exit_code == 0
        assert "color: blue;" in target.read_text()

    def test_rewrite_creates_file(self, tmp_path: Path):
        target = tmp_path / "pages" / "about.html"
        result = CliRunner().invoke(
            cli, ["patch", str(target), "-"], input=json.dumps({"type": "rewrite", "content": "<h1>About</h1>"}),
        )
        assert result.exit_code == 0
        assert target.read_text() == "<h1>About</h1>"

    def test_nothing_applied_fails(self, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text(SAMPLE_FILES["/app.js"])
        result = CliRunner().invoke(cli, ["patch", str(target), "-"], input=json.dumps(_UPDATE_RED))
        assert result.exit_code == 1
        assert "warning: Operation 1: oldStr not found" in result.output

    def test_invalid_json(self, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("x")
        result = CliRunner().invoke(cli, ["patch", str(target), "-"], input="[{")
        assert result.exit_code == 1
        assert "invalid JSON" in result.output

    def test_empty_operations(self, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("x")
        result = CliRunner().invoke(cli, ["patch", str(target), "-"], input="[]")
        assert result.exit_code == 1
        assert "no operations given" in result.output


class TestRunCommand:
    def test_missing_api_key(self, tmp_project: Path, isolated_env):
        result = CliRunner().invoke(cli, ["run", str(tmp_project), "Make", "it", "blue"])
        assert result.exit_code == 1
        assert "No API key" in result.output

    def test_dry_run_reports_changes(self, tmp_project: Path, isolated_env, monkeypatch):
        _use_provider(monkeypatch, MockProvider([
            MockTurn(tool_uses=[tool_use("tu1", "json_patch", file_path="/styles.css", operations=_UPDATE_RED)]),
            MockTurn(tool_uses=[evaluation()]),
        ]))
        result = CliRunner().invoke(cli, ["run", str(tmp_project), "--no-rich", "Make it blue"])

        assert result.exit_code == 0
        assert "modified  /styles.css" in result.output
        assert "pass --write" in result.output
        assert (tmp_project / "styles.css").read_text() == SAMPLE_FILES["/styles.css"]

    def test_write_back(self, tmp_project: Path, isolated_env, monkeypatch):
        _use_provider(monkeypatch, MockProvider([
            MockTurn(tool_uses=[
                tool_use("tu1", "json_patch", file_path="/styles.css", operations=_UPDATE_RED),
                tool_use("tu2", "shell", cmd=["rm", "/app.js"]),
            ]),
            MockTurn(tool_uses=[evaluation()]),
        ]))
        result = CliRunner().invoke(cli, ["run", str(tmp_project), "--no-rich", "--write", "Tidy up"])

        assert result.exit_code == 0
        assert "color: blue;" in (tmp_project / "styles.css").read_text()
        assert not (tmp_project / "app.js").exists()
        assert "Wrote 1 file(s), removed 1." in result.output

    def test_unsuccessful_run_exits_nonzero(self, tmp_project: Path, isolated_env, monkeypatch):
        _use_provider(monkeypatch, MockProvider([
            MockTurn(tool_uses=[evaluation(achieved=False, cont=False)]),
        ]))
        result = CliRunner().invoke(cli, ["run", str(tmp_project), "--no-rich", "Impossible"])
        assert result.exit_code == 1
        assert "Task incomplete" in result.output


class TestOutput:
    def test_call_detail_truncates(self):
        call = ToolCallRequest(id="c1", name="shell", raw_arguments="x" * 200)
        assert len(call_detail(call)) == 120
        assert call_detail(ToolCallRequest(id="c2", name="shell")) == ""

    def test_print_event_plain(self, capsys):
        call = ToolCallRequest(id="c1", name="shell", raw_arguments='{"cmd": ["ls"]}')
        print_event(ToolCallsAnnounced(tool_calls=(call,), final=False))
        print_event(ToolCallsAnnounced(tool_calls=(call,), final=True))
        print_event(Divider("Retry 1/2: timeout", kind="retry"))
        print_event(RunFinished(result=RunResult(
            success=True,
            summary="All done.",
            turns=2,
            steps_completed=3,
            stop_reason="goal_achieved",
            usage=UsageInfo(total_tokens=1500),
            total_cost=0.0123,
        )))

        err = capsys.readouterr().err
        assert err.count("[Tool: shell]") == 1
        assert "-- Retry 1/2: timeout --" in err
        assert "All done." in err
        assert "Turns: 2 | Steps: 3 | Stop: goal_achieved | Tokens: 1,500 | Cost: $0.0123" in err

    def test_rich_printer_result_panel(self):
        buffer = io.StringIO()
        printer = RichPrinter(console=Console(file=buffer, width=100))
        printer.print_event(RunFinished(result=RunResult(
            success=False, summary="Stopped early.", stop_reason="max_turns", checkpoint_id="cp-1",
        )))
        text = buffer.getvalue()
        assert "Stopped early." in text
        assert "incomplete" in text
        assert "max_turns" in text
        assert "cp-1" in text

    def test_render_diff(self):
        diff = render_diff("a\ncolor: red;\n", "a\ncolor: blue;\n", "styles.css")
        assert "--- a/styles.css" in diff
        assert "-color: red;" in diff
        assert "+color: blue;" in diff
        assert render_diff("same", "same") == "(no changes)"
