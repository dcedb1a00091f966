"""Shell tool — runs argv vectors in the sandboxed VFS interpreter."""

from __future__ import annotations

import asyncio
import logging
import shlex
from typing import Any

from atelier.errors import ToolArgumentError
from atelier.tools.base import BaseTool, ToolOutcome
from atelier.types.tools import ShellArgs, ToolContext, ToolDef, ToolParam
from atelier.types.vfs import VirtualFileSystem
from atelier.vfs.shell import VfsShell, is_structure_command

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_MS = 30_000
_MAX_TIMEOUT_MS = 120_000
_MAX_OUTPUT_CHARS = 30_000

_DEFINITION = ToolDef(
    name="shell",
    description=(
        "Run a command in the sandboxed VFS terminal. Provide the argv vector in the "
        "cmd array, e.g. [\"cat\", \"/index.html\"]. Supported: ls, cat, nl -ba, head, "
        "tail, grep -n -i -r, find -name, tree, pwd, mkdir -p, rm -rf, rmdir, mv, cp -r, "
        "echo (stdout only) and sed (s/a/b/g or -n 'A,Bp', never persisted). "
        "Pipes with \"|\" are allowed; redirection is not. Use json_patch to edit files."
    ),
    parameters=(
        ToolParam(
            name="cmd",
            type="array",
            description='argv vector, e.g. ["cat","/index.html"]',
            items={"type": "string"},
        ),
        ToolParam(
            name="cwd",
            type="string",
            description="Working directory (ignored; paths are absolute under /).",
            required=False,
        ),
        ToolParam(
            name="timeoutMs",
            type="number",
            description=f"Command timeout in milliseconds (default {_DEFAULT_TIMEOUT_MS}).",
            required=False,
        ),
    ),
)


class ShellTool(BaseTool):
    """Executes commands against the project's virtual file system."""

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self._shell = VfsShell(vfs)

    @property
    def definition(self) -> ToolDef:
        return _DEFINITION

    def parse_arguments(self, data: dict[str, Any]) -> ShellArgs:
        cmd = data.get("cmd", data.get("command"))
        if isinstance(cmd, str):
            try:
                argv = shlex.split(cmd)
            except ValueError as exc:
                raise ToolArgumentError("shell", f"Could not parse command string: {exc}") from exc
        elif isinstance(cmd, list) and all(isinstance(part, (str, int, float)) for part in cmd):
            argv = [str(part) for part in cmd]
        else:
            raise ToolArgumentError(
                "shell", 'cmd must be an array of strings, e.g. ["ls", "/"]',
            )
        if not argv:
            raise ToolArgumentError("shell", "cmd must not be empty")

        raw_timeout = data.get("timeoutMs", data.get("timeout_ms"))
        timeout_ms: int | None = None
        if raw_timeout is not None:
            try:
                timeout_ms = int(raw_timeout)
            except (TypeError, ValueError, OverflowError) as exc:
                raise ToolArgumentError("shell", f"timeoutMs must be a number, got {raw_timeout!r}") from exc

        cwd = data.get("cwd")
        return ShellArgs(cmd=tuple(argv), cwd=cwd if isinstance(cwd, str) else None, timeout_ms=timeout_ms)

    async def execute(self, args: ShellArgs, ctx: ToolContext) -> ToolOutcome:
        structural = is_structure_command(args.cmd)
        if ctx.chat_mode and structural:
            return self._error(
                f"'{args.cmd[0]}' changes files and is not available in chat mode. "
                "Only read-only commands can be used here."
            )

        timeout_ms = max(1, min(args.timeout_ms or _DEFAULT_TIMEOUT_MS, _MAX_TIMEOUT_MS))
        try:
            result = await asyncio.wait_for(
                self._shell.execute(ctx.project_id, list(args.cmd)),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            return self._error(f"Command timed out after {timeout_ms} ms")

        if not result.success:
            logger.debug("shell %s failed: %s", args.cmd[0], result.stderr)
            return self._error(result.stderr or f"Command exited with code {result.exit_code}")

        output = result.stdout
        if len(output) > _MAX_OUTPUT_CHARS:
            output = output[:_MAX_OUTPUT_CHARS] + f"\n... (truncated, {len(result.stdout)} chars total)"
        return self._ok(output or "(no output)", mutated_files=structural)
