"""Restricted command interpreter over the virtual file system.

Supports a small POSIX-like subset (``ls``, ``cat``, ``nl``, ``head``,
``tail``, ``grep``, ``find``, ``tree``, ``pwd``, ``mkdir``, ``rm``,
``rmdir``, ``mv``, ``cp``, ``echo``, ``sed``) and ``|`` pipelines between
them. File content is never written here: ``echo`` only prints, ``sed``
never persists, and redirection is rejected. Structure commands
(``mkdir``, ``rm``, ``rmdir``, ``mv``, ``cp``) do change the tree.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from atelier.errors import VfsError
from atelier.types.vfs import VirtualFile, VirtualFileSystem
from atelier.vfs.paths import basename, is_within, normalize_path, parent_of

logger = logging.getLogger(__name__)

STRUCTURE_COMMANDS = frozenset({"mkdir", "rm", "rmdir", "mv", "cp"})
READ_ONLY_COMMANDS = frozenset(
    {"ls", "cat", "nl", "head", "tail", "grep", "rg", "find", "tree", "pwd", "echo", "sed"}
)

_REDIRECTIONS = frozenset({">", ">>", "<", "2>", "&>", "2>&1"})


@dataclass(frozen=True, slots=True)
class ShellResult:
    """Outcome of one shell invocation."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class ShellError(Exception):
    """A command failed; the message becomes stderr."""


def is_structure_command(argv: list[str] | tuple[str, ...]) -> bool:
    """True when any stage of the pipeline changes the file tree."""
    return any(stage and stage[0] in STRUCTURE_COMMANDS for stage in _split_pipeline(list(argv)))


def _split_pipeline(argv: list[str]) -> list[list[str]]:
    stages: list[list[str]] = [[]]
    for token in argv:
        if token == "|":
            stages.append([])
        else:
            stages[-1].append(token)
    return stages


def _split_flags(args: list[str], known: str) -> tuple[set[str], list[str]]:
    """Split short flags (combined like ``-rfv``) from positional arguments."""
    flags: set[str] = set()
    positional: list[str] = []
    for arg in args:
        if arg.startswith("-") and len(arg) > 1 and not positional and arg != "--":
            for letter in arg[1:]:
                if letter not in known:
                    raise ShellError(f"invalid option -- '{letter}'")
                flags.add(letter)
        else:
            positional.append(arg)
    return flags, positional


class VfsShell:
    """Executes argv vectors against one project of a virtual file system.

    Usage::

        shell = VfsShell(vfs)
        result = await shell.execute("demo", ["ls", "/"])
    """

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self._vfs = vfs
        self._commands: dict[str, Callable[[str, list[str], str | None], Awaitable[str]]] = {
            "ls": self._ls,
            "cat": self._cat,
            "nl": self._nl,
            "head": self._head,
            "tail": self._tail,
            "grep": self._grep,
            "rg": self._grep,
            "find": self._find,
            "tree": self._tree,
            "pwd": self._pwd,
            "echo": self._echo,
            "sed": self._sed,
            "mkdir": self._mkdir,
            "rm": self._rm,
            "rmdir": self._rmdir,
            "mv": self._mv,
            "cp": self._cp,
        }

    @property
    def commands(self) -> list[str]:
        return sorted(self._commands)

    async def execute(self, project_id: str, argv: list[str] | tuple[str, ...]) -> ShellResult:
        """Run *argv* (optionally a ``|`` pipeline) and capture its output."""
        argv = list(argv)
        if not argv:
            return ShellResult(stderr="No command given", exit_code=2)
        redirect = next((t for t in argv if t in _REDIRECTIONS), None)
        if redirect is not None:
            return ShellResult(
                stderr=(
                    f"Redirection ({redirect}) is not supported. "
                    "Use the json_patch tool to change file content."
                ),
                exit_code=2,
            )

        stdin: str | None = None
        for stage in _split_pipeline(argv):
            if not stage:
                return ShellResult(stderr="Syntax error: empty pipeline stage", exit_code=2)
            program, args = stage[0], stage[1:]
            handler = self._commands.get(program)
            if handler is None:
                return ShellResult(
                    stderr=(
                        f"{program}: command not found. "
                        f"Available commands: {', '.join(self.commands)}"
                    ),
                    exit_code=127,
                )
            try:
                stdin = await handler(project_id, args, stdin)
            except ShellError as exc:
                return ShellResult(stderr=f"{program}: {exc}", exit_code=1)
            except VfsError as exc:
                return ShellResult(stderr=f"{program}: {exc}", exit_code=1)
            except re.error as exc:
                return ShellResult(stderr=f"{program}: invalid pattern: {exc}", exit_code=2)

        logger.debug("shell %s -> %d chars", argv[0], len(stdin or ""))
        return ShellResult(stdout=stdin or "")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _entries(self, project_id: str) -> list[VirtualFile]:
        return await self._vfs.list_directory(project_id, "/")

    async def _kind(self, project_id: str, path: str) -> str | None:
        """Return "file", "directory" or None for a missing path."""
        if path == "/":
            return "directory"
        read = await self._vfs.read_file(project_id, path)
        if read.exists:
            return "file"
        entries = await self._entries(project_id)
        if any(e.path == path and e.is_directory for e in entries):
            return "directory"
        return None

    async def _read(self, project_id: str, raw_path: str) -> str:
        path = normalize_path(raw_path)
        read = await self._vfs.read_file(project_id, path)
        if read.exists and read.content is not None:
            return read.content
        if await self._kind(project_id, path) == "directory":
            raise ShellError(f"{raw_path}: Is a directory")
        raise ShellError(f"{raw_path}: No such file or directory")

    async def _inputs(
        self, project_id: str, paths: list[str], stdin: str | None,
    ) -> list[tuple[str, str]]:
        if paths:
            return [(p, await self._read(project_id, p)) for p in paths]
        if stdin is not None:
            return [("(standard input)", stdin)]
        raise ShellError("missing file operand")

    @staticmethod
    def _parse_count(flags_args: list[str], default: int = 10) -> tuple[int, list[str]]:
        count = default
        rest: list[str] = []
        i = 0
        while i < len(flags_args):
            arg = flags_args[i]
            if arg == "-n" and i + 1 < len(flags_args):
                count = _to_int(flags_args[i + 1])
                i += 2
                continue
            if re.fullmatch(r"-n?\d+", arg):
                count = _to_int(arg.lstrip("-n"))
            else:
                rest.append(arg)
            i += 1
        return count, rest

    # ------------------------------------------------------------------
    # Read-only commands
    # ------------------------------------------------------------------

    async def _ls(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags, paths = _split_flags(args, "laR1h")
        entries = await self._entries(project_id)
        blocks: list[str] = []
        for raw in paths or ["/"]:
            path = normalize_path(raw)
            kind = await self._kind(project_id, path)
            if kind is None:
                raise ShellError(f"cannot access '{raw}': No such file or directory")
            if kind == "file":
                blocks.append(raw)
                continue
            if "R" in flags:
                children = [e for e in entries if is_within(e.path, path)]
            else:
                children = [e for e in entries if parent_of(e.path) == path and e.path != path]
            lines = []
            for entry in children:
                name = entry.path if "R" in flags else basename(entry.path)
                if "l" in flags:
                    marker = "d" if entry.is_directory else "-"
                    lines.append(f"{marker} {entry.size:>8} {name}{'/' if entry.is_directory else ''}")
                else:
                    lines.append(name + ("/" if entry.is_directory else ""))
            block = "\n".join(lines)
            if len(paths) > 1:
                block = f"{raw}:\n{block}"
            blocks.append(block)
        return "\n".join(blocks)

    async def _cat(self, project_id: str, args: list[str], stdin: str | None) -> str:
        _, paths = _split_flags(args, "")
        return "".join(content for _, content in await self._inputs(project_id, paths, stdin))

    async def _nl(self, project_id: str, args: list[str], stdin: str | None) -> str:
        number_all = False
        paths: list[str] = []
        for arg in args:
            if arg in ("-ba", "-b", "a"):
                number_all = True
            elif arg.startswith("-"):
                continue
            else:
                paths.append(arg)
        text = "".join(content for _, content in await self._inputs(project_id, paths, stdin))
        out: list[str] = []
        number = 0
        for line in text.splitlines():
            if number_all or line.strip():
                number += 1
                out.append(f"{number:>6}\t{line}")
            else:
                out.append(f"{'':>6}\t{line}")
        return "\n".join(out)

    async def _head(self, project_id: str, args: list[str], stdin: str | None) -> str:
        count, paths = self._parse_count(args)
        text = "".join(content for _, content in await self._inputs(project_id, paths, stdin))
        return "\n".join(text.splitlines()[:count])

    async def _tail(self, project_id: str, args: list[str], stdin: str | None) -> str:
        count, paths = self._parse_count(args)
        text = "".join(content for _, content in await self._inputs(project_id, paths, stdin))
        lines = text.splitlines()
        return "\n".join(lines[-count:] if count else [])

    async def _grep(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags: set[str] = set()
        context = 0
        positional: list[str] = []
        i = 0
        while i < len(args):
            arg = args[i]
            if arg in ("-C", "-A", "-B") and i + 1 < len(args):
                context = _to_int(args[i + 1])
                i += 2
                continue
            if arg.startswith("-") and len(arg) > 1 and not positional:
                flags.update(arg[1:])
            else:
                positional.append(arg)
            i += 1
        if not positional:
            raise ShellError("usage: grep [-n] [-i] [-r] [-l] PATTERN [PATH...]")
        pattern = re.compile(positional[0], re.IGNORECASE if "i" in flags else 0)
        targets = positional[1:]

        sources: list[tuple[str, str]] = []
        if not targets and stdin is not None:
            sources.append(("(standard input)", stdin))
        else:
            entries = await self._entries(project_id)
            for raw in targets or ["/"]:
                path = normalize_path(raw)
                kind = await self._kind(project_id, path)
                if kind is None:
                    raise ShellError(f"{raw}: No such file or directory")
                if kind == "file":
                    sources.append((path, await self._read(project_id, path)))
                    continue
                for entry in entries:
                    if not entry.is_directory and is_within(entry.path, path):
                        sources.append((entry.path, await self._read(project_id, entry.path)))

        show_names = len(sources) > 1 or any(
            await self._kind(project_id, normalize_path(t)) == "directory" for t in targets
        ) or (not targets and stdin is None)
        out: list[str] = []
        for name, content in sources:
            lines = content.splitlines()
            hits = [n for n, line in enumerate(lines) if pattern.search(line)]
            if not hits:
                continue
            if "l" in flags:
                out.append(name)
                continue
            shown: set[int] = set()
            for hit in hits:
                for n in range(max(0, hit - context), min(len(lines), hit + context + 1)):
                    if n in shown:
                        continue
                    shown.add(n)
                    prefix = f"{name}:" if show_names else ""
                    if "n" in flags or context:
                        prefix += f"{n + 1}:"
                    out.append(f"{prefix}{lines[n]}")
        if not out:
            raise ShellError("no matches")
        return "\n".join(out)

    async def _find(self, project_id: str, args: list[str], stdin: str | None) -> str:
        root = "/"
        name_pattern: str | None = None
        kind_filter: str | None = None
        i = 0
        while i < len(args):
            arg = args[i]
            if arg in ("-name", "-iname") and i + 1 < len(args):
                name_pattern = args[i + 1]
                i += 2
            elif arg == "-type" and i + 1 < len(args):
                kind_filter = args[i + 1]
                i += 2
            elif not arg.startswith("-"):
                root = arg
                i += 1
            else:
                raise ShellError(f"unknown predicate '{arg}'")
        path = normalize_path(root)
        if await self._kind(project_id, path) is None:
            raise ShellError(f"'{root}': No such file or directory")
        results: list[str] = []
        if kind_filter in (None, "d") and name_pattern is None:
            results.append(path)
        for entry in await self._entries(project_id):
            if not is_within(entry.path, path):
                continue
            if kind_filter == "f" and entry.is_directory:
                continue
            if kind_filter == "d" and not entry.is_directory:
                continue
            if name_pattern and not fnmatch.fnmatch(basename(entry.path), name_pattern):
                continue
            results.append(entry.path)
        return "\n".join(results)

    async def _tree(self, project_id: str, args: list[str], stdin: str | None) -> str:
        depth_limit: int | None = None
        root = "/"
        i = 0
        while i < len(args):
            if args[i] == "-L" and i + 1 < len(args):
                depth_limit = _to_int(args[i + 1])
                i += 2
                continue
            if not args[i].startswith("-"):
                root = args[i]
            i += 1
        path = normalize_path(root)
        if await self._kind(project_id, path) != "directory":
            raise ShellError(f"{root} [error opening dir]")
        return render_tree(await self._entries(project_id), path, depth_limit)

    async def _pwd(self, project_id: str, args: list[str], stdin: str | None) -> str:
        return "/"

    async def _echo(self, project_id: str, args: list[str], stdin: str | None) -> str:
        if args and args[0] == "-n":
            return " ".join(args[1:])
        return " ".join(args) + "\n"

    async def _sed(self, project_id: str, args: list[str], stdin: str | None) -> str:
        quiet = False
        script: str | None = None
        paths: list[str] = []
        for arg in args:
            if arg == "-n":
                quiet = True
            elif arg.startswith("-i"):
                raise ShellError("in-place editing is disabled; use the json_patch tool")
            elif arg == "-e":
                continue
            elif script is None:
                script = arg
            else:
                paths.append(arg)
        if script is None:
            raise ShellError("missing script")
        text = "".join(content for _, content in await self._inputs(project_id, paths, stdin))

        range_match = re.fullmatch(r"(\d+)(?:,(\d+|\$))?p", script)
        if range_match:
            if not quiet:
                raise ShellError("line ranges require -n (e.g. sed -n '10,20p' FILE)")
            lines = text.splitlines()
            start = _to_int(range_match.group(1))
            end_raw = range_match.group(2)
            end = len(lines) if end_raw == "$" else _to_int(end_raw or range_match.group(1))
            return "\n".join(lines[max(start - 1, 0): end])

        if script.startswith("s") and len(script) > 1:
            delim = script[1]
            parts = _split_unescaped(script[2:], delim)
            if len(parts) != 3:
                raise ShellError(f"unterminated `s' command: {script}")
            pattern, repl, mods = parts
            count = 0 if "g" in mods else 1
            regex = re.compile(pattern, re.IGNORECASE if "I" in mods or "i" in mods else 0)
            repl = re.sub(r"\\(\d)", r"\\g<\1>", repl).replace("&", r"\g<0>")
            return "\n".join(regex.sub(repl, line, count=count) for line in text.splitlines())

        raise ShellError(f"unsupported script: {script} (supported: s/pat/repl/[g], -n 'A,Bp')")

    # ------------------------------------------------------------------
    # Structure commands
    # ------------------------------------------------------------------

    async def _mkdir(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags, paths = _split_flags(args, "pv")
        if not paths:
            raise ShellError("missing operand")
        out: list[str] = []
        for raw in paths:
            path = normalize_path(raw)
            kind = await self._kind(project_id, path)
            if kind is not None:
                if "p" in flags and kind == "directory":
                    continue
                raise ShellError(f"cannot create directory '{raw}': File exists")
            if "p" not in flags and await self._kind(project_id, parent_of(path)) != "directory":
                raise ShellError(f"cannot create directory '{raw}': No such file or directory")
            await self._vfs.create_directory(project_id, path)
            if "v" in flags:
                out.append(f"mkdir: created directory '{path}'")
        return "\n".join(out)

    async def _rm(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags, paths = _split_flags(args, "rRfv")
        recursive = bool(flags & {"r", "R"})
        if not paths:
            raise ShellError("missing operand")
        out: list[str] = []
        for raw in paths:
            path = normalize_path(raw)
            if path == "/":
                raise ShellError("refusing to remove '/'")
            kind = await self._kind(project_id, path)
            if kind is None:
                if "f" in flags:
                    continue
                raise ShellError(f"cannot remove '{raw}': No such file or directory")
            if kind == "directory":
                if not recursive:
                    raise ShellError(f"cannot remove '{raw}': Is a directory")
                await self._vfs.delete_directory(project_id, path)
                if "v" in flags:
                    out.append(f"removed directory '{path}'")
            else:
                await self._vfs.delete_file(project_id, path)
                if "v" in flags:
                    out.append(f"removed '{path}'")
        return "\n".join(out)

    async def _rmdir(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags, paths = _split_flags(args, "vp")
        if not paths:
            raise ShellError("missing operand")
        entries = await self._entries(project_id)
        out: list[str] = []
        for raw in paths:
            path = normalize_path(raw)
            kind = await self._kind(project_id, path)
            if kind is None:
                raise ShellError(f"failed to remove '{raw}': No such file or directory")
            if kind != "directory":
                raise ShellError(f"failed to remove '{raw}': Not a directory")
            if any(is_within(e.path, path) for e in entries):
                raise ShellError(f"failed to remove '{raw}': Directory not empty")
            await self._vfs.delete_directory(project_id, path)
            if "v" in flags:
                out.append(f"rmdir: removing directory, '{path}'")
        return "\n".join(out)

    async def _mv(self, project_id: str, args: list[str], stdin: str | None) -> str:
        _, paths = _split_flags(args, "fv")
        if len(paths) != 2:
            raise ShellError("usage: mv SOURCE DEST")
        await self._copy(project_id, paths[0], paths[1], recursive=True, move=True)
        return ""

    async def _cp(self, project_id: str, args: list[str], stdin: str | None) -> str:
        flags, paths = _split_flags(args, "rRfv")
        if len(paths) != 2:
            raise ShellError("usage: cp [-r] SOURCE DEST")
        await self._copy(
            project_id, paths[0], paths[1], recursive=bool(flags & {"r", "R"}), move=False,
        )
        return ""

    async def _copy(
        self, project_id: str, raw_src: str, raw_dst: str, *, recursive: bool, move: bool,
    ) -> None:
        src = normalize_path(raw_src)
        dst = normalize_path(raw_dst)
        src_kind = await self._kind(project_id, src)
        if src_kind is None:
            raise ShellError(f"cannot stat '{raw_src}': No such file or directory")
        if await self._kind(project_id, dst) == "directory":
            dst = normalize_path(basename(src), cwd=dst)
        if src == dst or is_within(dst, src):
            raise ShellError(f"cannot move or copy '{raw_src}' into itself")

        if src_kind == "file":
            await self._write(project_id, dst, await self._read(project_id, src))
            if move:
                await self._vfs.delete_file(project_id, src)
            return

        if not recursive:
            raise ShellError(f"-r not specified; omitting directory '{raw_src}'")
        await self._vfs.create_directory(project_id, dst)
        for entry in await self._entries(project_id):
            if not is_within(entry.path, src):
                continue
            target = dst + entry.path[len(src):]
            if entry.is_directory:
                await self._vfs.create_directory(project_id, target)
            else:
                await self._write(project_id, target, await self._read(project_id, entry.path))
        if move:
            await self._vfs.delete_directory(project_id, src)

    async def _write(self, project_id: str, path: str, content: str) -> None:
        if (await self._vfs.read_file(project_id, path)).exists:
            await self._vfs.update_file(project_id, path, content)
        else:
            await self._vfs.create_file(project_id, path, content)


def render_tree(entries: list[VirtualFile], root: str = "/", depth_limit: int | None = None) -> str:
    """Render *entries* below *root* as an indented tree with file sizes."""
    children: dict[str, list[VirtualFile]] = {}
    for entry in entries:
        if is_within(entry.path, root):
            children.setdefault(parent_of(entry.path), []).append(entry)

    lines: list[str] = [root]

    def walk(directory: str, prefix: str, depth: int) -> None:
        if depth_limit is not None and depth > depth_limit:
            return
        items = sorted(
            children.get(directory, []),
            key=lambda e: (not e.is_directory, basename(e.path)),
        )
        for i, entry in enumerate(items):
            last = i == len(items) - 1
            connector = "└── " if last else "├── "
            if entry.is_directory:
                lines.append(f"{prefix}{connector}{basename(entry.path)}/")
                walk(entry.path, prefix + ("    " if last else "│   "), depth + 1)
            else:
                lines.append(f"{prefix}{connector}{basename(entry.path)} ({format_size(entry.size)})")

    walk(root, "", 1)
    return "\n".join(lines)


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def _split_unescaped(text: str, delim: str) -> list[str]:
    parts: list[str] = []
    current = ""
    escaped = False
    for char in text:
        if escaped:
            current += char if char == delim else "\\" + char
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == delim:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ShellError(f"invalid number: '{value}'") from exc
