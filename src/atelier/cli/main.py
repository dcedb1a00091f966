"""CLI entry point for Atelier."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TextIO

import click
from rich.console import Console
from rich.table import Table

from atelier import __version__
from atelier.errors import AtelierError, ConfigError
from atelier.types.config import RunConfig
from atelier.types.providers import ProviderAdapter
from atelier.vfs.memory import MemoryFileSystem


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose (debug) logging")
@click.version_option(version=__version__, prog_name="atelier")
def cli(verbose: bool) -> None:
    """Atelier -- agent engine for editing web projects.

    \b
    Usage:
      atelier run ./site "Make the header sticky"
      atelier run ./site --chat "Where is the cart total computed?"
      atelier patch ./site/app.js ops.json
      atelier models
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("run")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("prompt", nargs=-1, required=True)
@click.option("--provider", "-p", default=None, help="LLM provider")
@click.option("--model", "-m", default=None, help="Model ID or alias")
@click.option("--api-key", default=None, help="Provider API key")
@click.option("--base-url", default=None, help="Provider base URL")
@click.option("--max-turns", type=int, default=None, help="Maximum model turns")
@click.option("--max-steps", type=int, default=None, help="Maximum tool calls")
@click.option("--chat", is_flag=True, help="Read-only question answering")
@click.option("--write/--no-write", default=False, help="Write changed files back to DIRECTORY")
@click.option("--rich/--no-rich", "use_rich", default=None, help="Rich terminal output (default: auto)")
def run_cmd(
    directory: Path,
    prompt: tuple[str, ...],
    provider: str | None,
    model: str | None,
    api_key: str | None,
    base_url: str | None,
    max_turns: int | None,
    max_steps: int | None,
    chat: bool,
    write: bool,
    use_rich: bool | None,
) -> None:
    """Run the agent on the project in DIRECTORY."""
    from atelier.core.config import build_run_config
    from atelier.providers.registry import create_provider
    from atelier.vfs import changed_paths, load_directory

    prompt_text = " ".join(prompt).strip()
    if not prompt_text:
        click.echo("Error: empty prompt", err=True)
        sys.exit(1)

    try:
        config = build_run_config(
            cwd=directory,
            project_id=directory.resolve().name or "default",
            provider=provider,
            model=model,
            api_key=api_key,
            base_url=base_url,
            max_turns=max_turns,
            max_steps=max_steps,
            chat_mode=chat or None,
        )
        adapter = create_provider(config.provider, config.model, config.api_key, config.base_url)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    vfs = load_directory(directory, config.project_id)
    before = vfs.files(config.project_id)

    rich_mode = use_rich if use_rich is not None else sys.stderr.isatty()
    try:
        success = asyncio.run(_run_agent(prompt_text, adapter, vfs, config, rich_mode))
    except AtelierError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    changes = changed_paths(before, vfs.files(config.project_id))
    if changes:
        click.echo("\nChanged files:", err=True)
        for path, kind in changes.items():
            click.echo(f"  {kind:<9} {path}", err=True)
        if write:
            _write_back(vfs, config.project_id, directory, changes)
        else:
            click.echo("(dry run; pass --write to save changes)", err=True)

    if not success:
        sys.exit(1)


async def _run_agent(
    prompt: str,
    provider: ProviderAdapter,
    vfs: MemoryFileSystem,
    config: RunConfig,
    use_rich: bool,
) -> bool:
    """Stream one run to the terminal; returns whether it succeeded."""
    from atelier.cli.output import RichPrinter, print_event
    from atelier.core.loop import AgentLoop
    from atelier.types.events import RunFinished
    from atelier.vfs import SnapshotCheckpointStore

    output_fn = RichPrinter().print_event if use_rich else print_event
    loop = AgentLoop(provider, vfs, config, checkpoints=SnapshotCheckpointStore(vfs))
    success = False
    async for event in loop.stream(prompt):
        output_fn(event)
        if isinstance(event, RunFinished):
            success = event.result.success
    return success


def _write_back(
    vfs: MemoryFileSystem, project_id: str, directory: Path, changes: dict[str, str],
) -> None:
    from atelier.vfs import export_directory

    written = export_directory(
        vfs, project_id, directory,
        only={path for path, kind in changes.items() if kind != "deleted"},
    )
    removed = 0
    for path, kind in changes.items():
        if kind == "deleted":
            (directory / path.lstrip("/")).unlink(missing_ok=True)
            removed += 1
    click.echo(f"Wrote {len(written)} file(s), removed {removed}.", err=True)


@cli.command("patch")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("operations", type=click.File("r"))
@click.option("--dry-run", is_flag=True, help="Show the diff without writing")
def patch_cmd(file: Path, operations: TextIO, dry_run: bool) -> None:
    """Apply the JSON OPERATIONS (a file, or - for stdin) to FILE.

    OPERATIONS holds either a list of operations or an object with an
    "operations" key, as accepted by the json_patch tool.
    """
    from atelier.cli.output import render_diff
    from atelier.patch import apply_operations
    from atelier.types.patch import parse_operations

    try:
        data = json.load(operations)
    except json.JSONDecodeError as e:
        click.echo(f"Error: invalid JSON: {e}", err=True)
        sys.exit(1)
    if isinstance(data, dict):
        data = data.get("operations", [data] if "type" in data else [])
    if not isinstance(data, list) or not data:
        click.echo("Error: no operations given", err=True)
        sys.exit(1)

    original = file.read_text(encoding="utf-8") if file.exists() else None
    result = apply_operations(original, parse_operations(data))

    console = Console()
    render_diff(original or "", result.content, file.name, console=console)
    for warning in result.warnings:
        click.echo(f"warning: {warning}", err=True)
    click.echo(f"Applied {result.applied_count}/{result.total_count} operations", err=True)

    if result.applied and not dry_run:
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(result.content, encoding="utf-8")
    if not result.applied:
        sys.exit(1)


@cli.command("models")
@click.option("--provider", "-p", default=None, help="Filter by provider")
def models_cmd(provider: str | None) -> None:
    """List the model catalogue."""
    from atelier.providers.registry import MODELS, PROVIDERS

    table = Table(title="Models")
    table.add_column("Model ID", style="bold")
    table.add_column("Provider")
    table.add_column("Context", justify="right")
    table.add_column("$/M in", justify="right")
    table.add_column("$/M out", justify="right")
    table.add_column("Aliases")

    count = 0
    for model_id, info in sorted(MODELS.items()):
        if provider and info.provider != provider:
            continue
        local = PROVIDERS[info.provider].is_local
        table.add_row(
            model_id,
            info.provider,
            f"{info.context_window // 1000}K",
            "local" if local else f"${info.input_cost_per_mtok:.2f}",
            "local" if local else f"${info.output_cost_per_mtok:.2f}",
            ", ".join(info.aliases),
        )
        count += 1

    Console().print(table)
    click.echo(f"{count} models")


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
