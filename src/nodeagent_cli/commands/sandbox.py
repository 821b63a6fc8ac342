"""Workspace sandbox commands.

This module provides CLI commands for inspecting and operating on a
workspace sandbox on this node:
- write / read / ls / rm: validated file operations
- exec: run a command inside the sandbox
- size / meta: accounting and metadata
- sync-out / sync-in: whole-tree sync through the content store
- destroy: remove the workspace sandbox
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from nodeagent.models.sandbox import SyncResult
from nodeagent.services.sandbox_store import SandboxStore
from nodeagent_cli.container import get_sandbox_store

app = typer.Typer(
    name="sandbox",
    help="Operate on workspace sandboxes",
    no_args_is_help=True,
)

console = Console()

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        "-j",
        help="Output in JSON format",
    ),
]


def _fail(error: str | None) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.command()
def write(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    path: Annotated[str, typer.Argument(help="Path relative to the sandbox root")],
    content: Annotated[
        str | None,
        typer.Option("--content", "-c", help="File content (read from stdin if omitted)"),
    ] = None,
) -> None:
    """Write a file into a sandbox.

    Examples:
        nodeagent sandbox write ws-1 code/hello.py -c "print('hello')"
        cat notes.md | nodeagent sandbox write ws-1 data/notes.md
    """
    if content is None:
        content = sys.stdin.read()

    result = asyncio.run(get_sandbox_store().write_file(workspace_id, path, content))
    if not result.success:
        _fail(result.error)
    console.print(f"[green]✓[/green] Written: {result.path}")


@app.command()
def read(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    path: Annotated[str, typer.Argument(help="Path relative to the sandbox root")],
) -> None:
    """Print a sandbox file."""
    result = asyncio.run(get_sandbox_store().read_file(workspace_id, path))
    if not result.success:
        _fail(result.error)
    # Use print() to keep the content byte-exact
    print(result.content, end="")


@app.command("ls")
def list_files(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    path: Annotated[str, typer.Argument(help="Directory relative to the sandbox root")] = ".",
    json_output: JsonOption = False,
) -> None:
    """List a sandbox directory."""
    result = asyncio.run(get_sandbox_store().list_files(workspace_id, path))
    if not result.success:
        _fail(result.error)

    files = result.files or []
    if json_output:
        print(json.dumps([f.model_dump(mode="json") for f in files], indent=2))
        return

    if not files:
        console.print("[yellow]Directory is empty[/yellow]")
        return

    table = Table(title=f"{workspace_id}:{path}")
    table.add_column("Type", style="yellow")
    table.add_column("Name", style="cyan")
    table.add_column("Size", style="green", justify="right")
    table.add_column("Modified", style="dim")

    for f in files:
        table.add_row(
            "DIR" if f.is_directory else "FILE",
            f.name,
            str(f.size),
            f.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@app.command("rm")
def remove(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    path: Annotated[str, typer.Argument(help="Path relative to the sandbox root")],
) -> None:
    """Delete a sandbox file or directory."""
    result = asyncio.run(get_sandbox_store().delete_file(workspace_id, path))
    if not result.success:
        _fail(result.error)
    console.print(f"[green]✓[/green] Deleted: {path}")


@app.command("exec")
def execute(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    command: Annotated[str, typer.Argument(help="Shell command to run in the sandbox root")],
    timeout_ms: Annotated[
        int | None,
        typer.Option("--timeout-ms", "-t", help="Wall-clock timeout in milliseconds"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Run a command inside a sandbox.

    Examples:
        nodeagent sandbox exec ws-1 "ls -la"
        nodeagent sandbox exec ws-1 "python code/hello.py" --timeout-ms 5000 --json
    """
    result = asyncio.run(get_sandbox_store().execute(workspace_id, command, timeout_ms))

    if json_output:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        if result.stdout:
            console.print(result.stdout, end="", markup=False, highlight=False)
        if result.stderr:
            console.print(f"[dim]{result.stderr}[/dim]", end="")
        if result.error:
            console.print(f"[red]Error:[/red] {result.error}")
        console.print(f"[bold]Exit code:[/bold] {result.exit_code}")

    if not result.success:
        raise typer.Exit(1)


@app.command()
def size(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
) -> None:
    """Print the total sandbox size in bytes."""
    total = asyncio.run(get_sandbox_store().get_size(workspace_id))
    console.print(f"{total} bytes ({total / (1024 * 1024):.2f} MB)")


@app.command()
def meta(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
) -> None:
    """Print the sandbox metadata record."""
    record = asyncio.run(get_sandbox_store().get_meta(workspace_id))
    if record is None:
        _fail(f"No sandbox for workspace {workspace_id}")
    print(json.dumps(record.model_dump(mode="json", by_alias=True), indent=2))


async def _closing(store: SandboxStore, operation: Awaitable[SyncResult]) -> SyncResult:
    """Await a sync operation and close the content store client afterwards."""
    try:
        return await operation
    finally:
        await store.close()


@app.command("sync-out")
def sync_out(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
) -> None:
    """Store the sandbox tree in the content store and print the manifest id."""
    store = get_sandbox_store()
    result = asyncio.run(_closing(store, store.sync_out(workspace_id)))
    if not result.success:
        _fail(result.error)
    console.print(f"[green]✓[/green] Manifest: {result.content_id}")


@app.command("sync-in")
def sync_in(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    manifest_id: Annotated[str, typer.Argument(help="Content id of a sandbox manifest")],
) -> None:
    """Replay a stored manifest into the sandbox."""
    store = get_sandbox_store()
    result = asyncio.run(_closing(store, store.sync_in(workspace_id, manifest_id)))
    if not result.success:
        _fail(result.error)
    console.print(f"[green]✓[/green] Restored {workspace_id} from {manifest_id}")


@app.command()
def destroy(
    workspace_id: Annotated[str, typer.Argument(help="Workspace identifier")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Delete a workspace sandbox and its metadata."""
    if not force:
        typer.confirm(f"Delete sandbox for workspace {workspace_id}?", abort=True)

    result = asyncio.run(get_sandbox_store().delete_sandbox(workspace_id))
    if not result.success:
        _fail(result.error)
    console.print(f"[green]✓[/green] Sandbox destroyed: {workspace_id}")
