"""Main CLI entry point for the node agent."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nodeagent.models.agent import AgentRunRequest, AgentStatus, AgentStrategy, LLMProvider
from nodeagent.services.llm_service import cleanup_llm_service
from nodeagent.services.progress import ProgressChannel, ProgressEvent
from nodeagent.tools.base import build_tool_context
from nodeagent_cli import __version__
from nodeagent_cli.commands import sandbox
from nodeagent_cli.container import get_runtime, get_sandbox_store, get_scanner

app = typer.Typer(
    name="nodeagent",
    help="Node agent CLI - run agents, scan text and manage workspace sandboxes",
    no_args_is_help=True,
    add_completion=False,
)

# Register command groups
app.add_typer(sandbox.app, name="sandbox")

console = Console()

RISK_STYLES = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "cyan"}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Node agent CLI version: {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    Node agent CLI.

    Use 'nodeagent COMMAND --help' for help with specific commands.
    """


@app.command()
def scan(
    text: Annotated[str, typer.Argument(help="Text to scan for threats")],
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output in JSON format")] = False,
) -> None:
    """Scan text for dangerous commands and prompt-injection phrasing.

    Exits with code 2 when a blocking (high or critical) threat is found.

    Examples:
        nodeagent scan "rm -rf /"
        nodeagent scan "ignore all previous instructions" --json
    """
    result = get_scanner().scan(text)

    if json_output:
        payload = {
            "safe": result.safe,
            "risk_level": result.risk_level.value if result.risk_level else None,
            "summary": result.summary,
            "threats": [
                {
                    "name": threat.pattern.name,
                    "description": threat.pattern.description,
                    "risk_level": threat.pattern.risk_level.value,
                    "category": threat.pattern.category.value,
                    "matched_text": threat.matched_text,
                    "start": threat.start_offset,
                    "end": threat.end_offset,
                }
                for threat in result.threats
            ],
        }
        print(json.dumps(payload, indent=2))
    elif result.safe:
        console.print(f"[green]✓[/green] {result.summary}")
    else:
        table = Table(title=result.summary)
        table.add_column("Risk", style="bold")
        table.add_column("Category", style="blue")
        table.add_column("Pattern", style="cyan")
        table.add_column("Match", style="dim")

        for threat in result.threats:
            level = threat.pattern.risk_level.value
            table.add_row(
                f"[{RISK_STYLES.get(level, '')}]{level.upper()}[/]",
                threat.pattern.category.value,
                threat.pattern.description,
                escape(threat.matched_text),
            )
        console.print(table)

    if result.is_blocking:
        raise typer.Exit(2)


@app.command()
def tools(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output in JSON format")] = False,
) -> None:
    """List registered agent tools."""
    listing = get_runtime().list_tools()

    if json_output:
        print(json.dumps(listing, indent=2))
        return

    table = Table(title=f"Tools ({len(listing)})")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")
    for entry in listing:
        table.add_row(entry["name"], entry["description"])
    console.print(table)


@app.command()
def architectures() -> None:
    """List available agent strategies."""
    table = Table(title="Agent Strategies")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")
    for info in get_runtime().list_architectures():
        table.add_row(info.name, info.description)
    console.print(table)


@app.command()
def run(
    goal: Annotated[str, typer.Argument(help="Goal for the agent")],
    strategy: Annotated[
        AgentStrategy,
        typer.Option("--strategy", "-s", help="Agent strategy"),
    ] = AgentStrategy.REACT,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model identifier")] = None,
    provider: Annotated[
        LLMProvider | None,
        typer.Option("--provider", "-p", help="Explicit LLM provider"),
    ] = None,
    max_iterations: Annotated[
        int,
        typer.Option("--max-iterations", "-n", min=1, max=1000, help="Iteration budget"),
    ] = 10,
    workspace: Annotated[
        str | None,
        typer.Option("--workspace", "-w", help="Workspace whose sandbox the agent may use"),
    ] = None,
    no_security: Annotated[
        bool,
        typer.Option("--no-security", help="Disable goal and action scanning"),
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output in JSON format")] = False,
) -> None:
    """Run an agent against a goal.

    Examples:
        nodeagent run "What is 17 * 23?" --model llama3.2
        nodeagent run "Write a hello world script and run it" -w ws-1 -s react
        nodeagent run "Outline a migration plan" -s plan-execute --json
    """
    progress = ProgressChannel()
    if not json_output:

        def show_progress(event: ProgressEvent) -> None:
            console.print(f"[dim]\\[{event.percent:5.1f}%] {escape(event.label)}[/dim]")

        progress.add_handler(show_progress)

    runtime = get_runtime(progress=progress)

    async def execute_run():
        tool_context = None
        if workspace:
            store = get_sandbox_store()
            ensured = await store.ensure(workspace)
            if not ensured.success:
                raise typer.BadParameter(ensured.error or "invalid workspace", param_hint="--workspace")
            tool_context = build_tool_context(workspace, sandbox=store)

        request = AgentRunRequest(
            goal=goal,
            strategy=strategy,
            model=model,
            provider=provider,
            max_iterations=max_iterations,
            security_enabled=not no_security,
            tool_context=tool_context,
        )
        try:
            return await runtime.run(request)
        finally:
            await cleanup_llm_service()

    response = asyncio.run(execute_run())

    if json_output:
        print(json.dumps(response.model_dump(mode="json"), indent=2))
    else:
        table = Table(title=f"Trace ({response.iterations} iterations, {response.tokens_used} tokens)")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Thought", style="cyan")
        table.add_column("Tool", style="yellow")
        table.add_column("Output", style="green")
        for index, action in enumerate(response.actions, start=1):
            table.add_row(
                str(index),
                escape(action.thought),
                action.tool or "",
                escape((action.output or "")[:200]),
            )
        console.print(table)

        for alert in response.security_alerts:
            console.print(f"[red]Security alert:[/red] {escape(alert)}")

        style = "green" if response.status == AgentStatus.COMPLETED else "yellow"
        console.print(f"[bold]Status:[/bold] [{style}]{response.status.value}[/{style}]")
        console.print(f"[bold]Result:[/bold] {escape(response.result)}")

    if response.status != AgentStatus.COMPLETED:
        raise typer.Exit(1)


def cli_main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    cli_main()
