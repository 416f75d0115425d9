import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from animgraph._console import ConsoleLog, LogEntry
from animgraph._enums import LogLevel
from animgraph._eval_engine import evaluate_frame
from animgraph._factory import initial_project
from animgraph._graph import analyze_project
from animgraph._io import ProjectFormatError, dump_schema, load_project, save_project
from animgraph._models import ProjectState
from animgraph._session import Session

from .config import AnimgraphConfig, ConfigError, get_config

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()

_LEVEL_STYLES = {
    LogLevel.INFO: "white",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "red",
}


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Animgraph CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _load_config() -> AnimgraphConfig:
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _resolve_project_path(path: Path | None, config: AnimgraphConfig) -> Path:
    if path is not None:
        return path
    if config.project is not None:
        return config.project
    err_console.print("[red]Error: No project file given and no [tool.animgraph].project configured[/red]")
    raise typer.Exit(code=1)


def _load_project(path: Path) -> ProjectState:
    err_console.print(f"[cyan]Loading project from:[/cyan] {path}")
    try:
        project = load_project(path)
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: Project file not found: {path}[/red]")
        raise typer.Exit(code=1) from e
    except ProjectFormatError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    err_console.print(f"[cyan]Nodes:[/cyan] [bold]{len(project.nodes)}[/bold]")
    return project


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def _print_console_entries(entries: list[LogEntry]) -> None:
    for entry in entries:
        style = _LEVEL_STYLES[entry.level]
        source = f"[dim]{escape(str(entry.source))}[/dim] " if entry.source is not None else ""
        repeat = f" [dim](x{entry.count})[/dim]" if entry.count > 1 else ""
        err_console.print(f"{source}[{style}]{escape(entry.message)}[/{style}]{repeat}")


@app.command()
def init(
    *,
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Path to output project JSON file"),
    ],
) -> None:
    """Write the demo project to a JSON file."""
    err_console.print()
    err_console.print(f"[cyan]Writing demo project to:[/cyan] {output}")
    save_project(initial_project(), output)

    err_console.print()
    err_console.print("[green]✓ Project created[/green]")
    err_console.print()


@app.command(name="eval")
def eval_(
    path: Annotated[
        Path | None,
        typer.Argument(help="Path to project JSON file (defaults to [tool.animgraph].project)"),
    ] = None,
    *,
    time: Annotated[
        float | None,
        typer.Option("--time", "-t", help="Frame time in seconds (defaults to the project's current time)"),
    ] = None,
    node: Annotated[
        str | None,
        typer.Option("--node", help="Only show the properties of this node"),
    ] = None,
) -> None:
    """Evaluate every property of a project at one point in time."""
    config = _load_config()
    err_console.print()
    project = _load_project(_resolve_project_path(path, config))

    if node is not None and node not in project.nodes:
        err_console.print(f"[red]Error: Node not found: {escape(node)}[/red]")
        raise typer.Exit(code=1)

    console = ConsoleLog(max_entries=config.max_log_entries)
    err_console.print("[cyan]Evaluating project...[/cyan]")
    frame = evaluate_frame(project, time, console=console)
    err_console.print()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Node", style="bold")
    table.add_column("Property", style="dim")
    table.add_column("Value", style="yellow")
    for ref, value in frame.values.items():
        if node is not None and ref.node_id != node:
            continue
        table.add_row(escape(ref.node_id), escape(ref.prop_key), escape(_format_value(value)))

    out_console.print(
        Panel(table, title=f"[bold]t = {frame.time:g}s[/bold]", border_style="cyan"),
    )

    if console.entries:
        err_console.print()
        _print_console_entries(console.entries)
    err_console.print()


@app.command()
def check(
    path: Annotated[
        Path | None,
        typer.Argument(help="Path to project JSON file (defaults to [tool.animgraph].project)"),
    ] = None,
) -> None:
    """Check a project for reference cycles, broken refs, unused variables and syntax errors."""
    config = _load_config()
    err_console.print()
    project = _load_project(_resolve_project_path(path, config))
    err_console.print()

    err_console.print("[cyan]Analyzing references...[/cyan]")
    analysis = analyze_project(project)
    err_console.print()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check", style="bold")
    table.add_column("Property")
    table.add_column("Detail")

    for cycle in analysis.cycles:
        members = ", ".join(str(ref) for ref in sorted(cycle))
        table.add_row("[red]cycle[/red]", escape(members), "properties read each other")
    for ref, message in sorted(analysis.syntax_errors.items()):
        table.add_row("[red]syntax[/red]", escape(str(ref)), escape(message))
    for ref, target in analysis.dangling_refs:
        table.add_row("[yellow]dangling[/yellow]", escape(str(ref)), f"reads missing {escape(str(target))}")
    for var_id in sorted(analysis.unused_variables):
        table.add_row("[yellow]unused[/yellow]", escape(var_id), "variable is never referenced")

    if table.row_count:
        err_console.print(Panel(table, title="[bold]Analysis[/bold]", border_style="cyan"))
        err_console.print()

    if analysis.has_errors:
        err_console.print("[red]✗ Project has errors[/red]")
        err_console.print()
        raise typer.Exit(code=1)

    err_console.print("[green]✓ Project is valid[/green]")
    err_console.print()


@app.command()
def run(
    path: Annotated[
        Path,
        typer.Argument(help="Path to project JSON file"),
    ],
    script: Annotated[
        Path,
        typer.Argument(help="Path to the script to run"),
    ],
    *,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Where to write the edited project (defaults to overwriting PATH)"),
    ] = None,
) -> None:
    """Run a script against a project as a single transaction."""
    config = _load_config()
    err_console.print()
    project = _load_project(path)

    try:
        source = script.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: Script not found: {script}[/red]")
        raise typer.Exit(code=1) from e

    session = Session(
        project,
        console=ConsoleLog(max_entries=config.max_log_entries),
        history_limit=config.history_limit,
    )
    err_console.print(f"[cyan]Running script:[/cyan] {script}")
    ok = session.run_script(source)
    err_console.print()
    _print_console_entries(session.console.entries)
    err_console.print()

    if not ok:
        err_console.print("[red]✗ Script failed, project left unchanged[/red]")
        err_console.print()
        raise typer.Exit(code=1)

    destination = output or path
    err_console.print(f"[cyan]Writing project to:[/cyan] {destination}")
    save_project(session.project, destination)

    err_console.print()
    err_console.print("[green]✓ Script complete[/green]")
    err_console.print()


@app.command()
def schema(
    *,
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Path to output JSON schema file"),
    ],
) -> None:
    """Generate the JSON schema of the project file format."""
    err_console.print()
    err_console.print(f"[cyan]Writing schema to:[/cyan] {output}")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dump_schema() + "\n", encoding="utf-8")

    err_console.print()
    err_console.print("[green]✓ Schema generation complete[/green]")
    err_console.print()


def main() -> None:
    app()
