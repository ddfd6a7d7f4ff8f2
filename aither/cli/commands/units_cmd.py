"""Unit inspection, resolution and loading commands for the Aither CLI."""

import asyncio
import dataclasses
from enum import StrEnum
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from aither.core.config import AitherConfig, load_config
from aither.core.exceptions import AitherError, RegistryUnavailableError
from aither.core.orchestration import Orchestrator
from aither.visualization import (
    render_order,
    render_report_table,
    render_serialized,
    render_status_table,
    status_to_dicts,
)

app = typer.Typer()
console = Console()


class OutputFormat(StrEnum):
    """Output formats for tabular data."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class OrderFormat(StrEnum):
    """Output formats for a resolved load order."""

    TABLE = "table"
    GRAPH = "graph"
    LIST = "list"
    JSON = "json"
    YAML = "yaml"


def _config(ctx: typer.Context, include_optional: bool | None = None) -> AitherConfig:
    config = (ctx.obj or {}).get("config") or load_config()
    if include_optional is not None:
        config = dataclasses.replace(
            config,
            orchestration=dataclasses.replace(
                config.orchestration, include_optional=include_optional
            ),
        )
    return config


def _orchestrator(ctx: typer.Context, include_optional: bool | None = None) -> Orchestrator:
    return Orchestrator(config=_config(ctx, include_optional))


def _print_serialized(data: Any, fmt: str) -> None:
    # Plain echo keeps machine-readable output free of rich markup processing
    typer.echo(render_serialized(data, fmt))  # type: ignore[arg-type]


@app.command("list")
def list_units(
    ctx: typer.Context,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format (table, json, yaml)"),
    ] = OutputFormat.TABLE,
) -> None:
    """List every unit known to the registry."""
    orchestrator = _orchestrator(ctx)
    units = orchestrator.known_units()

    if format != OutputFormat.TABLE:
        data = [
            {
                "name": u.name,
                "location": u.location_ref,
                "description": u.description,
                "required": u.required,
                "dependencies": list(u.dependencies),
                "optional_dependencies": list(u.optional_dependencies),
            }
            for u in units
        ]
        _print_serialized(data, format.value)
        return

    table = Table(title="Registered Units", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Required")
    table.add_column("Dependencies", style="white")
    table.add_column("Description", style="dim")

    for unit in units:
        table.add_row(
            escape(unit.name),
            "yes" if unit.required else "",
            escape(", ".join(unit.dependencies)),
            escape(unit.description),
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(units)} units[/dim]")


@app.command("status")
def status(
    ctx: typer.Context,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format (table, json, yaml)"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show availability and activation state of every known unit."""
    statuses = _orchestrator(ctx).get_status()

    if format != OutputFormat.TABLE:
        _print_serialized(status_to_dicts(statuses), format.value)
        return

    console.print(render_status_table(statuses))


@app.command("resolve")
def resolve_units(
    ctx: typer.Context,
    units: Annotated[
        list[str] | None,
        typer.Option("--unit", "-u", help="Resolve only this unit and its dependencies"),
    ] = None,
    format: Annotated[
        OrderFormat,
        typer.Option("--format", "-f", help="Output format (table, graph, list, json, yaml)"),
    ] = OrderFormat.TABLE,
    include_optional: Annotated[
        bool | None,
        typer.Option(
            "--include-optional/--no-include-optional",
            help="Treat optional dependencies as ordering edges",
        ),
    ] = None,
) -> None:
    """Show the dependency-aware load order.

    Raises
    ------
    typer.Exit
        If the unit registry cannot be read
    """
    orchestrator = _orchestrator(ctx, include_optional)
    try:
        resolved = orchestrator.resolve(units or None)
    except RegistryUnavailableError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    rendered = render_order(resolved, orchestrator.graph, format.value)  # type: ignore[arg-type]
    if isinstance(rendered, str):
        typer.echo(rendered)
        return

    console.print(rendered)
    if resolved.has_cycles:
        console.print(
            "[yellow]Circular dependencies: "
            f"{escape(', '.join(sorted(resolved.circular_dependencies)))}[/yellow]"
        )


@app.command("load")
def load_units(
    ctx: typer.Context,
    units: Annotated[
        list[str] | None,
        typer.Option("--unit", "-u", help="Load only this unit and its dependencies"),
    ] = None,
    required_only: Annotated[
        bool, typer.Option("--required-only", help="Load only required units")
    ] = False,
    force: Annotated[bool, typer.Option("--force", help="Re-activate active units")] = False,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", min=1, help="Fixed number of units activated at once"),
    ] = None,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format (table, json, yaml)"),
    ] = OutputFormat.TABLE,
) -> None:
    """Resolve and activate units.

    Exits with status 1 when a unit fails to load or a required unit is not
    active afterwards.
    """
    orchestrator = _orchestrator(ctx)
    try:
        report = asyncio.run(
            orchestrator.load_all(
                subset=units or None,
                required_only=required_only,
                force=force,
                concurrency_override=concurrency,
            )
        )
    except AitherError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    healthy = orchestrator.health_check() if not units else report.failed_count == 0

    if format != OutputFormat.TABLE:
        data = report.to_dict()
        data["healthy"] = healthy
        data["fallback"] = orchestrator.used_fallback
        _print_serialized(data, format.value)
    else:
        if orchestrator.used_fallback:
            console.print("[yellow]Registry unavailable; loaded in declared order[/yellow]")
        console.print(render_report_table(report))
        if report.degraded:
            console.print("[yellow]Parallel loading unavailable; loaded sequentially[/yellow]")
        console.print(f"\n[dim]Completed in {report.duration_seconds:.2f}s[/dim]")

    if not healthy:
        raise typer.Exit(1)
