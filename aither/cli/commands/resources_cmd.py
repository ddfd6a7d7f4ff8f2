"""Host resource and concurrency commands for the Aither CLI."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from aither.core.config import load_config
from aither.core.resources import ResourceMetricsProvider, WorkloadKind
from aither.visualization import render_serialized

app = typer.Typer()
console = Console()


@app.callback(invoke_without_command=True)
def show_resources(
    ctx: typer.Context,
    detailed: Annotated[
        bool, typer.Option("--detailed", help="Measure CPU over a short interval")
    ] = False,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table, json, yaml)"),
    ] = "table",
) -> None:
    """Show sampled host pressure and recommended concurrency per workload kind.

    Raises
    ------
    typer.Exit
        If the output format is unknown
    """
    if format not in ("table", "json", "yaml"):
        console.print(f"[red]Error: Unknown format '{format}'[/red]")
        raise typer.Exit(1)

    config = (ctx.obj or {}).get("config") or load_config()
    provider = ResourceMetricsProvider(headless=config.orchestration.headless)
    snapshot = provider.sample(detailed=detailed)
    recommendations = [provider.recommend_concurrency(kind) for kind in WorkloadKind]

    if format != "table":
        data = {
            "cpu_count": provider.cpu_count,
            "headless": provider.headless,
            "snapshot": snapshot.to_dict(),
            "recommendations": {
                rec.kind.value: {"optimal": rec.optimal, "max_safe": rec.max_safe}
                for rec in recommendations
            },
        }
        typer.echo(render_serialized(data, format))  # type: ignore[arg-type]
        return

    pressure = Table(title="Host Resources", show_header=True, header_style="bold magenta")
    pressure.add_column("Metric", style="cyan")
    pressure.add_column("Value", justify="right")
    pressure.add_row("CPU load", f"{snapshot.cpu_load_percent:.1f}%")
    pressure.add_row("Memory pressure", f"{snapshot.memory_pressure_percent:.1f}%")
    pressure.add_row("I/O wait", f"{snapshot.io_wait_percent:.1f}%")
    pressure.add_row("Available memory", f"{snapshot.available_memory_gb:.1f} GB")
    pressure.add_row("Logical cores", str(provider.cpu_count))
    pressure.add_row("Headless", "yes" if provider.headless else "no")
    console.print(pressure)

    table = Table(title="Recommended Concurrency", show_header=True, header_style="bold magenta")
    table.add_column("Workload", style="cyan")
    table.add_column("Optimal", justify="right", style="green")
    table.add_column("Max Safe", justify="right")
    for rec in recommendations:
        table.add_row(rec.kind.value, str(rec.optimal), str(rec.max_safe))
    console.print(table)

    if snapshot.heuristic:
        console.print("[yellow]Some metrics are heuristic estimates[/yellow]")
