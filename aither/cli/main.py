"""Aither CLI - Main entrypoint."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from aither import __version__
from aither.cli.commands import resources_cmd, units_cmd
from aither.core.config import load_config
from aither.core.exceptions import AitherError
from aither.core.logging import configure_logging

app = typer.Typer(
    name="aither",
    help="Aither - dependency-aware activation of capability units.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()

app.add_typer(units_cmd.app, name="units", help="Inspect, resolve and load units")
app.add_typer(resources_cmd.app, name="resources", help="Host resources and concurrency")


@app.callback(invoke_without_command=True)
def callback(
    ctx: typer.Context,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level: debug|info|warning|error|critical"),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to aither.toml or pyproject.toml"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """Aither - dependency-aware activation of capability units.

    Global flags are parsed here and stored on `ctx.obj` for subcommands.
    """
    if version:
        console.print(f"[bold blue]Aither[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()

    if ctx.obj is None:
        ctx.obj = {}

    try:
        config = load_config(config_path)
    except FileNotFoundError:
        console.print(f"[red]Error: Configuration file not found: {config_path}[/red]")
        raise typer.Exit(1)
    except AitherError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    # CLI level wins over the configured one
    logging_config = config.logging
    configure_logging(
        level=(log_level or logging_config.level).upper(),  # type: ignore[arg-type]
        format=logging_config.format,
        output_file=logging_config.output_file,
        use_color=logging_config.use_color,
        include_timestamp=logging_config.include_timestamp,
    )

    ctx.obj.update({"config": config, "config_path": config_path})


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
