"""Diagnostic views of a resolved activation order.

Renderers return rich renderables (``Table``/``Tree``) or plain strings so
the CLI can print them and tests can inspect them without a terminal.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Literal

import yaml
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from aither.core.domain.graph import DependencyGraph
from aither.core.domain.resolver import ResolvedOrder
from aither.core.domain.unit import LoadStatus, OrchestrationReport, UnitStatus

ReportFormat = Literal["table", "graph", "list", "json", "yaml"]

REPORT_FORMATS: tuple[str, ...] = ("table", "graph", "list", "json", "yaml")

_STATUS_STYLES: dict[LoadStatus, str] = {
    LoadStatus.IMPORTED: "green",
    LoadStatus.ALREADY_LOADED: "cyan",
    LoadStatus.PATH_NOT_FOUND: "yellow",
    LoadStatus.NO_ENTRIES_FOUND: "yellow",
    LoadStatus.FAILED: "bold red",
}


def render_table(resolved: ResolvedOrder, graph: DependencyGraph | None = None) -> Table:
    """Load order as a table: position, unit, depth, group and dependencies."""
    table = Table(title="Unit Load Order", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Unit", style="cyan", no_wrap=True)
    table.add_column("Depth", justify="right")
    table.add_column("Group", justify="right")
    table.add_column("Dependencies", style="white")

    group_of = {name: index for index, group in enumerate(resolved.groups(), 1) for name in group}
    for position, name in enumerate(resolved.load_order, 1):
        deps = graph.dependencies_of(name) if graph is not None and name in graph else ()
        label = escape(name)
        if name in resolved.circular_dependencies:
            label = f"[red]{label} (circular)[/red]"
        table.add_row(
            str(position),
            label,
            str(resolved.dependency_depth.get(name, 0)),
            str(group_of.get(name, "")),
            escape(", ".join(deps)) or "[dim]-[/dim]",
        )
    return table


def render_graph(resolved: ResolvedOrder, graph: DependencyGraph) -> Tree:
    """Dependency tree: each unit with its in-graph dependencies beneath it.

    Dependencies already expanded elsewhere in the tree are shown once more
    without their own children, which keeps shared subtrees and cycles finite.
    """
    root = Tree("[bold]Unit dependencies[/bold]")
    expanded: set[str] = set()

    def add(branch: Tree, name: str, path: frozenset[str]) -> None:
        label = escape(name)
        if name in resolved.circular_dependencies:
            label = f"[red]{label}[/red] [dim](circular)[/dim]"
        if name in path or name in expanded:
            branch.add(f"{label} [dim]...[/dim]")
            return
        expanded.add(name)
        node = branch.add(label)
        for dep in graph.dependencies_of(name) if name in graph else ():
            add(node, dep, path | {name})

    # Only units nothing else depends on start a branch
    roots = [
        name
        for name in resolved.load_order
        if not any(dependent in resolved for dependent in graph.dependents_of(name))
    ]
    for name in roots:
        add(root, name, frozenset())

    # Units reachable only through a cycle never appear as roots
    for name in resolved.load_order:
        if name not in expanded:
            add(root, name, frozenset())

    if resolved.phantom_edges:
        phantom = root.add("[yellow]Dropped edges[/yellow]")
        for unit, missing in resolved.phantom_edges:
            phantom.add(f"{escape(unit)} -> {escape(missing)} [dim](not registered)[/dim]")
    return root


def render_list(resolved: ResolvedOrder) -> str:
    """One unit per line, in load order."""
    return "\n".join(resolved.load_order)


def order_to_dict(
    resolved: ResolvedOrder, graph: DependencyGraph | None = None
) -> dict[str, Any]:
    data = resolved.to_dict()
    if graph is not None:
        data["graph"] = graph.to_dict()
    return data


def render_serialized(data: Any, fmt: Literal["json", "yaml"]) -> str:
    if fmt == "json":
        return json.dumps(data, indent=2, default=str)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def render_order(
    resolved: ResolvedOrder,
    graph: DependencyGraph,
    fmt: ReportFormat = "table",
) -> Table | Tree | str:
    """Render ``resolved`` in one of the diagnostic formats.

    Raises
    ------
    ValueError
        If ``fmt`` is not a known format
    """
    match fmt:
        case "table":
            return render_table(resolved, graph)
        case "graph":
            return render_graph(resolved, graph)
        case "list":
            return render_list(resolved)
        case "json" | "yaml":
            return render_serialized(order_to_dict(resolved, graph), fmt)
        case _:
            raise ValueError(f"Unknown format {fmt!r}; expected one of {list(REPORT_FORMATS)}")


def render_status_table(statuses: Sequence[UnitStatus]) -> Table:
    table = Table(title="Unit Status", show_header=True, header_style="bold magenta")
    table.add_column("Unit", style="cyan", no_wrap=True)
    table.add_column("Required")
    table.add_column("Available")
    table.add_column("Active")
    table.add_column("Last Activation", style="dim")

    for status in statuses:
        table.add_row(
            escape(status.name),
            "yes" if status.required else "",
            "[green]yes[/green]" if status.available else "[yellow]no[/yellow]",
            "[green]yes[/green]" if status.active else "no",
            status.last_activation.isoformat(timespec="seconds") if status.last_activation else "",
        )
    return table


def status_to_dicts(statuses: Sequence[UnitStatus]) -> list[dict[str, Any]]:
    return [
        {
            "name": s.name,
            "required": s.required,
            "available": s.available,
            "active": s.active,
            "last_activation": s.last_activation.isoformat() if s.last_activation else None,
        }
        for s in statuses
    ]


def render_report_table(report: OrchestrationReport) -> Table:
    """Per-unit results of a load run, in completion order."""
    table = Table(
        title=(
            f"Imported {report.imported_count}, failed {report.failed_count}, "
            f"skipped {report.skipped_count}"
        ),
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Unit", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Message")

    for result in report.details:
        style = _STATUS_STYLES.get(result.status, "white")
        table.add_row(
            escape(result.name),
            f"[{style}]{result.status.value}[/{style}]",
            f"{result.duration_seconds:.2f}s",
            escape(result.message),
        )
    return table
