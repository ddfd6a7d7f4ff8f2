"""Tests for aither.visualization.order_report."""

import json
from datetime import datetime

import pytest
import yaml
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from aither.core.domain.graph import build_graph
from aither.core.domain.resolver import resolve
from aither.core.domain.unit import (
    LoadResult,
    LoadStatus,
    OrchestrationReport,
    UnitDescriptor,
    UnitStatus,
)
from aither.visualization import (
    render_graph,
    render_list,
    render_order,
    render_report_table,
    render_status_table,
    render_table,
    status_to_dicts,
)


def to_text(renderable) -> str:
    console = Console(width=120, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


@pytest.fixture
def graph():
    return build_graph([
        UnitDescriptor("Logging"),
        UnitDescriptor("A", dependencies=("Logging",)),
        UnitDescriptor("B", dependencies=("Logging", "Ghost")),
        UnitDescriptor("C", dependencies=("A", "B")),
    ])


@pytest.fixture
def cyclic_graph():
    return build_graph([
        UnitDescriptor("Logging"),
        UnitDescriptor("X", dependencies=("Y",)),
        UnitDescriptor("Y", dependencies=("X",)),
    ])


class TestRenderOrder:
    """Tests for the load-order renderers."""

    def test_table(self, graph):
        table = render_table(resolve(graph), graph)

        assert isinstance(table, Table)
        assert table.row_count == 4
        text = to_text(table)
        assert "Unit Load Order" in text
        assert "A, B" in text

    def test_table_marks_circular_units(self, cyclic_graph):
        text = to_text(render_table(resolve(cyclic_graph), cyclic_graph))

        assert "X (circular)" in text
        assert "Y (circular)" in text

    def test_bracketed_names_render_literally(self):
        graph = build_graph([
            UnitDescriptor("[bold]Odd"),
            UnitDescriptor("Lab[dev]", dependencies=("[bold]Odd", "[red]Gone")),
            UnitDescriptor("[p]", dependencies=("[q]",)),
            UnitDescriptor("[q]", dependencies=("[p]",)),
        ])
        resolved = resolve(graph)

        table = to_text(render_table(resolved, graph))
        tree = to_text(render_graph(resolved, graph))

        assert "[bold]Odd" in table
        assert "Lab[dev]" in table
        assert "[p] (circular)" in table
        assert "[bold]Odd" in tree
        assert "Lab[dev] -> [red]Gone" in tree
        assert "[q] (circular)" in tree

    def test_list(self, graph):
        assert render_list(resolve(graph)) == "Logging\nA\nB\nC"

    def test_graph_tree(self, graph):
        tree = render_graph(resolve(graph), graph)

        assert isinstance(tree, Tree)
        text = to_text(tree)
        # Only C has no dependents, so it is the single top-level unit
        assert [str(child.label) for child in tree.children][0] == "C"
        assert "Logging ..." in text
        assert "B -> Ghost" in text

    def test_graph_with_cycle_terminates(self, cyclic_graph):
        text = to_text(render_graph(resolve(cyclic_graph), cyclic_graph))

        assert "X" in text
        assert "Y" in text
        assert "(circular)" in text

    def test_json(self, graph):
        data = json.loads(render_order(resolve(graph), graph, "json"))

        assert data["load_order"] == ["Logging", "A", "B", "C"]
        assert data["groups"] == [["Logging"], ["A", "B"], ["C"]]
        assert data["phantom_edges"] == [["B", "Ghost"]]
        assert data["graph"]["C"]["dependencies"] == ["A", "B"]

    def test_yaml(self, graph):
        data = yaml.safe_load(render_order(resolve(graph), graph, "yaml"))

        assert data["dependency_depth"] == {"Logging": 0, "A": 1, "B": 1, "C": 2}

    def test_unknown_format(self, graph):
        with pytest.raises(ValueError, match="Unknown format 'dot'"):
            render_order(resolve(graph), graph, "dot")


class TestStatusAndReport:
    """Tests for status and load-report renderers."""

    def test_status_table_and_dicts(self):
        activated = datetime(2025, 1, 2, 3, 4, 5)
        statuses = [
            UnitStatus("Logging", available=True, active=True, last_activation=activated,
                       required=True),
            UnitStatus("Lab", available=False, active=False),
        ]

        assert render_status_table(statuses).row_count == 2
        assert status_to_dicts(statuses) == [
            {
                "name": "Logging",
                "required": True,
                "available": True,
                "active": True,
                "last_activation": "2025-01-02T03:04:05",
            },
            {
                "name": "Lab",
                "required": False,
                "available": False,
                "active": False,
                "last_activation": None,
            },
        ]

    def test_report_table(self):
        report = OrchestrationReport(load_order=("A", "B", "C"))
        report.add(LoadResult("A", LoadStatus.IMPORTED, "Imported 2 entries", 0.5))
        report.add(LoadResult("B", LoadStatus.FAILED, "Activation failed: boom"))
        report.add(LoadResult("C", LoadStatus.PATH_NOT_FOUND, "Location 'C' not found"))

        table = render_report_table(report)
        text = to_text(table)

        assert table.row_count == 3
        assert "Imported 1, failed 1, skipped 1" in text
        assert "Activation failed: boom" in text

    def test_report_table_escapes_names_and_messages(self):
        report = OrchestrationReport(load_order=("[bold]Odd",))
        report.add(
            LoadResult("[bold]Odd", LoadStatus.FAILED, "Activation failed: bad key [x]")
        )

        text = to_text(render_report_table(report))

        assert "[bold]Odd" in text
        assert "bad key [x]" in text
