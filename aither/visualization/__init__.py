"""Diagnostic rendering of resolved orders, unit status and load reports."""

from aither.visualization.order_report import (
    REPORT_FORMATS,
    order_to_dict,
    render_graph,
    render_list,
    render_order,
    render_report_table,
    render_serialized,
    render_status_table,
    render_table,
    status_to_dicts,
)

__all__ = [
    "REPORT_FORMATS",
    "order_to_dict",
    "render_graph",
    "render_list",
    "render_order",
    "render_report_table",
    "render_serialized",
    "render_status_table",
    "render_table",
    "status_to_dicts",
]
