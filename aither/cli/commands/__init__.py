"""CLI command modules."""

from . import resources_cmd, units_cmd

__all__ = ["resources_cmd", "units_cmd"]
