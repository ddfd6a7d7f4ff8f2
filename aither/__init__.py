"""Aither - dependency-aware module orchestration.

Decides which capability units to activate at process start, in what order,
and how many may activate at once without overwhelming the host.
"""

try:
    from importlib.metadata import version

    __version__ = version("aither-orchestrator")
except Exception:
    __version__ = "0.0.0.dev0"  # Fallback for development installs

from aither.core.domain import UnitDescriptor
from aither.core.domain.graph import DependencyGraph, build_graph
from aither.core.domain.resolver import ResolvedOrder, resolve
from aither.core.orchestration import ActivationCache, GroupedParallelLoader, Orchestrator

__all__ = [
    "ActivationCache",
    "DependencyGraph",
    "GroupedParallelLoader",
    "Orchestrator",
    "ResolvedOrder",
    "UnitDescriptor",
    "__version__",
    "build_graph",
    "resolve",
]
