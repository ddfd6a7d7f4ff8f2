"""Topological resolution of a DependencyGraph into an activation order.

The resolver uses Kahn's algorithm and never raises on cycles: nodes that
never reach zero in-degree are reported as circular and appended to the
order alphabetically.

Ordering rules
--------------
1. The logging unit is always first. Its own dependency edges are ignored.
2. Nodes that become ready at the same time are taken in the graph's
   insertion order (FIFO ready-queue, dependents visited in insertion order).
   This tie-break is part of the contract so that runs are reproducible.
3. Circular nodes follow the acyclic portion in alphabetical order.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from aither.core.domain.graph import DependencyGraph
from aither.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOGGING_UNIT = "Logging"


@dataclass(frozen=True, slots=True)
class ResolvedOrder:
    """Deterministic activation order for a set of units.

    Attributes
    ----------
    load_order : tuple[str, ...]
        Every resolved unit exactly once
    dependency_depth : Mapping[str, int]
        Longest dependency chain below each unit (0 for leaves)
    circular_dependencies : frozenset[str]
        Units that could not be ordered because of a cycle
    phantom_edges : tuple[tuple[str, str], ...]
        Dropped edges ``(unit, unknown_dependency)``
    logging_unit : str | None
        Name of the logging unit when it is part of the order
    """

    load_order: tuple[str, ...] = ()
    dependency_depth: Mapping[str, int] = field(default_factory=dict)
    circular_dependencies: frozenset[str] = frozenset()
    phantom_edges: tuple[tuple[str, str], ...] = ()
    logging_unit: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependency_depth", MappingProxyType(dict(self.dependency_depth)))

    def __len__(self) -> int:
        return len(self.load_order)

    def __contains__(self, name: object) -> bool:
        return name in self.load_order

    @property
    def has_cycles(self) -> bool:
        return bool(self.circular_dependencies)

    def groups(self) -> list[list[str]]:
        """Partition the order into depth groups for parallel loading.

        The logging unit forms its own leading group. Acyclic units follow,
        grouped by increasing dependency depth and kept in load order inside
        a group. Circular units form one trailing group which the loader
        activates one at a time in alphabetical order.

        Examples
        --------
        >>> order = ResolvedOrder(
        ...     load_order=("Logging", "A", "B", "C"),
        ...     dependency_depth={"Logging": 0, "A": 1, "B": 1, "C": 2},
        ...     logging_unit="Logging",
        ... )
        >>> order.groups()
        [['Logging'], ['A', 'B'], ['C']]
        """
        groups: list[list[str]] = []
        if self.logging_unit is not None:
            groups.append([self.logging_unit])

        by_depth: dict[int, list[str]] = {}
        for name in self.load_order:
            if name == self.logging_unit or name in self.circular_dependencies:
                continue
            by_depth.setdefault(self.dependency_depth.get(name, 0), []).append(name)
        groups.extend(by_depth[depth] for depth in sorted(by_depth))

        if self.circular_dependencies:
            groups.append(sorted(self.circular_dependencies))
        return groups

    def to_dict(self) -> dict[str, object]:
        return {
            "load_order": list(self.load_order),
            "dependency_depth": dict(self.dependency_depth),
            "circular_dependencies": sorted(self.circular_dependencies),
            "phantom_edges": [list(edge) for edge in self.phantom_edges],
            "groups": self.groups(),
        }


def dependency_closure(graph: DependencyGraph, subset: Iterable[str]) -> list[str]:
    """Return ``subset`` plus every unit it transitively depends on.

    Breadth-first over the full graph. Names not in the graph are logged and
    ignored. The result follows the graph's insertion order.
    """
    queue: deque[str] = deque()
    seen: set[str] = set()
    for name in subset:
        if name not in graph:
            logger.warning("Requested unit '{name}' is not registered, ignoring", name=name)
            continue
        if name not in seen:
            seen.add(name)
            queue.append(name)

    while queue:
        current = queue.popleft()
        for dep in graph.dependencies_of(current):
            if dep not in seen:
                seen.add(dep)
                queue.append(dep)

    return [name for name in graph if name in seen]


def resolve(
    graph: DependencyGraph,
    subset: Iterable[str] | None = None,
    logging_unit: str | None = DEFAULT_LOGGING_UNIT,
) -> ResolvedOrder:
    """Compute the activation order for ``graph``.

    Parameters
    ----------
    graph : DependencyGraph
        Full dependency graph
    subset : Iterable[str] | None
        Resolve only these units and their transitive dependencies
    logging_unit : str | None
        Unit forced to the front of the order; ``None`` disables forcing

    Returns
    -------
    ResolvedOrder
        Order, depths, circular members and dropped phantom edges
    """
    working = graph
    if subset is not None:
        closure = dependency_closure(graph, subset)
        working = graph.subgraph(closure)
        phantom = [edge for edge in graph.phantom_edges() if edge[0] in working]
    else:
        phantom = graph.phantom_edges()

    for unit, missing in phantom:
        logger.warning(
            "Dropping phantom edge {unit} -> {missing}: '{missing}' is not registered",
            unit=unit,
            missing=missing,
        )

    deps: dict[str, tuple[str, ...]] = {name: working.dependencies_of(name) for name in working}

    forced = logging_unit if logging_unit in deps else None
    if forced is not None and deps[forced]:
        logger.warning(
            "Logging unit '{name}' declares dependencies {deps}; ignoring them so it loads first",
            name=forced,
            deps=list(deps[forced]),
        )
        deps[forced] = ()

    in_degree = {name: len(d) for name, d in deps.items()}
    dependents: dict[str, list[str]] = {name: [] for name in deps}
    for name, node_deps in deps.items():
        for dep in node_deps:
            dependents[dep].append(name)

    ready = deque(name for name, degree in in_degree.items() if degree == 0)
    if forced is not None:
        ready.remove(forced)
        ready.appendleft(forced)

    order: list[str] = []
    while ready:
        current = ready.popleft()
        order.append(current)
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    placed = set(order)
    circular = frozenset(name for name in deps if name not in placed)
    if circular:
        logger.warning(
            "Circular dependencies between {units}; appending them alphabetically",
            units=sorted(circular),
        )
        order.extend(sorted(circular))

    return ResolvedOrder(
        load_order=tuple(order),
        dependency_depth=_dependency_depths(deps),
        circular_dependencies=circular,
        phantom_edges=tuple(phantom),
        logging_unit=forced,
    )


def _dependency_depths(deps: Mapping[str, tuple[str, ...]]) -> dict[str, int]:
    """Longest dependency chain per node via memoized depth-first search.

    The search keeps an explicit stack so long chains cannot hit the
    recursion limit. A node already on the stack contributes depth 0, which
    cuts cycles.
    """
    memo: dict[str, int] = {}

    for root in deps:
        if root in memo:
            continue
        # Frames are [node, remaining dependencies, deepest chain so far]
        stack: list[list[Any]] = [[root, iter(deps[root]), 0]]
        on_stack = {root}
        while stack:
            frame = stack[-1]
            for dep in frame[1]:
                if dep in memo:
                    frame[2] = max(frame[2], memo[dep] + 1)
                elif dep in on_stack:
                    frame[2] = max(frame[2], 1)
                else:
                    on_stack.add(dep)
                    stack.append([dep, iter(deps[dep]), 0])
                    break
            else:
                stack.pop()
                on_stack.discard(frame[0])
                memo[frame[0]] = frame[2]
                if stack:
                    stack[-1][2] = max(stack[-1][2], frame[2] + 1)
    return memo
