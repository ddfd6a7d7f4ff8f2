"""Dependency graph primitives: GraphNode, DependencyGraph and build_graph.

An edge ``A -> B`` means "B must be active before A". The graph keeps the
insertion order of its nodes; that order is the resolver's tie-break rule
for nodes that become ready at the same time.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from aither.core.domain.unit import UnitDescriptor
from aither.core.logging import get_logger
from aither.core.registry.sources import UnitSource

logger = get_logger(__name__)

_EMPTY: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class GraphNode:
    """Dependencies declared by one unit."""

    name: str
    dependencies: tuple[str, ...] = ()
    optional_dependencies: tuple[str, ...] = ()


@dataclass(slots=True)
class DependencyGraph:
    """Insertion-ordered mapping of unit name to its declared dependencies.

    Edges whose target is not a node of the graph are *phantom* edges. They
    are kept as declared (so diagnostics can report them) but every
    traversal helper ignores them.

    Examples
    --------
    >>> graph = DependencyGraph()
    >>> graph.add(GraphNode("Logging"))
    >>> graph.add(GraphNode("LabRunner", dependencies=("Logging", "Ghost")))
    >>> graph.dependencies_of("LabRunner")
    ('Logging',)
    >>> graph.phantom_edges()
    [('LabRunner', 'Ghost')]
    """

    include_optional: bool = False
    nodes: dict[str, GraphNode] = field(default_factory=dict)
    _dependents: dict[str, set[str]] | None = field(default=None, init=False, repr=False)

    def add(self, node: GraphNode) -> None:
        if node.name in self.nodes:
            logger.warning("Duplicate unit '{name}' in graph, keeping the last one", name=node.name)
        self.nodes[node.name] = node
        self._dependents = None

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def declared_dependencies_of(self, name: str) -> tuple[str, ...]:
        """Dependencies as declared, phantom targets included."""
        node = self.nodes[name]
        if self.include_optional:
            return node.dependencies + node.optional_dependencies
        return node.dependencies

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        """Dependencies whose target exists in this graph."""
        return tuple(d for d in self.declared_dependencies_of(name) if d in self.nodes)

    def dependents_of(self, name: str) -> frozenset[str]:
        """Units that directly depend on ``name``."""
        if self._dependents is None:
            dependents: dict[str, set[str]] = {n: set() for n in self.nodes}
            for node_name in self.nodes:
                for dep in self.dependencies_of(node_name):
                    dependents[dep].add(node_name)
            self._dependents = dependents
        return frozenset(self._dependents.get(name, _EMPTY))

    def phantom_edges(self) -> list[tuple[str, str]]:
        """Edges ``(unit, missing_dependency)`` that point outside the graph."""
        return [
            (name, dep)
            for name in self.nodes
            for dep in self.declared_dependencies_of(name)
            if dep not in self.nodes
        ]

    def subgraph(self, names: Iterable[str]) -> DependencyGraph:
        """Induced subgraph over ``names``, preserving this graph's insertion order."""
        wanted = set(names)
        sub = DependencyGraph(include_optional=self.include_optional)
        for name, node in self.nodes.items():
            if name in wanted:
                sub.nodes[name] = GraphNode(
                    name=name,
                    dependencies=tuple(d for d in node.dependencies if d in wanted),
                    optional_dependencies=tuple(
                        d for d in node.optional_dependencies if d in wanted
                    ),
                )
        return sub

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        return {
            name: {
                "dependencies": list(node.dependencies),
                "optional_dependencies": list(node.optional_dependencies),
            }
            for name, node in self.nodes.items()
        }


def build_graph(
    units: UnitSource | Iterable[UnitDescriptor],
    include_optional: bool = False,
) -> DependencyGraph:
    """Build a DependencyGraph from a unit source or from descriptors.

    Parameters
    ----------
    units : UnitSource | Iterable[UnitDescriptor]
        A registry source (its manifests are read) or already-built descriptors
    include_optional : bool
        Treat optional dependencies as ordering edges

    Raises
    ------
    RegistryUnavailableError
        If ``units`` is a source whose root cannot be reached
    """
    descriptors = units.load_descriptors() if isinstance(units, UnitSource) else units

    graph = DependencyGraph(include_optional=include_optional)
    for descriptor in descriptors:
        graph.add(
            GraphNode(
                name=descriptor.name,
                dependencies=descriptor.dependencies,
                optional_dependencies=descriptor.optional_dependencies,
            )
        )

    for unit, missing in graph.phantom_edges():
        logger.warning(
            "Unit '{unit}' depends on unknown unit '{missing}', dropping edge",
            unit=unit,
            missing=missing,
        )

    logger.debug(
        "Built dependency graph with {count} units (optional edges: {optional})",
        count=len(graph),
        optional=include_optional,
    )
    return graph
