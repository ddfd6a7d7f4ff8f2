"""Domain model: unit records, the dependency graph and its resolution.

Only the record types are re-exported here; ``graph`` and ``resolver`` are
imported from their modules so that the registry can depend on the records
without pulling in graph construction.
"""

from aither.core.domain.unit import (
    ActivationRecord,
    LoadResult,
    LoadStatus,
    OrchestrationReport,
    UnitDescriptor,
    UnitStatus,
)

__all__ = [
    "ActivationRecord",
    "LoadResult",
    "LoadStatus",
    "OrchestrationReport",
    "UnitDescriptor",
    "UnitStatus",
]
